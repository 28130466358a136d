from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.repositories.base import DoctorScopedRepository
from medrx.models.appointment import Appointment


class AppointmentRepository(DoctorScopedRepository[Appointment]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Appointment)

    async def list_between(
        self,
        start: datetime,
        end: datetime,
        *,
        status: str | None = None,
    ) -> list[Appointment]:
        await self._apply_rls()
        stmt = self._scoped_select().where(
            Appointment.start_time >= start,
            Appointment.start_time < end,
        )
        if status is not None:
            stmt = stmt.where(Appointment.status == status)
        result = await self.session.execute(stmt.order_by(Appointment.start_time))
        return list(result.scalars().all())

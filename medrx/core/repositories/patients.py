from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.repositories.base import DoctorScopedRepository
from medrx.models.patient import Patient


class PatientRepository(DoctorScopedRepository[Patient]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Patient)

    async def find_by_name(self, name: str) -> Patient | None:
        await self._apply_rls()
        result = await self.session.execute(
            self._scoped_select().where(Patient.name == name).limit(1)
        )
        return result.scalar_one_or_none()

from __future__ import annotations

import logging
from typing import ClassVar, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from medrx.core.context import get_current_profile_id
from medrx.core.db import apply_rls_profile_context
from medrx.models.base import DoctorScopedBase

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=DoctorScopedBase)


class ProfileContextMissingError(RuntimeError):
    pass


class DoctorScopedRepository(Generic[ModelT]):
    """Rows owned by the doctor whose profile is bound to the current request.

    Every read is filtered on ``doctor_id`` and every write stamps it, on top of
    the row-level security setting applied to the session.
    """

    # Ownership columns never change after insert.
    immutable_fields: ClassVar[frozenset[str]] = frozenset({"id", "doctor_id", "created_at"})

    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    @property
    def doctor_id(self) -> UUID:
        profile_id = get_current_profile_id()
        if profile_id is None:
            raise ProfileContextMissingError("No doctor profile is bound to this request")
        return profile_id

    async def _apply_rls(self) -> None:
        await apply_rls_profile_context(self.session, self.doctor_id)

    def _scoped_select(self) -> Select[tuple[ModelT]]:
        return select(self.model).where(self.model.doctor_id == self.doctor_id)

    async def create(self, **values: object) -> ModelT:
        await self._apply_rls()
        instance = self.model(**{**values, "doctor_id": self.doctor_id})
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get(self, entity_id: UUID) -> ModelT | None:
        await self._apply_rls()
        result = await self.session.execute(self._scoped_select().where(self.model.id == entity_id))
        return result.scalar_one_or_none()

    async def update(self, entity_id: UUID, **values: object) -> ModelT | None:
        instance = await self.get(entity_id)
        if instance is None:
            return None

        changes = {key: value for key, value in values.items() if key not in self.immutable_fields}
        ignored = sorted(set(values) - set(changes))
        if ignored:
            logger.warning("Ignoring immutable fields on %s %s: %s", self.model.__name__, entity_id, ignored)
        for key, value in changes.items():
            setattr(instance, key, value)

        await self.session.flush()
        await self.session.refresh(instance)
        return instance

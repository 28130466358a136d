from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from medrx.core.context import get_current_profile_id, reset_current_profile_id, set_current_profile_id
from medrx.core.db import apply_rls_profile_context, get_db_session
from medrx.core.repositories import (
    AppointmentRepository,
    DoctorScopedRepository,
    PatientRepository,
    ProfileContextMissingError,
)
from medrx.models.patient import Patient


@pytest.mark.asyncio
async def test_apply_rls_profile_context_executes_sql() -> None:
    session = Mock()
    session.execute = AsyncMock()
    profile_id = uuid4()

    await apply_rls_profile_context(session, profile_id)

    session.execute.assert_awaited_once()
    assert session.execute.await_args.args[1] == {"profile_id": str(profile_id)}


@pytest.mark.asyncio
async def test_get_db_session_yields_session(monkeypatch: pytest.MonkeyPatch) -> None:
    sentinel = object()

    class _Ctx:
        async def __aenter__(self):
            return sentinel

        async def __aexit__(self, exc_type, exc, tb):  # noqa: ANN001
            return None

    from medrx.core import db

    monkeypatch.setattr(db, "AsyncSessionLocal", lambda: _Ctx())

    agen = get_db_session()
    value = await agen.__anext__()
    assert value is sentinel

    with pytest.raises(StopAsyncIteration):
        await agen.__anext__()


def test_profile_context_set_and_reset() -> None:
    profile_id = uuid4()
    token = set_current_profile_id(profile_id)
    assert get_current_profile_id() == profile_id
    reset_current_profile_id(token)
    assert get_current_profile_id() is None


def test_doctor_id_missing_raises() -> None:
    repo = DoctorScopedRepository(session=Mock(), model=Patient)

    with pytest.raises(ProfileContextMissingError):
        _ = repo.doctor_id


def test_scoped_select_contains_doctor_filter() -> None:
    doctor_id = uuid4()
    token = set_current_profile_id(doctor_id)
    try:
        stmt = PatientRepository(Mock())._scoped_select()
        sql = str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))

        assert "WHERE" in sql
        assert "patients.doctor_id" in sql
        assert str(doctor_id) in sql
    finally:
        reset_current_profile_id(token)


@pytest.mark.asyncio
async def test_create_injects_doctor_id() -> None:
    doctor_id = uuid4()
    token = set_current_profile_id(doctor_id)
    try:
        session = Mock()
        session.add = Mock()
        session.flush = AsyncMock()
        session.refresh = AsyncMock()

        repo = PatientRepository(session)
        repo._apply_rls = AsyncMock()

        created = await repo.create(name="Rahim", phone="01711000000", doctor_id=uuid4())

        assert created.doctor_id == doctor_id
        session.add.assert_called_once_with(created)
        session.flush.assert_awaited_once()
        session.refresh.assert_awaited_once_with(created)
    finally:
        reset_current_profile_id(token)


@pytest.mark.asyncio
async def test_repository_get_and_update_stay_in_scope() -> None:
    doctor_id = uuid4()
    token = set_current_profile_id(doctor_id)
    try:
        entity = Patient(id=uuid4(), doctor_id=doctor_id, name="Rahim", phone="017")

        execute_values = [
            SimpleNamespace(scalar_one_or_none=lambda: entity),
            SimpleNamespace(scalar_one_or_none=lambda: entity),
        ]

        async def _execute(_stmt):  # noqa: ANN001
            return execute_values.pop(0)

        session = Mock()
        session.execute = AsyncMock(side_effect=_execute)
        session.flush = AsyncMock()
        session.refresh = AsyncMock()

        repo = PatientRepository(session)
        repo._apply_rls = AsyncMock()

        got = await repo.get(entity.id)
        updated = await repo.update(entity.id, phone="018", id=uuid4(), doctor_id=uuid4())

        assert got is entity
        assert updated is entity
        assert entity.phone == "018"
        assert entity.doctor_id == doctor_id
    finally:
        reset_current_profile_id(token)


@pytest.mark.asyncio
async def test_update_missing_entity_returns_none() -> None:
    token = set_current_profile_id(uuid4())
    try:
        session = Mock()
        session.execute = AsyncMock(return_value=SimpleNamespace(scalar_one_or_none=lambda: None))
        repo = PatientRepository(session)
        repo._apply_rls = AsyncMock()

        assert await repo.update(uuid4(), name="x") is None
    finally:
        reset_current_profile_id(token)


@pytest.mark.asyncio
async def test_concrete_repository_queries() -> None:
    doctor_id = uuid4()
    token = set_current_profile_id(doctor_id)
    try:
        expected = object()
        session = Mock()
        session.execute = AsyncMock(
            side_effect=[
                SimpleNamespace(scalar_one_or_none=lambda: expected),
                SimpleNamespace(scalars=lambda: SimpleNamespace(all=lambda: [expected])),
            ]
        )

        patients = PatientRepository(session)
        patients._apply_rls = AsyncMock()
        assert await patients.find_by_name("Rahim") is expected

        appointments = AppointmentRepository(session)
        appointments._apply_rls = AsyncMock()
        start = datetime(2026, 3, 2, tzinfo=timezone.utc)
        assert await appointments.list_between(start, start + timedelta(days=1), status="scheduled") == [expected]

        stmt = session.execute.await_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "appointments.doctor_id" in sql
        assert "appointments.status" in sql
        assert "ORDER BY appointments.start_time" in sql
    finally:
        reset_current_profile_id(token)

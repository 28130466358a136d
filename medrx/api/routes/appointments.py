from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.billing import require_feature
from medrx.core.db import get_db_session
from medrx.core.repositories import AppointmentRepository
from medrx.core.subscription import AccessDecision, utc_now
from medrx.models.appointment import Appointment
from medrx.schemas.appointment import AppointmentResponse, AppointmentStatusUpdateRequest

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=str(appointment.id),
        patient_id=str(appointment.patient_id),
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        status=appointment.status,
        type=appointment.type,
        notes=appointment.notes,
    )


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    start: datetime | None = None,
    end: datetime | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    _: AccessDecision = Depends(require_feature("appointments")),
    session: AsyncSession = Depends(get_db_session),
) -> list[AppointmentResponse]:
    start = start or utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
    end = end or start + timedelta(days=7)
    appointments = await AppointmentRepository(session).list_between(start, end, status=status_filter)
    return [_to_response(appointment) for appointment in appointments]


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: UUID,
    payload: AppointmentStatusUpdateRequest,
    _: AccessDecision = Depends(require_feature("appointments")),
    session: AsyncSession = Depends(get_db_session),
) -> AppointmentResponse:
    appointment = await AppointmentRepository(session).update(appointment_id, status=payload.status)
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    await session.commit()
    return _to_response(appointment)

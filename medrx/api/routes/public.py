from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.context import reset_current_profile_id, set_current_profile_id
from medrx.core.db import get_db_session
from medrx.core.repositories import AppointmentRepository, PatientRepository
from medrx.core.subscription import as_utc
from medrx.models.profile import Profile
from medrx.schemas.appointment import PublicBookingRequest, PublicBookingResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/appointments", response_model=PublicBookingResponse)
async def book_public_appointment(
    payload: PublicBookingRequest,
    session: AsyncSession = Depends(get_db_session),
) -> PublicBookingResponse:
    if not (
        payload.doctor_id
        and payload.patient_name
        and payload.patient_phone
        and payload.start_time
        and payload.end_time
    ):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    # Naive times are read as UTC so mixed inputs still compare.
    start_time = as_utc(payload.start_time)
    end_time = as_utc(payload.end_time)
    if end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Appointment must end after it starts",
        )

    doctor = await session.scalar(
        select(Profile).where(Profile.id == payload.doctor_id, Profile.is_active.is_(True))
    )
    if doctor is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid doctor selected")

    # Anonymous request: rows are written in the chosen doctor's scope.
    token = set_current_profile_id(doctor.id)
    try:
        patients = PatientRepository(session)
        patient = await patients.find_by_name(payload.patient_name)
        if patient is None:
            patient = await patients.create(
                name=payload.patient_name,
                phone=payload.patient_phone,
                email=payload.patient_email,
                clinic_id=doctor.clinic_id,
            )

        contact = payload.patient_phone
        if payload.patient_email:
            contact = f"{contact}, Email: {payload.patient_email}"
        appointment = await AppointmentRepository(session).create(
            patient_id=patient.id,
            clinic_id=doctor.clinic_id,
            start_time=start_time,
            end_time=end_time,
            status="pending",
            type="in-person",
            patient_type="walk_in",
            notes=f"Public appointment request - Contact: {contact}",
        )
        await session.commit()
    finally:
        reset_current_profile_id(token)

    logger.info("Public appointment %s requested for doctor %s", appointment.id, doctor.id)
    return PublicBookingResponse(
        success=True,
        appointment_id=str(appointment.id),
        patient_id=str(patient.id),
    )

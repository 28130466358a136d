from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PublicBookingRequest(BaseModel):
    doctor_id: UUID | None = None
    patient_name: str | None = Field(default=None, max_length=255)
    patient_phone: str | None = Field(default=None, max_length=40)
    patient_email: str | None = Field(default=None, max_length=255)
    start_time: datetime | None = None
    end_time: datetime | None = None


class PublicBookingResponse(BaseModel):
    success: bool
    appointment_id: str
    patient_id: str


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    start_time: datetime
    end_time: datetime
    status: str
    type: str
    notes: str | None = None


class AppointmentStatusUpdateRequest(BaseModel):
    status: str = Field(pattern="^(pending|scheduled|completed|cancelled)$")

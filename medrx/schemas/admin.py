from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PasswordResetRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=128)


class PasswordResetResponse(BaseModel):
    success: bool
    message: str
    doctor_email: str | None = None


class ProfileSubscriptionUpdateRequest(BaseModel):
    tier: str | None = Field(default=None, pattern="^(free|pro|enterprise|lifetime)$")
    plan_id: str | None = Field(default=None, max_length=64)
    status: str = Field(pattern="^(trial|active|cancelled|inactive|pending_approval)$")
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_lifetime: bool = False
    notify: bool = True


class ClinicSubscriptionUpdateRequest(BaseModel):
    status: str = Field(pattern="^(pending_approval|active|inactive)$")
    billing_cycle: str | None = Field(default=None, pattern="^(monthly|yearly)$")
    start_date: datetime | None = None
    end_date: datetime | None = None


class SubscriptionUpdateResponse(BaseModel):
    id: str
    status: str
    tier: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    clinic_synced: bool = False


class RoleUpdateRequest(BaseModel):
    roles: list[str] = Field(min_length=1)


class RoleUpdateResponse(BaseModel):
    user_id: str
    roles: list[str]
    added: list[str]
    removed: list[str]


class SweepResponse(BaseModel):
    expired_trials: int
    expired_subscriptions: int
    expired_clinics: int
    notices_queued: int
    reminders_queued: int

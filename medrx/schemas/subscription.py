from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SubscriptionStatusResponse(BaseModel):
    has_access: bool
    status: str
    tier: str
    status_color: str
    remaining_days: int | None
    is_lifetime: bool
    clinic_managed: bool
    start_date: datetime | None = None
    end_date: datetime | None = None


class ClinicSubscriptionResponse(BaseModel):
    clinic_id: str | None = None
    has_access: bool
    status: str
    status_color: str
    remaining_days: int
    lock_reason: str | None = None
    show_expiry_banner: bool
    urgent: bool
    end_date: datetime | None = None


class FeatureAccess(BaseModel):
    feature: str
    name: str
    enabled: bool
    minimum_tier: str


class FeatureListResponse(BaseModel):
    tier: str
    plan_id: str
    plan_name: str
    has_access: bool
    features: list[FeatureAccess]

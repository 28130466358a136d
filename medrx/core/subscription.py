"""Subscription status resolution and tier feature gating.

Everything here is pure: callers fetch the profile or clinic row, hand it over
together with the current time and act on the returned decision (redirect,
banner, hard lock). Nothing is cached; decisions are re-evaluated on every
read.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from uuid import UUID

SubscriptionStatus = Literal["trial", "active", "cancelled", "inactive", "pending_approval"]
SubscriptionTier = Literal["free", "pro", "enterprise", "lifetime"]
StatusColor = Literal["green", "orange", "red"]
ClinicLockReason = Literal["pending_approval", "expired"]

PAID_STATUSES = frozenset({"active", "cancelled"})
EXPIRY_WARNING_DAYS = 7
URGENT_WARNING_DAYS = 3

_ONE_DAY = timedelta(days=1)


@dataclass(slots=True)
class SubscriptionRecord:
    status: str = "inactive"
    tier: str = "free"
    trial_ends_at: datetime | None = None
    subscription_end_date: datetime | None = None
    clinic_id: UUID | str | None = None
    is_lifetime: bool = False
    trial_started_at: datetime | None = None
    subscription_start_date: datetime | None = None

    @classmethod
    def from_profile(cls, profile: Any) -> SubscriptionRecord:
        return cls(
            status=(getattr(profile, "subscription_status", None) or "inactive").lower(),
            tier=(getattr(profile, "subscription_tier", None) or "free").lower(),
            trial_ends_at=getattr(profile, "trial_ends_at", None),
            subscription_end_date=getattr(profile, "subscription_end_date", None),
            clinic_id=getattr(profile, "clinic_id", None),
            is_lifetime=bool(getattr(profile, "is_lifetime", False)),
            trial_started_at=getattr(profile, "trial_started_at", None),
            subscription_start_date=getattr(profile, "subscription_start_date", None),
        )


@dataclass(slots=True)
class AccessDecision:
    has_access: bool
    status: str
    tier: str
    status_color: StatusColor
    remaining_days: int | None
    is_lifetime: bool = False
    clinic_managed: bool = False
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass(slots=True)
class ClinicAccessDecision:
    has_access: bool
    status: str
    status_color: StatusColor
    remaining_days: int
    lock_reason: ClinicLockReason | None = None
    end_date: datetime | None = None

    @property
    def show_expiry_banner(self) -> bool:
        return self.has_access and 0 < self.remaining_days <= EXPIRY_WARNING_DAYS

    @property
    def urgent(self) -> bool:
        return self.show_expiry_banner and self.remaining_days <= URGENT_WARNING_DAYS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _is_future(value: datetime | None, now: datetime) -> bool:
    value = as_utc(value)
    return value is not None and value > now


def remaining_days_until(end_date: datetime | None, now: datetime) -> int:
    end_date = as_utc(end_date)
    if end_date is None:
        return 0
    return max(0, math.ceil((end_date - now) / _ONE_DAY))


def status_color_for(remaining_days: int) -> StatusColor:
    if remaining_days > EXPIRY_WARNING_DAYS:
        return "green"
    if remaining_days > 0:
        return "orange"
    return "red"


def is_lifetime_plan(record: SubscriptionRecord) -> bool:
    return record.is_lifetime or record.tier == "lifetime"


def resolve_access(record: SubscriptionRecord | None, now: datetime | None = None) -> AccessDecision:
    now = as_utc(now) or utc_now()

    if record is None:
        return AccessDecision(
            has_access=False,
            status="inactive",
            tier="free",
            status_color="red",
            remaining_days=0,
        )

    if record.clinic_id is not None:
        # Clinic members are entitled through the clinic; its own lock is resolved separately.
        return AccessDecision(
            has_access=True,
            status=record.status,
            tier="enterprise",
            status_color="green",
            remaining_days=None,
            clinic_managed=True,
        )

    if is_lifetime_plan(record):
        return AccessDecision(
            has_access=True,
            status=record.status,
            tier=record.tier,
            status_color="green",
            remaining_days=None,
            is_lifetime=True,
            start_date=record.subscription_start_date or record.trial_started_at,
        )

    end_date = record.trial_ends_at if record.status == "trial" else record.subscription_end_date
    remaining_days = remaining_days_until(end_date, now)

    has_access = (
        record.status in PAID_STATUSES and _is_future(record.subscription_end_date, now)
    ) or (record.status == "trial" and _is_future(record.trial_ends_at, now))

    return AccessDecision(
        has_access=has_access,
        status=record.status,
        tier=record.tier,
        status_color=status_color_for(remaining_days),
        remaining_days=remaining_days,
        start_date=record.subscription_start_date or record.trial_started_at,
        end_date=as_utc(end_date),
    )


def resolve_clinic_access(clinic: Any | None, now: datetime | None = None) -> ClinicAccessDecision:
    now = as_utc(now) or utc_now()

    if clinic is None:
        return ClinicAccessDecision(
            has_access=False,
            status="inactive",
            status_color="red",
            remaining_days=0,
            lock_reason="expired",
        )

    status = (getattr(clinic, "subscription_status", None) or "inactive").lower()
    end_date = as_utc(getattr(clinic, "subscription_end_date", None))
    remaining_days = remaining_days_until(end_date, now)
    has_access = status == "active" and _is_future(end_date, now)

    lock_reason: ClinicLockReason | None = None
    if not has_access:
        lock_reason = "pending_approval" if status == "pending_approval" else "expired"

    return ClinicAccessDecision(
        has_access=has_access,
        status=status,
        status_color=status_color_for(remaining_days),
        remaining_days=remaining_days,
        lock_reason=lock_reason,
        end_date=end_date,
    )


TIER_FEATURES: dict[str, tuple[str, ...]] = {
    "free": (
        "prescriptions",
        "patient_management",
        "prescription_history",
        "custom_templates",
        "prescription_email",
    ),
    "pro": (
        "prescriptions",
        "patient_management",
        "appointments",
        "analytics",
        "prescription_history",
        "prescription_email",
        "custom_templates",
        "telemedicine",
    ),
    "enterprise": (
        "prescriptions",
        "patient_management",
        "appointments",
        "analytics",
        "telemedicine",
        "patient_journey",
        "questionnaires",
        "prescription_history",
        "prescription_email",
        "custom_templates",
        "multi_clinic",
        "advanced_analytics",
        "api_access",
        "priority_support",
    ),
}
TIER_FEATURES["lifetime"] = TIER_FEATURES["enterprise"]

FEATURE_NAMES: dict[str, str] = {
    "prescriptions": "Prescription Builder",
    "appointments": "Appointment Management",
    "patient_management": "Patient Management",
    "analytics": "Analytics & Reports",
    "telemedicine": "Telemedicine Integration",
    "patient_journey": "Patient Journey Tracker",
    "questionnaires": "Questionnaires",
    "prescription_history": "Prescription History",
    "prescription_email": "Email Prescriptions",
    "custom_templates": "Custom Templates",
    "multi_clinic": "Multi-Clinic Management",
    "advanced_analytics": "Advanced Analytics",
    "api_access": "API Access",
    "priority_support": "Priority Support",
}

_TIER_ORDER = ("free", "pro", "enterprise")


def has_feature_access(tier: str | None, feature: str) -> bool:
    if not tier:
        return False
    return feature in TIER_FEATURES.get(tier.strip().lower(), ())


def minimum_tier(feature: str) -> str:
    for tier in _TIER_ORDER:
        if feature in TIER_FEATURES[tier]:
            return tier
    return "enterprise"


PLAN_TIER_MAP: dict[str, str] = {
    "prescription": "free",
    "appointment_prescription": "pro",
    "fullcare": "enterprise",
    "clinic": "enterprise",
    "free": "free",
    "pro": "pro",
    "enterprise": "enterprise",
}

_TIER_PLAN_IDS = {"free": "prescription", "pro": "appointment_prescription", "enterprise": "fullcare"}
_TIER_PLAN_NAMES = {
    "free": "Prescription Plan",
    "pro": "Appointment + Prescription Plan",
    "enterprise": "Full Care Plan",
    "lifetime": "Lifetime Plan",
}


def tier_from_plan_id(plan_id: str) -> str:
    return PLAN_TIER_MAP.get((plan_id or "").strip().lower(), "free")


def plan_id_from_tier(tier: str) -> str:
    return _TIER_PLAN_IDS.get(tier, "prescription")


def plan_name_from_tier(tier: str) -> str:
    return _TIER_PLAN_NAMES.get(tier, "Free Plan")

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from uuid import UUID

import redis.asyncio as redis
import requests
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.auth import AuthContext, require_clinic_admin, require_super_admin
from medrx.core.auth_admin import AuthAdminClient
from medrx.core.billing import publish_subscription_change
from medrx.core.config import settings
from medrx.core.db import get_db_session
from medrx.core.notifications import build_subscription_message
from medrx.core.subscription import PAID_STATUSES, tier_from_plan_id, utc_now
from medrx.core.sweeps import enqueue_notification, run_sweep
from medrx.models.clinic import Clinic
from medrx.models.profile import Profile
from medrx.models.user_role import RoleAudit, UserRole
from medrx.schemas.admin import (
    ClinicSubscriptionUpdateRequest,
    PasswordResetRequest,
    PasswordResetResponse,
    ProfileSubscriptionUpdateRequest,
    RoleUpdateRequest,
    RoleUpdateResponse,
    SubscriptionUpdateResponse,
    SweepResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

ASSIGNABLE_ROLES = frozenset({"doctor", "clinic_admin", "patient", "super_admin"})


def _clinic_status_for(profile_status: str) -> str:
    if profile_status in {"trial", "active"}:
        return "active"
    if profile_status == "pending_approval":
        return "pending_approval"
    return "inactive"


@router.post("/doctors/{doctor_id}/reset-password", response_model=PasswordResetResponse)
async def reset_doctor_password(
    doctor_id: UUID,
    payload: PasswordResetRequest,
    auth: AuthContext = Depends(require_clinic_admin),
    session: AsyncSession = Depends(get_db_session),
) -> PasswordResetResponse:
    doctor = await session.scalar(select(Profile).where(Profile.id == doctor_id))
    if doctor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    if not auth.is_super_admin and (auth.clinic_id is None or doctor.clinic_id != auth.clinic_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only reset passwords for doctors in your clinic",
        )
    if doctor.role != "doctor":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Target user is not a doctor")

    client = AuthAdminClient()
    try:
        await asyncio.to_thread(client.update_password, doctor.id, payload.new_password)
    except requests.RequestException as exc:
        logger.error("Password reset failed for doctor %s: %s", doctor.id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to reset password",
        ) from exc

    logger.info("Password reset for doctor %s by %s", doctor.id, auth.profile_id)
    return PasswordResetResponse(
        success=True,
        message="Password reset successfully",
        doctor_email=doctor.email,
    )


@router.put("/profiles/{profile_id}/subscription", response_model=SubscriptionUpdateResponse)
async def update_profile_subscription(
    profile_id: UUID,
    payload: ProfileSubscriptionUpdateRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> SubscriptionUpdateResponse:
    profile = await session.scalar(select(Profile).where(Profile.id == profile_id))
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

    tier = payload.tier
    if tier is None and payload.plan_id:
        tier = tier_from_plan_id(payload.plan_id)
    if tier is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A tier or plan id is required",
        )

    is_lifetime = payload.is_lifetime or tier == "lifetime"
    now = utc_now()
    previous_status = profile.subscription_status

    if payload.status == "trial":
        start_date = now
        end_date = now + timedelta(days=settings.trial_length_days)
        profile.trial_started_at = start_date
        profile.trial_ends_at = end_date
    else:
        start_date = payload.start_date or now
        end_date = payload.end_date
        if payload.status in PAID_STATUSES and not is_lifetime and end_date is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="An end date is required for paid subscriptions",
            )

    profile.subscription_status = payload.status
    profile.subscription_tier = tier
    profile.is_lifetime = is_lifetime
    profile.subscription_start_date = start_date
    profile.subscription_end_date = end_date

    clinic_synced = False
    if profile.role == "clinic_admin":
        clinic = await session.scalar(select(Clinic).where(Clinic.owner_id == profile.id))
        if clinic is not None:
            clinic.subscription_status = _clinic_status_for(payload.status)
            clinic.subscription_tier = "enterprise"
            clinic.subscription_start_date = start_date
            clinic.subscription_end_date = end_date
            clinic_synced = True

    await session.commit()
    await publish_subscription_change(profile.id, payload.status)

    message_type = None
    if payload.status == "active":
        message_type = "subscription_approved"
    elif payload.status == "inactive" and previous_status == "pending_approval":
        message_type = "subscription_rejected"
    if payload.notify and message_type is not None:
        message = build_subscription_message(message_type, profile.full_name)
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        try:
            await enqueue_notification(
                redis_client,
                {
                    "channel": "email",
                    "kind": message_type,
                    "profile_id": str(profile.id),
                    "destination": profile.email,
                    "subject": message.subject,
                    "body": message.body,
                },
            )
        finally:
            await redis_client.aclose()

    logger.info(
        "Subscription updated profile=%s status=%s tier=%s clinic_synced=%s",
        profile.id,
        payload.status,
        tier,
        clinic_synced,
    )
    return SubscriptionUpdateResponse(
        id=str(profile.id),
        status=payload.status,
        tier=tier,
        start_date=start_date,
        end_date=end_date,
        clinic_synced=clinic_synced,
    )


@router.put("/clinics/{clinic_id}/subscription", response_model=SubscriptionUpdateResponse)
async def update_clinic_subscription(
    clinic_id: UUID,
    payload: ClinicSubscriptionUpdateRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> SubscriptionUpdateResponse:
    clinic = await session.scalar(select(Clinic).where(Clinic.id == clinic_id))
    if clinic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Clinic not found")
    if payload.status == "active" and payload.end_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An end date is required to activate a clinic",
        )

    clinic.subscription_status = payload.status
    clinic.subscription_tier = "enterprise"
    if payload.billing_cycle is not None:
        clinic.billing_cycle = payload.billing_cycle
    if payload.start_date is not None or payload.status == "active":
        clinic.subscription_start_date = payload.start_date or utc_now()
    clinic.subscription_end_date = payload.end_date
    await session.commit()

    logger.info("Clinic subscription updated clinic=%s status=%s", clinic.id, payload.status)
    return SubscriptionUpdateResponse(
        id=str(clinic.id),
        status=clinic.subscription_status,
        tier=clinic.subscription_tier,
        start_date=clinic.subscription_start_date,
        end_date=clinic.subscription_end_date,
    )


@router.put("/users/{user_id}/roles", response_model=RoleUpdateResponse)
async def replace_user_roles(
    user_id: UUID,
    payload: RoleUpdateRequest,
    auth: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> RoleUpdateResponse:
    requested = set(payload.roles)
    unknown = requested - ASSIGNABLE_ROLES
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown roles: {', '.join(sorted(unknown))}",
        )

    current = set((await session.scalars(select(UserRole.role).where(UserRole.user_id == user_id))).all())
    added = sorted(requested - current)
    removed = sorted(current - requested)

    if removed:
        await session.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role.in_(removed))
        )
    for role in added:
        session.add(UserRole(user_id=user_id, role=role))
    for action, roles in (("added", added), ("removed", removed)):
        for role in roles:
            session.add(RoleAudit(user_id=user_id, changed_by=auth.profile_id, action=action, role=role))
    await session.commit()

    logger.info("Roles replaced user=%s added=%s removed=%s", user_id, added, removed)
    return RoleUpdateResponse(user_id=str(user_id), roles=sorted(requested), added=added, removed=removed)


@router.post("/subscriptions/sweep", response_model=SweepResponse)
async def trigger_subscription_sweep(
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> SweepResponse:
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        result = await run_sweep(session, redis_client)
    finally:
        await redis_client.aclose()

    return SweepResponse(
        expired_trials=result.expired_trials,
        expired_subscriptions=result.expired_subscriptions,
        expired_clinics=result.expired_clinics,
        notices_queued=result.notices_queued,
        reminders_queued=result.reminders_queued,
    )

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

import redis.asyncio as redis
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.auth import AuthContext, require_auth_context
from medrx.core.config import settings
from medrx.core.db import get_db_session
from medrx.core.subscription import (
    FEATURE_NAMES,
    AccessDecision,
    ClinicAccessDecision,
    SubscriptionRecord,
    has_feature_access,
    minimum_tier,
    plan_name_from_tier,
    resolve_access,
    resolve_clinic_access,
)
from medrx.models.clinic import Clinic
from medrx.models.profile import Profile

logger = logging.getLogger(__name__)

_CLINIC_LOCK_MESSAGES = {
    "pending_approval": "Your clinic registration is under review. An administrator will approve your clinic shortly.",
    "expired": "Your clinic's subscription has expired. Contact your clinic administrator to renew it.",
}


async def get_subscription_decision(
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> AccessDecision:
    profile = await session.scalar(select(Profile).where(Profile.id == context.profile_id))
    if profile is None:
        return resolve_access(None)
    return resolve_access(SubscriptionRecord.from_profile(profile))


async def get_clinic_decision(
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> ClinicAccessDecision | None:
    if context.clinic_id is None:
        return None
    clinic = await session.scalar(select(Clinic).where(Clinic.id == context.clinic_id))
    return resolve_clinic_access(clinic)


async def require_active_access(
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> AccessDecision:
    clinic_decision = await get_clinic_decision(context, session)
    if clinic_decision is not None and not clinic_decision.has_access:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={
                "lock_reason": clinic_decision.lock_reason,
                "message": _CLINIC_LOCK_MESSAGES[clinic_decision.lock_reason or "expired"],
                "subscription_end_date": (
                    clinic_decision.end_date.isoformat() if clinic_decision.end_date else None
                ),
            },
        )

    decision = await get_subscription_decision(context, session)
    if not decision.has_access:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Your subscription has expired. Please renew to continue using premium features.",
        )
    return decision


def require_feature(feature: str) -> Callable[..., Awaitable[AccessDecision]]:
    if feature not in FEATURE_NAMES:
        raise ValueError(f"Unknown feature: {feature}")

    async def _dependency(
        decision: AccessDecision = Depends(require_active_access),
    ) -> AccessDecision:
        if not has_feature_access(decision.tier, feature):
            required = minimum_tier(feature)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"{FEATURE_NAMES[feature]} requires the {plan_name_from_tier(required)}. "
                    "Upgrade your plan to unlock it."
                ),
            )
        return decision

    return _dependency


async def publish_subscription_change(profile_id: UUID, subscription_status: str) -> None:
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis_client.publish(
            f"subscription:changed:{profile_id}",
            json.dumps({"profile_id": str(profile_id), "subscription_status": subscription_status}),
        )
    finally:
        await redis_client.aclose()
    logger.info("Published subscription change profile=%s status=%s", profile_id, subscription_status)

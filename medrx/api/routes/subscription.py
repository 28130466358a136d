from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.auth import AuthContext, require_auth_context
from medrx.core.billing import (
    get_clinic_decision,
    get_subscription_decision,
    require_active_access,
    require_feature,
)
from medrx.core.db import get_db_session
from medrx.core.subscription import (
    FEATURE_NAMES,
    AccessDecision,
    ClinicAccessDecision,
    has_feature_access,
    minimum_tier,
    plan_id_from_tier,
    plan_name_from_tier,
)
from medrx.schemas.subscription import (
    ClinicSubscriptionResponse,
    FeatureAccess,
    FeatureListResponse,
    SubscriptionStatusResponse,
)

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    decision: AccessDecision = Depends(get_subscription_decision),
) -> SubscriptionStatusResponse:
    return SubscriptionStatusResponse(
        has_access=decision.has_access,
        status=decision.status,
        tier=decision.tier,
        status_color=decision.status_color,
        remaining_days=decision.remaining_days,
        is_lifetime=decision.is_lifetime,
        clinic_managed=decision.clinic_managed,
        start_date=decision.start_date,
        end_date=decision.end_date,
    )


@router.get("/clinic", response_model=ClinicSubscriptionResponse)
async def clinic_subscription_status(
    auth: AuthContext = Depends(require_auth_context),
    decision: ClinicAccessDecision | None = Depends(get_clinic_decision),
) -> ClinicSubscriptionResponse:
    if decision is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account is not attached to a clinic",
        )
    return ClinicSubscriptionResponse(
        clinic_id=str(auth.clinic_id),
        has_access=decision.has_access,
        status=decision.status,
        status_color=decision.status_color,
        remaining_days=decision.remaining_days,
        lock_reason=decision.lock_reason,
        show_expiry_banner=decision.show_expiry_banner,
        urgent=decision.urgent,
        end_date=decision.end_date,
    )


@router.get("/features", response_model=FeatureListResponse)
async def subscription_features(
    decision: AccessDecision = Depends(get_subscription_decision),
) -> FeatureListResponse:
    features = [
        FeatureAccess(
            feature=feature,
            name=name,
            enabled=decision.has_access and has_feature_access(decision.tier, feature),
            minimum_tier=minimum_tier(feature),
        )
        for feature, name in FEATURE_NAMES.items()
    ]
    return FeatureListResponse(
        tier=decision.tier,
        plan_id=plan_id_from_tier(decision.tier),
        plan_name=plan_name_from_tier(decision.tier),
        has_access=decision.has_access,
        features=features,
    )


@router.post("/guards/{feature}")
async def feature_guard(
    feature: str,
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> dict[str, bool]:
    if feature not in FEATURE_NAMES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown feature: {feature}",
        )
    decision = await require_active_access(auth, session)
    await require_feature(feature)(decision)
    return {"allowed": True}

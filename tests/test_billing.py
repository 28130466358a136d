from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import HTTPException

from medrx.core.auth import AuthContext
from medrx.core.billing import (
    get_clinic_decision,
    get_subscription_decision,
    publish_subscription_change,
    require_active_access,
    require_feature,
)
from medrx.core.subscription import AccessDecision


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _Session:
    def __init__(self, values: list) -> None:
        self._values = list(values)

    async def scalar(self, _stmt):  # noqa: ANN001
        return self._values.pop(0) if self._values else None


def _profile(**overrides: object) -> SimpleNamespace:
    values: dict[str, object] = {
        "subscription_status": "active",
        "subscription_tier": "pro",
        "trial_ends_at": None,
        "subscription_end_date": _now() + timedelta(days=30),
        "clinic_id": None,
        "is_lifetime": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _ctx(clinic_id=None) -> AuthContext:  # noqa: ANN001
    return AuthContext(profile_id=uuid4(), subject="doc", clinic_id=clinic_id)


@pytest.mark.asyncio
async def test_subscription_decision_from_profile() -> None:
    decision = await get_subscription_decision(_ctx(), _Session([_profile()]))
    assert decision.has_access is True
    assert decision.tier == "pro"


@pytest.mark.asyncio
async def test_subscription_decision_without_profile() -> None:
    decision = await get_subscription_decision(_ctx(), _Session([None]))
    assert decision.has_access is False


@pytest.mark.asyncio
async def test_clinic_decision_is_none_without_clinic() -> None:
    assert await get_clinic_decision(_ctx(), _Session([])) is None


@pytest.mark.asyncio
async def test_require_active_access_locks_pending_clinic() -> None:
    clinic = SimpleNamespace(subscription_status="pending_approval", subscription_end_date=None)
    with pytest.raises(HTTPException) as exc:
        await require_active_access(_ctx(clinic_id=uuid4()), _Session([clinic]))

    assert exc.value.status_code == 423
    assert exc.value.detail["lock_reason"] == "pending_approval"
    assert "under review" in exc.value.detail["message"]


@pytest.mark.asyncio
async def test_require_active_access_locks_expired_clinic() -> None:
    ended = _now() - timedelta(days=1)
    clinic = SimpleNamespace(subscription_status="active", subscription_end_date=ended)
    with pytest.raises(HTTPException) as exc:
        await require_active_access(_ctx(clinic_id=uuid4()), _Session([clinic]))

    assert exc.value.status_code == 423
    assert exc.value.detail["lock_reason"] == "expired"
    assert exc.value.detail["subscription_end_date"] is not None


@pytest.mark.asyncio
async def test_require_active_access_clinic_member_gets_enterprise() -> None:
    clinic_id = uuid4()
    clinic = SimpleNamespace(subscription_status="active", subscription_end_date=_now() + timedelta(days=90))
    member = _profile(subscription_status="inactive", subscription_tier="free", clinic_id=clinic_id)

    decision = await require_active_access(_ctx(clinic_id=clinic_id), _Session([clinic, member]))

    assert decision.clinic_managed is True
    assert decision.tier == "enterprise"


@pytest.mark.asyncio
async def test_require_active_access_expired_individual() -> None:
    expired = _profile(subscription_end_date=_now() - timedelta(days=1))
    with pytest.raises(HTTPException) as exc:
        await require_active_access(_ctx(), _Session([expired]))
    assert exc.value.status_code == 402


@pytest.mark.asyncio
async def test_require_feature_blocks_lower_tier() -> None:
    dependency = require_feature("appointments")
    free = AccessDecision(has_access=True, status="trial", tier="free", status_color="green", remaining_days=10)

    with pytest.raises(HTTPException) as exc:
        await dependency(free)
    assert exc.value.status_code == 403
    assert "Appointment + Prescription Plan" in exc.value.detail

    pro = AccessDecision(has_access=True, status="active", tier="pro", status_color="green", remaining_days=10)
    assert await dependency(pro) is pro


def test_require_feature_rejects_unknown_feature() -> None:
    with pytest.raises(ValueError):
        require_feature("time_travel")


@pytest.mark.asyncio
async def test_publish_subscription_change(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import billing

    published: list[tuple[str, str]] = []

    class _Redis:
        async def publish(self, channel: str, message: str) -> None:
            published.append((channel, message))

        async def aclose(self) -> None:
            return None

    monkeypatch.setattr(billing.redis, "from_url", lambda *a, **k: _Redis())

    profile_id = uuid4()
    await publish_subscription_change(profile_id, "active")

    assert published[0][0] == f"subscription:changed:{profile_id}"
    assert json.loads(published[0][1])["subscription_status"] == "active"

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

import redis.asyncio as redis
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.config import settings
from medrx.core.notifications import build_subscription_message
from medrx.core.subscription import utc_now
from medrx.models.appointment import Appointment
from medrx.models.clinic import Clinic
from medrx.models.patient import Patient
from medrx.models.profile import Profile

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingNotification:
    fields: dict[str, str]
    dedupe_key: str | None = None
    dedupe_ttl: int | None = None


@dataclass(slots=True)
class SweepResult:
    expired_trials: int = 0
    expired_subscriptions: int = 0
    expired_clinics: int = 0
    notices_queued: int = 0
    reminders_queued: int = 0
    expired_profile_ids: list[UUID] = field(default_factory=list)
    pending: list[PendingNotification] = field(default_factory=list)


async def enqueue_notification(redis_client: redis.Redis, fields: dict[str, str]) -> None:
    payload = dict(fields)
    payload.setdefault("queued_at", utc_now().isoformat())
    await redis_client.xadd(settings.notification_stream_name, payload)


async def _deactivate(session: AsyncSession, profile_ids: list[UUID]) -> None:
    if not profile_ids:
        return
    await session.execute(
        update(Profile)
        .where(Profile.id.in_(profile_ids))
        .values(subscription_status="inactive", subscription_tier="free")
    )


async def expire_lapsed_subscriptions(session: AsyncSession, now: datetime, result: SweepResult) -> None:
    trial_ids = list(
        (
            await session.scalars(
                select(Profile.id).where(
                    Profile.subscription_status == "trial",
                    Profile.trial_ends_at < now,
                    Profile.is_lifetime.is_(False),
                )
            )
        ).all()
    )
    await _deactivate(session, trial_ids)

    subscription_ids = list(
        (
            await session.scalars(
                select(Profile.id).where(
                    Profile.subscription_status == "active",
                    Profile.subscription_end_date < now,
                    Profile.is_lifetime.is_(False),
                )
            )
        ).all()
    )
    await _deactivate(session, subscription_ids)

    clinic_ids = list(
        (
            await session.scalars(
                select(Clinic.id).where(
                    Clinic.subscription_status == "active",
                    Clinic.subscription_end_date < now,
                )
            )
        ).all()
    )
    if clinic_ids:
        await session.execute(
            update(Clinic).where(Clinic.id.in_(clinic_ids)).values(subscription_status="inactive")
        )

    result.expired_trials = len(trial_ids)
    result.expired_subscriptions = len(subscription_ids)
    result.expired_clinics = len(clinic_ids)
    result.expired_profile_ids.extend(trial_ids + subscription_ids)
    logger.info(
        "Deactivated trials=%d subscriptions=%d clinics=%d",
        result.expired_trials,
        result.expired_subscriptions,
        result.expired_clinics,
    )


async def collect_expiry_notices(
    session: AsyncSession,
    redis_client: redis.Redis,
    now: datetime,
    result: SweepResult,
) -> None:
    windows = (
        ("trial_ending", "trial", Profile.trial_ends_at, settings.trial_ending_notice_days),
        ("subscription_expiring", "active", Profile.subscription_end_date, settings.subscription_expiring_notice_days),
    )
    for message_type, status_value, column, days in windows:
        horizon = now + timedelta(days=days)
        rows = (
            await session.execute(
                select(Profile.id, Profile.email, Profile.full_name, column).where(
                    Profile.subscription_status == status_value,
                    Profile.is_lifetime.is_(False),
                    Profile.clinic_id.is_(None),
                    column > now,
                    column <= horizon,
                )
            )
        ).all()

        for profile_id, email, full_name, ends_at in rows:
            # One notice per profile and end date, however often the sweep runs.
            dedupe_key = f"notice:{message_type}:{profile_id}:{ends_at.isoformat()}"
            if await redis_client.exists(dedupe_key):
                continue
            message = build_subscription_message(message_type, full_name)
            result.pending.append(
                PendingNotification(
                    fields={
                        "channel": "email",
                        "kind": message_type,
                        "profile_id": str(profile_id),
                        "destination": email,
                        "subject": message.subject,
                        "body": message.body,
                    },
                    dedupe_key=dedupe_key,
                    dedupe_ttl=(days + 1) * 24 * 60 * 60,
                )
            )


def reminder_window(now: datetime) -> tuple[datetime, datetime]:
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return tomorrow, tomorrow + timedelta(days=1)


def reminder_text(start_time: datetime) -> str:
    return (
        f"Reminder: You have an appointment tomorrow at {start_time.strftime('%I:%M %p')}. "
        "Reply CONFIRM to confirm or RESCHEDULE to reschedule."
    )


async def collect_appointment_reminders(session: AsyncSession, now: datetime, result: SweepResult) -> None:
    start, end = reminder_window(now)
    rows = (
        await session.execute(
            select(Appointment, Patient.name, Patient.phone)
            .join(Patient, Patient.id == Appointment.patient_id)
            .where(
                Appointment.status == "scheduled",
                Appointment.sms_reminder_sent.is_(False),
                Appointment.start_time >= start,
                Appointment.start_time < end,
            )
        )
    ).all()

    for appointment, patient_name, phone in rows:
        if not phone:
            logger.info("No phone number for appointment %s", appointment.id)
            continue
        appointment.sms_reminder_sent = True
        appointment.sms_reminder_sent_at = now
        result.pending.append(
            PendingNotification(
                fields={
                    "channel": "sms",
                    "kind": "appointment_reminder",
                    "appointment_id": str(appointment.id),
                    "destination": phone,
                    "body": reminder_text(appointment.start_time),
                }
            )
        )
        logger.info("Reminder due appointment=%s patient=%s", appointment.id, patient_name)


async def flush_pending(redis_client: redis.Redis, result: SweepResult) -> None:
    """Enqueue what the committed sweep collected.

    A notice's dedupe key is written only once its event is on the stream, so
    a failed enqueue leaves it eligible for the next sweep.
    """
    for notification in result.pending:
        await enqueue_notification(redis_client, notification.fields)
        if notification.dedupe_key is not None:
            await redis_client.set(notification.dedupe_key, "1", ex=notification.dedupe_ttl)
        if notification.fields["channel"] == "sms":
            result.reminders_queued += 1
        else:
            result.notices_queued += 1
    result.pending.clear()


async def run_sweep(
    session: AsyncSession,
    redis_client: redis.Redis,
    now: datetime | None = None,
) -> SweepResult:
    now = now or utc_now()
    result = SweepResult()

    await expire_lapsed_subscriptions(session, now, result)
    await collect_expiry_notices(session, redis_client, now, result)
    await collect_appointment_reminders(session, now, result)
    await session.commit()

    await flush_pending(redis_client, result)
    for profile_id in result.expired_profile_ids:
        await redis_client.publish(
            f"subscription:changed:{profile_id}",
            json.dumps({"profile_id": str(profile_id), "subscription_status": "inactive"}),
        )
    return result

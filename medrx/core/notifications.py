from __future__ import annotations

import asyncio
import logging
import re
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText

import requests
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.config import settings
from medrx.models.notification_config import EmailTemplate, NotificationConfig

logger = logging.getLogger(__name__)


class NotificationError(ValueError):
    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TemplateNotFoundError(NotificationError):
    pass


class NotificationConfigError(NotificationError):
    pass


EVENT_TEMPLATE_CATEGORIES: dict[str, str] = {
    "prescription_created": "prescription",
    "appointment_created": "appointment",
    "appointment_approved": "appointment",
    "appointment_reminder": "reminder",
    "appointment_rescheduled": "appointment",
    "health_advice_sent": "health_advice",
}

SMS_SUCCESS_CODE = 202
SMS_ERROR_MESSAGES: dict[int, str] = {
    202: "SMS Submitted Successfully",
    1001: "Invalid Number",
    1002: "Sender ID not correct/disabled",
    1003: "Required fields missing",
    1005: "Internal Error",
    1006: "Balance Validity Not Available",
    1007: "Balance Insufficient",
    1011: "User ID not found",
    1012: "Masking SMS must be sent in Bengali",
    1013: "Sender ID not found for Gateway",
    1014: "Sender Type Name not found",
    1015: "No valid Gateway found",
    1016: "Active Price Info not found",
    1017: "Price Info not found",
    1018: "Account is disabled",
    1019: "Sender type price disabled",
    1020: "Account parent not found",
    1021: "Parent price not found",
    1031: "Account Not Verified",
    1032: "IP Not whitelisted",
}

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(text: str, data: dict[str, str]) -> str:
    """Substitute ``{{key}}`` placeholders; unknown keys are left untouched."""
    return _PLACEHOLDER.sub(lambda match: str(data.get(match.group(1), match.group(0))), text)


def translate_sms_code(code: int | None) -> str:
    if code is None:
        return "Unknown error occurred"
    return SMS_ERROR_MESSAGES.get(code, "Unknown error occurred")


def clean_phone_number(phone_number: str) -> str:
    return re.sub(r"\D", "", phone_number or "")


@dataclass(slots=True)
class SubscriptionMessage:
    subject: str
    body: str


def build_subscription_message(message_type: str, full_name: str | None) -> SubscriptionMessage:
    name = full_name or "there"
    if message_type == "subscription_approved":
        return SubscriptionMessage(
            subject="Your Subscription is Active!",
            body=(
                f"Hi {name},\n\nYour subscription has been approved and is now active. "
                "You can now access all premium features.\n\nThank you for choosing MedRxPro!"
            ),
        )
    if message_type == "subscription_rejected":
        return SubscriptionMessage(
            subject="Subscription Payment Issue",
            body=(
                f"Hi {name},\n\nWe couldn't verify your payment. Please contact support "
                "or try again with a different payment method.\n\nThank you!"
            ),
        )
    if message_type == "trial_ending":
        return SubscriptionMessage(
            subject="Your Trial is Ending Soon",
            body=(
                f"Hi {name},\n\nYour free trial will end in {settings.trial_ending_notice_days} days. "
                "Choose a plan to continue using all features without interruption.\n\nThank you!"
            ),
        )
    if message_type == "subscription_expiring":
        return SubscriptionMessage(
            subject="Subscription Renewal Reminder",
            body=(
                f"Hi {name},\n\nYour subscription will expire in {settings.subscription_expiring_notice_days} days. "
                "Please renew to continue accessing premium features.\n\nThank you!"
            ),
        )
    raise ValueError(f"Unknown subscription message type: {message_type}")


class EmailClient:
    def __init__(self) -> None:
        self.api_url = settings.resend_api_url

    def send(self, *, to: str, subject: str, html: str) -> str | None:
        if not settings.resend_api_key:
            raise NotificationConfigError("RESEND_API_KEY is not configured")

        response = requests.post(
            self.api_url,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json={"from": settings.email_from, "to": [to], "subject": subject, "html": html},
            timeout=10,
        )
        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text
            raise NotificationError(f"Email provider rejected the message: {message}", code=response.status_code)
        return response.json().get("id")


class SmsGateway:
    def __init__(self) -> None:
        self.api_url = settings.bulksms_api_url

    def send(self, *, phone_number: str, message: str) -> int:
        if not settings.bulksms_api_key or not settings.bulksms_sender_id:
            raise NotificationConfigError("BulkSMS credentials not configured")

        response = requests.get(
            self.api_url,
            params={
                "api_key": settings.bulksms_api_key,
                "type": "text",
                "number": clean_phone_number(phone_number),
                "senderid": settings.bulksms_sender_id,
                "message": message,
            },
            timeout=10,
        )
        raw = response.text.strip()
        logger.info("SMS gateway response: %s", raw)

        try:
            code = int(raw)
        except ValueError:
            code = None

        if code != SMS_SUCCESS_CODE:
            raise NotificationError(translate_sms_code(code), code=code)
        return code


@dataclass(slots=True)
class SmtpTarget:
    host: str
    port: int
    from_email: str
    username: str | None = None
    password: str | None = None
    use_tls: bool = True


class SmtpProbe:
    def __init__(self, target: SmtpTarget, timeout: int = 10) -> None:
        self.target = target
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.target.port == 465:
            return smtplib.SMTP_SSL(self.target.host, self.target.port, timeout=self.timeout)
        return smtplib.SMTP(self.target.host, self.target.port, timeout=self.timeout)

    def check(self, *, to: str | None = None, subject: str = "", body: str = "") -> None:
        try:
            with self._connect() as server:
                if self.target.use_tls and self.target.port != 465:
                    server.starttls()
                if self.target.username and self.target.password:
                    server.login(self.target.username, self.target.password)
                if to:
                    message = MIMEText(body or "SMTP test message", "plain")
                    message["Subject"] = subject or "SMTP test"
                    message["From"] = self.target.from_email
                    message["To"] = to
                    server.send_message(message)
                else:
                    server.noop()
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"SMTP check failed: {exc}") from exc


@dataclass(slots=True)
class EmailDispatchResult:
    sent: bool
    message_id: str | None = None


class NotificationService:
    def __init__(self, session: AsyncSession, email_client: EmailClient | None = None) -> None:
        self.session = session
        self.email_client = email_client or EmailClient()

    async def is_enabled(self, event_type: str, channel: str) -> bool:
        config = await self.session.scalar(
            select(NotificationConfig).where(
                NotificationConfig.event_type == event_type,
                NotificationConfig.channel == channel,
            )
        )
        return bool(config is not None and config.is_enabled)

    async def send_event_email(
        self,
        *,
        event_type: str,
        recipient_email: str,
        template_data: dict[str, str],
    ) -> EmailDispatchResult:
        """Render the active template for ``event_type`` and send it.

        Nothing is sent when the event is disabled for the email channel.
        """
        if not await self.is_enabled(event_type, "email"):
            logger.info("Notification disabled for event=%s", event_type)
            return EmailDispatchResult(sent=False)

        category = EVENT_TEMPLATE_CATEGORIES.get(event_type)
        template = None
        if category is not None:
            template = await self.session.scalar(
                select(EmailTemplate)
                .where(EmailTemplate.category == category, EmailTemplate.is_active.is_(True))
                .limit(1)
            )
        if template is None:
            raise TemplateNotFoundError("Email template not found")

        subject = render_template(template.subject, template_data)
        html = render_template(template.body_html, template_data)
        message_id = await asyncio.to_thread(
            self.email_client.send, to=recipient_email, subject=subject, html=html
        )
        logger.info("Email sent event=%s message_id=%s", event_type, message_id)
        return EmailDispatchResult(sent=True, message_id=message_id)

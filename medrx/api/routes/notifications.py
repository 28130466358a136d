from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.auth import AuthContext, require_auth_context, require_super_admin
from medrx.core.db import get_db_session
from medrx.core.notifications import (
    NotificationConfigError,
    NotificationError,
    NotificationService,
    SmsGateway,
    SmtpProbe,
    SmtpTarget,
    TemplateNotFoundError,
)
from medrx.core.security.crypto import EncryptionError
from medrx.core.security.dependencies import get_secret_cipher
from medrx.models.notification_config import NotificationConfig, SmtpSettings
from medrx.schemas.notification import (
    EventEmailRequest,
    EventEmailResponse,
    NotificationConfigItem,
    SmsRequest,
    SmsResponse,
    SmtpTestRequest,
    SmtpTestResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/email", response_model=EventEmailResponse)
async def send_event_email(
    payload: EventEmailRequest,
    _: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> EventEmailResponse:
    logger.info("Processing notification event=%s", payload.event_type)
    template_data = dict(payload.template_data)
    if payload.recipient_name:
        template_data.setdefault("recipient_name", payload.recipient_name)

    service = NotificationService(session)
    try:
        result = await service.send_event_email(
            event_type=payload.event_type,
            recipient_email=payload.recipient_email,
            template_data=template_data,
        )
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except NotificationError as exc:
        logger.error("Email dispatch failed event=%s: %s", payload.event_type, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    if not result.sent:
        return EventEmailResponse(success=False, message="Notification disabled")
    return EventEmailResponse(success=True, message_id=result.message_id)


@router.post("/sms", response_model=SmsResponse)
async def send_sms(
    payload: SmsRequest,
    _: AuthContext = Depends(require_auth_context),
) -> SmsResponse | JSONResponse:
    gateway = SmsGateway()
    try:
        code = await asyncio.to_thread(gateway.send, phone_number=payload.phone_number, message=payload.message)
    except NotificationConfigError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except NotificationError as exc:
        logger.error("SMS error: %s code=%s", exc, exc.code)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(exc), "code": exc.code},
        )

    return SmsResponse(success=True, message="SMS sent successfully", code=code)


@router.post("/smtp/test", response_model=SmtpTestResponse)
async def test_smtp(
    payload: SmtpTestRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> SmtpTestResponse:
    smtp = await session.scalar(
        select(SmtpSettings).where(
            SmtpSettings.clinic_id.is_(None),
            SmtpSettings.is_active.is_(True),
        )
    )
    if smtp is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="SMTP settings not configured",
        )

    try:
        password = get_secret_cipher().decrypt(smtp.password_encrypted)
    except (EncryptionError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stored SMTP password could not be decrypted",
        ) from exc

    probe = SmtpProbe(
        SmtpTarget(
            host=smtp.host,
            port=smtp.port,
            from_email=smtp.from_email,
            username=smtp.username,
            password=password,
            use_tls=smtp.use_tls,
        )
    )
    try:
        await asyncio.to_thread(probe.check, to=payload.to, subject=payload.subject, body=payload.body)
    except NotificationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    message = f"Test email sent to {payload.to}" if payload.to else "SMTP connection verified"
    return SmtpTestResponse(
        success=True,
        message=message,
        host=smtp.host,
        port=smtp.port,
        from_email=smtp.from_email,
    )


@router.get("/config", response_model=list[NotificationConfigItem])
async def list_notification_config(
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> list[NotificationConfigItem]:
    rows = (
        await session.scalars(
            select(NotificationConfig).order_by(NotificationConfig.event_type, NotificationConfig.channel)
        )
    ).all()
    return [
        NotificationConfigItem(event_type=row.event_type, channel=row.channel, is_enabled=row.is_enabled)
        for row in rows
    ]


@router.put("/config", response_model=list[NotificationConfigItem])
async def update_notification_config(
    payload: list[NotificationConfigItem],
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> list[NotificationConfigItem]:
    for item in payload:
        existing = await session.scalar(
            select(NotificationConfig).where(
                NotificationConfig.event_type == item.event_type,
                NotificationConfig.channel == item.channel,
            )
        )
        if existing is None:
            session.add(
                NotificationConfig(
                    event_type=item.event_type,
                    channel=item.channel,
                    is_enabled=item.is_enabled,
                )
            )
        else:
            existing.is_enabled = item.is_enabled

    await session.commit()
    return payload

from __future__ import annotations

import asyncio
import contextlib
import html
import json
import logging
from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import FastAPI

from medrx.agents.health import AgentHealth
from medrx.core.config import settings
from medrx.core.notifications import EmailClient, NotificationError, SmsGateway

logger = logging.getLogger(__name__)


def plain_text_to_html(body: str) -> str:
    return "<br>".join(html.escape(line) for line in body.splitlines())


class NotificationDispatcher:
    def __init__(
        self,
        email_client: EmailClient | None = None,
        sms_gateway: SmsGateway | None = None,
    ) -> None:
        self.email_client = email_client or EmailClient()
        self.sms_gateway = sms_gateway or SmsGateway()

    async def dispatch(self, fields: dict[str, str]) -> None:
        channel = (fields.get("channel") or "").lower()
        destination = fields.get("destination")
        body = fields.get("body") or ""
        if not destination:
            raise NotificationError("Notification event is missing a destination")

        if channel == "sms":
            await asyncio.to_thread(self.sms_gateway.send, phone_number=destination, message=body)
        elif channel == "email":
            await asyncio.to_thread(
                self.email_client.send,
                to=destination,
                subject=fields.get("subject") or "Notification",
                html=plain_text_to_html(body),
            )
        else:
            raise NotificationError(f"Unsupported notification channel: {channel or 'missing'}")


class NotificationAgent:
    def __init__(self) -> None:
        self.health = AgentHealth(name="notification-agent", ready=True)
        self._stop_event = asyncio.Event()
        self._redis = redis.from_url(settings.redis_url, decode_responses=True)
        self._dispatcher = NotificationDispatcher()

    async def stop(self) -> None:
        self._stop_event.set()
        await self._redis.aclose()

    async def run(self) -> None:
        await self._ensure_consumer_group()

        retry_delay = 1
        while not self._stop_event.is_set():
            self.health.begin_cycle()
            try:
                messages = await self._redis.xreadgroup(
                    groupname=settings.notification_consumer_group,
                    consumername=settings.notification_consumer_name,
                    streams={settings.notification_stream_name: ">"},
                    count=50,
                    block=settings.notification_stream_block_ms,
                )
                for _stream, entries in messages or []:
                    for message_id, fields in entries:
                        await self._process_event(message_id, fields)

                self.health.cycle_succeeded()
                retry_delay = 1
            except Exception as exc:  # pragma: no cover - operational path
                self.health.cycle_failed(exc)
                logger.exception("Notification agent stream loop failed")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, 120)

    async def _ensure_consumer_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                name=settings.notification_stream_name,
                groupname=settings.notification_consumer_group,
                id="0",
                mkstream=True,
            )
        except Exception as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    async def _process_event(self, message_id: str, fields: dict[str, str]) -> None:
        try:
            await self._dispatcher.dispatch(fields)
            self.health.increment(f"{fields.get('channel', 'unknown')}_sent")
            logger.info("Dispatched %s notification kind=%s", fields.get("channel"), fields.get("kind"))
        except Exception as exc:
            self.health.increment("failed")
            logger.warning("Notification %s failed: %s", message_id, exc)
            await self._redis.xadd(
                settings.notification_failure_stream_name,
                {
                    "message_id": message_id,
                    "error": str(exc),
                    "payload": json.dumps(fields),
                    "failed_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        # Failed events are parked on the failure stream, so both paths ack.
        await self._redis.xack(
            settings.notification_stream_name,
            settings.notification_consumer_group,
            message_id,
        )


notification_agent = NotificationAgent()
app = FastAPI(title="MedRx Notification Agent")


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=settings.log_level)
    app.state.task = asyncio.create_task(notification_agent.run())


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await notification_agent.stop()
    task: asyncio.Task[None] = app.state.task
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@app.get("/health", tags=["system"])
async def health() -> dict[str, object]:
    return notification_agent.health.payload()


@app.get("/ready", tags=["system"])
async def ready() -> dict[str, bool]:
    return {"ready": notification_agent.health.ready}

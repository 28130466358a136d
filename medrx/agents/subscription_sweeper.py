from __future__ import annotations

import asyncio
import contextlib
import logging

import redis.asyncio as redis
from fastapi import FastAPI

from medrx.agents.health import AgentHealth
from medrx.core.config import settings
from medrx.core.db import AsyncSessionLocal
from medrx.core.sweeps import SweepResult, run_sweep

logger = logging.getLogger(__name__)


class SubscriptionSweeperAgent:
    """Periodically expires lapsed subscriptions and queues notices and reminders."""

    def __init__(self) -> None:
        self.health = AgentHealth(name="subscription-sweeper", ready=True)
        self._stop_event = asyncio.Event()

    async def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        retry_delay = 1
        while not self._stop_event.is_set():
            self.health.begin_cycle()
            try:
                await self.sweep_once()
                self.health.cycle_succeeded()
                retry_delay = 1
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=settings.subscription_sweep_interval_seconds
                )
            except asyncio.TimeoutError:
                continue
            except Exception as exc:  # pragma: no cover - operational path
                self.health.cycle_failed(exc)
                logger.exception("Subscription sweep failed")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, settings.sweeper_max_retry_delay_seconds)

    async def sweep_once(self) -> SweepResult:
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        try:
            async with AsyncSessionLocal() as session:
                result = await run_sweep(session, redis_client)
        finally:
            await redis_client.aclose()

        self.health.increment("expired_trials", result.expired_trials)
        self.health.increment("expired_subscriptions", result.expired_subscriptions)
        self.health.increment("expired_clinics", result.expired_clinics)
        self.health.increment("notices_queued", result.notices_queued)
        self.health.increment("reminders_queued", result.reminders_queued)
        return result


sweeper_agent = SubscriptionSweeperAgent()
app = FastAPI(title="MedRx Subscription Sweeper")


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=settings.log_level)
    app.state.task = asyncio.create_task(sweeper_agent.run())


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await sweeper_agent.stop()
    task: asyncio.Task[None] = app.state.task
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@app.get("/health", tags=["system"])
async def health() -> dict[str, object]:
    return sweeper_agent.health.payload()


@app.get("/ready", tags=["system"])
async def ready() -> dict[str, bool]:
    return {"ready": sweeper_agent.health.ready}

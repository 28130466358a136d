from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from uuid import UUID

import redis.asyncio as redis

from medrx.core.config import settings

logger = logging.getLogger(__name__)

StopCallback = Callable[[], None]


class VoiceRecordingCoordinator:
    """Single-owner microphone lock shared by the voice widgets of one page.

    A new request preempts the current holder: its stop callback is invoked
    once and the lock passes to the requester. Releases from anyone other than
    the current owner are ignored so a late release from a stale widget cannot
    clear a newer holder.
    """

    def __init__(self) -> None:
        self._active_recorder_id: str | None = None
        self._stop_callback: StopCallback | None = None

    @property
    def active_recorder_id(self) -> str | None:
        return self._active_recorder_id

    def is_recording(self, recorder_id: str) -> bool:
        return self._active_recorder_id == recorder_id

    def request_recording(self, recorder_id: str, stop_callback: StopCallback | None = None) -> bool:
        previous_id = self._active_recorder_id
        previous_callback = self._stop_callback

        if previous_id is not None and previous_id != recorder_id:
            logger.info("Preempting recorder %s for %s", previous_id, recorder_id)
            if previous_callback is not None:
                try:
                    previous_callback()
                except Exception:
                    logger.exception("Stop callback for recorder %s failed", previous_id)

        self._active_recorder_id = recorder_id
        self._stop_callback = stop_callback
        logger.info("Recording granted for %s", recorder_id)
        return True

    def release_recording(self, recorder_id: str) -> bool:
        if self._active_recorder_id != recorder_id:
            return False
        self._active_recorder_id = None
        self._stop_callback = None
        logger.info("Recording released for %s", recorder_id)
        return True


class VoiceSessionRegistry:
    """Per (profile, page) coordinators, evicting those left untouched for ``idle_seconds``."""

    def __init__(
        self,
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._coordinators: dict[tuple[UUID, str], VoiceRecordingCoordinator] = {}
        self._touched: dict[tuple[UUID, str], float] = {}
        self._idle_seconds = settings.voice_session_idle_seconds if idle_seconds is None else idle_seconds
        self._clock = clock

    def get(self, profile_id: UUID, page_id: str) -> VoiceRecordingCoordinator:
        now = self._clock()
        self._evict_idle(now)
        key = (profile_id, page_id)
        coordinator = self._coordinators.get(key)
        if coordinator is None:
            coordinator = VoiceRecordingCoordinator()
            self._coordinators[key] = coordinator
        self._touched[key] = now
        return coordinator

    def discard(self, profile_id: UUID, page_id: str) -> None:
        self._coordinators.pop((profile_id, page_id), None)
        self._touched.pop((profile_id, page_id), None)

    def _evict_idle(self, now: float) -> None:
        cutoff = now - self._idle_seconds
        stale = [key for key, touched in self._touched.items() if touched <= cutoff]
        for key in stale:
            self._coordinators.pop(key, None)
            self._touched.pop(key, None)
        if stale:
            logger.info("Evicted %d idle voice sessions", len(stale))

    def __len__(self) -> int:
        return len(self._coordinators)


def voice_stop_channel(profile_id: UUID, page_id: str) -> str:
    return f"voice:stop:{profile_id}:{page_id}"


async def publish_voice_stop(profile_id: UUID, page_id: str, recorder_id: str) -> None:
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis_client.publish(
            voice_stop_channel(profile_id, page_id),
            json.dumps({"recorder_id": recorder_id, "action": "stop"}),
        )
    finally:
        await redis_client.aclose()
    logger.info("Published stop for recorder %s page=%s", recorder_id, page_id)

from __future__ import annotations

import json
from uuid import uuid4

import pytest

from medrx.core.voice import (
    VoiceRecordingCoordinator,
    VoiceSessionRegistry,
    publish_voice_stop,
    voice_stop_channel,
)


def test_first_request_is_granted() -> None:
    coordinator = VoiceRecordingCoordinator()

    assert coordinator.request_recording("chief-complaint") is True
    assert coordinator.active_recorder_id == "chief-complaint"
    assert coordinator.is_recording("chief-complaint") is True


def test_preempting_invokes_only_previous_holders_callback() -> None:
    coordinator = VoiceRecordingCoordinator()
    stopped: list[str] = []

    coordinator.request_recording("a", stop_callback=lambda: stopped.append("a"))
    granted = coordinator.request_recording("b", stop_callback=lambda: stopped.append("b"))

    assert granted is True
    assert stopped == ["a"]
    assert coordinator.active_recorder_id == "b"
    assert coordinator.is_recording("a") is False


def test_callback_is_not_invoked_twice() -> None:
    coordinator = VoiceRecordingCoordinator()
    stopped: list[str] = []

    coordinator.request_recording("a", stop_callback=lambda: stopped.append("a"))
    coordinator.request_recording("b")
    coordinator.request_recording("c")

    assert stopped == ["a"]


def test_re_request_by_holder_replaces_callback_without_stopping() -> None:
    coordinator = VoiceRecordingCoordinator()
    stopped: list[str] = []

    coordinator.request_recording("a", stop_callback=lambda: stopped.append("first"))
    coordinator.request_recording("a", stop_callback=lambda: stopped.append("second"))
    assert stopped == []

    coordinator.request_recording("b")
    assert stopped == ["second"]


def test_failing_stop_callback_does_not_block_new_holder() -> None:
    coordinator = VoiceRecordingCoordinator()

    def _boom() -> None:
        raise RuntimeError("widget already unmounted")

    coordinator.request_recording("a", stop_callback=_boom)
    assert coordinator.request_recording("b") is True
    assert coordinator.active_recorder_id == "b"


def test_release_by_non_owner_is_ignored() -> None:
    coordinator = VoiceRecordingCoordinator()
    coordinator.request_recording("a")
    coordinator.request_recording("b")

    assert coordinator.release_recording("a") is False
    assert coordinator.active_recorder_id == "b"

    assert coordinator.release_recording("b") is True
    assert coordinator.active_recorder_id is None


def test_release_on_idle_coordinator() -> None:
    coordinator = VoiceRecordingCoordinator()
    assert coordinator.release_recording("a") is False
    assert coordinator.active_recorder_id is None


def test_released_holder_callback_is_dropped() -> None:
    coordinator = VoiceRecordingCoordinator()
    stopped: list[str] = []

    coordinator.request_recording("a", stop_callback=lambda: stopped.append("a"))
    coordinator.release_recording("a")
    coordinator.request_recording("b")

    assert stopped == []


def test_registry_isolates_pages_and_profiles() -> None:
    registry = VoiceSessionRegistry()
    doctor_a, doctor_b = uuid4(), uuid4()

    registry.get(doctor_a, "prescription").request_recording("x")
    registry.get(doctor_b, "prescription").request_recording("y")
    registry.get(doctor_a, "notes").request_recording("z")

    assert len(registry) == 3
    assert registry.get(doctor_a, "prescription").active_recorder_id == "x"
    assert registry.get(doctor_b, "prescription").active_recorder_id == "y"

    registry.discard(doctor_a, "notes")
    registry.discard(doctor_a, "missing")
    assert len(registry) == 2
    assert registry.get(doctor_a, "notes").active_recorder_id is None


def test_registry_evicts_sessions_left_idle() -> None:
    clock = [0.0]
    registry = VoiceSessionRegistry(idle_seconds=60, clock=lambda: clock[0])
    doctor = uuid4()

    for index in range(200):
        registry.get(doctor, f"page-{index}").request_recording("widget")
    assert len(registry) == 200

    clock[0] = 30.0
    registry.get(doctor, "page-7")
    clock[0] = 61.0
    kept = registry.get(doctor, "fresh")

    assert len(registry) == 2
    assert registry.get(doctor, "page-7").active_recorder_id == "widget"
    assert kept.active_recorder_id is None


@pytest.mark.asyncio
async def test_publish_voice_stop(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import voice

    published: list[tuple[str, str]] = []

    class _Redis:
        async def publish(self, channel: str, message: str) -> None:
            published.append((channel, message))

        async def aclose(self) -> None:
            return None

    monkeypatch.setattr(voice.redis, "from_url", lambda *a, **k: _Redis())

    profile_id = uuid4()
    await publish_voice_stop(profile_id, "prescription", "a")

    assert published[0][0] == voice_stop_channel(profile_id, "prescription")
    assert json.loads(published[0][1]) == {"recorder_id": "a", "action": "stop"}

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request

from medrx.core.auth import AuthContext, require_auth_context
from medrx.core.billing import require_feature
from medrx.core.subscription import AccessDecision
from medrx.core.transcription import TranscriptionClient, TranscriptionError
from medrx.core.voice import StopCallback, VoiceSessionRegistry, publish_voice_stop
from medrx.schemas.voice import (
    RecordingReleaseResponse,
    RecordingRequest,
    RecordingResponse,
    TranscriptionRequest,
    TranscriptionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/voice", tags=["voice"])

_background_tasks: set[asyncio.Task[None]] = set()


def _registry(request: Request) -> VoiceSessionRegistry:
    return request.app.state.voice_sessions


def _stop_signal(profile_id: UUID, page_id: str, recorder_id: str) -> StopCallback:
    def _callback() -> None:
        task = asyncio.get_running_loop().create_task(publish_voice_stop(profile_id, page_id, recorder_id))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    return _callback


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe(
    payload: TranscriptionRequest,
    _: AccessDecision = Depends(require_feature("prescriptions")),
) -> TranscriptionResponse:
    client = TranscriptionClient()
    try:
        text = await asyncio.to_thread(client.transcribe, payload.audio, payload.language)
    except TranscriptionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return TranscriptionResponse(text=text)


@router.post("/recording/request", response_model=RecordingResponse)
async def request_recording(
    payload: RecordingRequest,
    request: Request,
    auth: AuthContext = Depends(require_auth_context),
) -> RecordingResponse:
    coordinator = _registry(request).get(auth.profile_id, payload.page_id)
    previous = coordinator.active_recorder_id
    granted = coordinator.request_recording(
        payload.recorder_id,
        stop_callback=_stop_signal(auth.profile_id, payload.page_id, payload.recorder_id),
    )
    return RecordingResponse(
        granted=granted,
        active_recorder_id=coordinator.active_recorder_id,
        preempted_recorder_id=previous if previous not in (None, payload.recorder_id) else None,
    )


@router.post("/recording/release", response_model=RecordingReleaseResponse)
async def release_recording(
    payload: RecordingRequest,
    request: Request,
    auth: AuthContext = Depends(require_auth_context),
) -> RecordingReleaseResponse:
    registry = _registry(request)
    coordinator = registry.get(auth.profile_id, payload.page_id)
    released = coordinator.release_recording(payload.recorder_id)
    active = coordinator.active_recorder_id
    if active is None:
        registry.discard(auth.profile_id, payload.page_id)
    return RecordingReleaseResponse(released=released, active_recorder_id=active)

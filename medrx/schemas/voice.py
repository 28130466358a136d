from __future__ import annotations

from pydantic import BaseModel, Field

from medrx.core.transcription import SUPPORTED_LANGUAGES


class TranscriptionRequest(BaseModel):
    audio: str = Field(min_length=1)
    language: str = Field(default="en-US", pattern=f"^({'|'.join(SUPPORTED_LANGUAGES)})$")


class TranscriptionResponse(BaseModel):
    text: str


class RecordingRequest(BaseModel):
    page_id: str = Field(min_length=1, max_length=120)
    recorder_id: str = Field(min_length=1, max_length=120)


class RecordingResponse(BaseModel):
    granted: bool
    active_recorder_id: str | None = None
    preempted_recorder_id: str | None = None


class RecordingReleaseResponse(BaseModel):
    released: bool
    active_recorder_id: str | None = None

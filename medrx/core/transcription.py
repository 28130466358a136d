from __future__ import annotations

import base64
import binascii
import logging

import requests

from medrx.core.config import settings

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en-US", "bn-BD")

_PROMPTS = {
    "bn-BD": (
        "Listen carefully to this Bengali/Bangla audio recording and transcribe exactly what is "
        "being said in Bengali script. Only return the transcribed Bengali text, nothing else. "
        "Do not translate to English."
    ),
    "en-US": (
        "Listen to this English audio and transcribe exactly what is being said. "
        "Return only the transcribed English text, nothing else."
    ),
}


class TranscriptionError(ValueError):
    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


def prompt_for_language(language: str | None) -> str:
    return _PROMPTS.get(language or "en-US", _PROMPTS["en-US"])


class TranscriptionClient:
    """Speech-to-text through an OpenAI-compatible chat completion gateway."""

    def __init__(self) -> None:
        self.gateway_url = settings.ai_gateway_url

    def transcribe(self, audio_base64: str, language: str | None = None) -> str:
        if not audio_base64:
            raise TranscriptionError("No audio data provided", status_code=400)
        try:
            base64.b64decode(audio_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TranscriptionError("Audio payload is not valid base64", status_code=400) from exc
        if not settings.ai_gateway_api_key:
            raise TranscriptionError("AI_GATEWAY_API_KEY is not configured")

        response = requests.post(
            self.gateway_url,
            headers={"Authorization": f"Bearer {settings.ai_gateway_api_key}"},
            json={
                "model": settings.transcription_model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt_for_language(language)},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:audio/webm;base64,{audio_base64}"},
                            },
                        ],
                    }
                ],
            },
            timeout=60,
        )

        if response.status_code == 429:
            raise TranscriptionError(
                "Rate limit exceeded. Please wait a moment and try again.", status_code=429
            )
        if response.status_code == 402:
            raise TranscriptionError(
                "AI credits exhausted. Please add credits to your workspace.", status_code=402
            )
        if not response.ok:
            logger.error("Transcription gateway error status=%s body=%s", response.status_code, response.text)
            raise TranscriptionError(f"Transcription service error: {response.text}", status_code=502)

        body = response.json()
        choices = body.get("choices") or []
        text = ((choices[0].get("message") or {}).get("content") if choices else None) or ""
        logger.info("Transcription complete language=%s chars=%d", language, len(text))
        return text

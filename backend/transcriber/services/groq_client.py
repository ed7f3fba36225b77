"""Client for the Groq (OpenAI-compatible) Whisper transcription endpoint."""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Protocol

import httpx

from ..config import Settings
from ..errors import MisconfiguredServiceError, ProviderError
from ..models import AudioChunk, ChunkTranscription, TranscriptionSegment

logger = logging.getLogger(__name__)


class TranscriptionProvider(Protocol):
    """Anything able to transcribe one chunk with chunk-relative timestamps."""

    async def transcribe(self, chunk: AudioChunk) -> ChunkTranscription: ...


def confidence_from_logprob(avg_logprob: Optional[float]) -> Optional[float]:
    """Convert Whisper's average log-probability to a 0..1 score (4 decimals)."""
    if avg_logprob is None:
        return None
    return round(math.exp(avg_logprob), 4)


def normalize_response(payload: dict[str, Any], chunk: AudioChunk) -> ChunkTranscription:
    """Turn a ``verbose_json`` response into chunk-relative segments.

    When the provider returns text without a segment breakdown (very short
    chunks), a single segment spanning the whole chunk is synthesized.
    """
    if not isinstance(payload, dict):
        raise ProviderError(f"Malformed provider response for chunk {chunk.index}", chunk_index=chunk.index)

    segments: list[TranscriptionSegment] = []
    try:
        for idx, seg in enumerate(payload.get("segments") or []):
            segments.append(
                TranscriptionSegment(
                    id=idx,
                    start=float(seg["start"]),
                    end=float(seg["end"]),
                    text=seg.get("text", ""),
                    confidence=confidence_from_logprob(seg.get("avg_logprob")),
                )
            )
        text = payload.get("text") or ""
        if not segments and text:
            segments.append(TranscriptionSegment(id=0, start=0.0, end=chunk.duration, text=text))
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        # pydantic.ValidationError is a ValueError.
        raise ProviderError(
            f"Malformed segment in provider response for chunk {chunk.index}: {exc}",
            chunk_index=chunk.index,
        ) from exc

    return ChunkTranscription(segments=segments, language=payload.get("language") or "unknown")


class GroqTranscriptionClient:
    """Sends one chunk per request; there is no retry.

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise one is created per call.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self.model = settings.TRANSCRIPTION_MODEL
        self._http_client = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.settings.GROQ_API_URL.rstrip('/')}/audio/transcriptions"

    async def transcribe(self, chunk: AudioChunk) -> ChunkTranscription:
        if not self.settings.GROQ_API_KEY:
            raise MisconfiguredServiceError("GROQ_API_KEY is not set")

        logger.debug(
            "Transcribing chunk %d: %ss -> %ss (%s)",
            chunk.index, chunk.start_seconds, chunk.end_seconds, chunk.path.name,
        )
        data = {
            "model": self.model,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "segment",
        }
        headers = {"Authorization": f"Bearer {self.settings.GROQ_API_KEY}"}

        try:
            with open(chunk.path, "rb") as audio_file:
                files = {"file": (chunk.path.name, audio_file, "audio/mpeg")}
                if self._http_client is not None:
                    response = await self._http_client.post(self.endpoint, data=data, files=files, headers=headers)
                else:
                    async with httpx.AsyncClient(timeout=self.settings.PROVIDER_TIMEOUT_SECONDS) as client:
                        response = await client.post(self.endpoint, data=data, files=files, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Provider returned HTTP %s for chunk %d: %s",
                exc.response.status_code, chunk.index, exc.response.text[:500],
            )
            raise ProviderError(
                f"Transcription provider returned HTTP {exc.response.status_code} for chunk {chunk.index}",
                chunk_index=chunk.index,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Provider request failed for chunk %d: %s", chunk.index, exc)
            raise ProviderError(
                f"Transcription provider unreachable for chunk {chunk.index}: {exc}",
                chunk_index=chunk.index,
            ) from exc
        except ValueError as exc:
            logger.error("Provider returned invalid JSON for chunk %d: %s", chunk.index, exc)
            raise ProviderError(
                f"Malformed provider response for chunk {chunk.index}", chunk_index=chunk.index
            ) from exc

        return normalize_response(payload, chunk)

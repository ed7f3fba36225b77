"""Pydantic models describing transcripts as they leave the service.

Attributes are snake_case; JSON is emitted with camelCase aliases
(``jobId``, ``processingTimeMs`` ...) to keep the public wire format.
"""

from __future__ import annotations

from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptionSegment(CamelModel):
    """A span of recognized speech.

    Once merged by the pipeline, ``start``/``end`` are seconds relative to the
    original audio and ``id`` is the position in the final transcript.
    """

    id: int
    start: float
    end: float
    text: str
    confidence: Optional[float] = None


class AudioMetadata(CamelModel):
    original_name: str
    mime_type: str
    size_bytes: int
    format: str
    was_converted: bool
    chunks_processed: Optional[int] = None
    model: Optional[str] = None


class TranscriptionResult(CamelModel):
    job_id: str
    status: Literal["completed", "failed"]
    language: Optional[str] = None
    duration: Optional[float] = None
    text: str
    segments: list[TranscriptionSegment]
    processing_time_ms: int
    metadata: AudioMetadata


class JobAccepted(CamelModel):
    job_id: str


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapped around every HTTP response body."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None

"""Domain exceptions raised by the transcription pipeline.

Every exception carries the HTTP status the API layer maps it to, so the
FastAPI exception handler in :mod:`transcriber.main` stays a one-liner.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class TranscriptionServiceError(Exception):
    """Domain-level base exception so we can map to JSON responses easily."""

    status_code: int = 500

    def __init__(self, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class UnsupportedFormatError(TranscriptionServiceError):
    status_code = 415

    def __init__(self, extension: str, allowed: Iterable[str]) -> None:
        self.extension = extension
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unsupported audio format: .{extension}. Allowed: {', '.join(self.allowed)}"
        )


class FileTooLargeError(TranscriptionServiceError):
    status_code = 413

    def __init__(self, limit_mb: int) -> None:
        self.limit_mb = limit_mb
        super().__init__(f"File too large. Maximum allowed size is {limit_mb}MB.")


class MissingUploadError(TranscriptionServiceError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__('No audio file uploaded. Use form-data with key "audio".')


class TranscodeError(TranscriptionServiceError):
    """The transcoder could not convert the source audio."""

    status_code = 422


class ProbeError(TranscriptionServiceError):
    """The prober could not determine the duration of an audio file."""

    status_code = 422


class ChunkingError(TranscriptionServiceError):
    """A chunk could not be materialized.

    ``artifacts`` lists every chunk file the failed split may have written so
    the caller can delete them.
    """

    status_code = 500

    def __init__(self, index: int, reason: str, artifacts: Iterable[Path] = ()) -> None:
        self.index = index
        self.artifacts = list(artifacts)
        super().__init__(f"Chunking failed at chunk {index}: {reason}")


class ProviderError(TranscriptionServiceError):
    """The speech-recognition provider call failed."""

    status_code = 502

    def __init__(self, detail: str, chunk_index: Optional[int] = None) -> None:
        self.chunk_index = chunk_index
        super().__init__(detail)


class MisconfiguredServiceError(TranscriptionServiceError):
    status_code = 500

    def __init__(self, reason: str = "GROQ_API_KEY is not set") -> None:
        self.reason = reason
        super().__init__("Transcription service misconfigured.")


class JobNotFoundError(TranscriptionServiceError):
    status_code = 404

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidJobTransitionError(TranscriptionServiceError):
    status_code = 409

    def __init__(self, job_id: str, current: str, requested: str) -> None:
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(f"Job {job_id} cannot move from '{current}' to '{requested}'")

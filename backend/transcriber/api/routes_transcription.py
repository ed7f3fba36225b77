"""Transcription REST endpoints.

* ``POST /sync``          – upload ``audio`` and wait for the transcript.
* ``POST /async``         – upload ``audio`` and receive a job id (HTTP 202).
* ``GET  /jobs/{job_id}`` – poll an asynchronous job.
* ``GET  /health``        – static capability descriptor.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from ..errors import FileTooLargeError, MissingUploadError
from ..models import ApiResponse, JobAccepted, TranscriptionJob, TranscriptionResult
from ..services.audio_processing import audio_format
from ..services.transcription import TranscriptionService
from ..utils.storage import ensure_dir_exists

router = APIRouter()
logger = logging.getLogger(__name__)

UPLOAD_READ_SIZE = 1024 * 1024


def get_transcription_service(request: Request) -> TranscriptionService:
    return request.app.state.transcription_service


async def save_uploaded_file(file: UploadFile, service: TranscriptionService) -> tuple[Path, int]:
    """Validate and stream an upload to ``UPLOAD_DIR/<uuid><ext>``.

    Returns the saved path and its size in bytes.
    """
    service.preparer.validate_format(file.filename or "")

    settings = service.settings
    upload_dir = ensure_dir_exists(settings.UPLOAD_DIR)
    file_path = upload_dir / f"{uuid.uuid4()}.{audio_format(file.filename)}"
    max_bytes = settings.max_upload_size_bytes
    bytes_written = 0

    try:
        with open(file_path, "wb") as f:
            while True:
                chunk = await file.read(UPLOAD_READ_SIZE)
                if not chunk:
                    break
                bytes_written += len(chunk)
                # Enforce per-file size limit if configured (0 == unlimited)
                if max_bytes and bytes_written > max_bytes:
                    logger.warning(
                        "File upload exceeded max size. file=%s limit=%dMB",
                        file.filename,
                        settings.MAX_FILE_SIZE_MB,
                    )
                    raise FileTooLargeError(settings.MAX_FILE_SIZE_MB)
                f.write(chunk)
    except Exception:
        file_path.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    logger.info("Saved upload '%s' (%d bytes) to '%s'", file.filename, bytes_written, file_path)
    return file_path, bytes_written


@router.get("/health")
async def health_check(service: TranscriptionService = Depends(get_transcription_service)) -> dict[str, Any]:
    settings = service.settings
    return {
        "success": True,
        "service": "Transcription Pipeline",
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "supportedFormats": list(settings.ALLOWED_FORMATS),
        "model": settings.TRANSCRIPTION_MODEL,
        "chunkDurationSeconds": settings.CHUNK_DURATION_SECONDS,
        "maxFileSizeMb": settings.MAX_FILE_SIZE_MB,
    }


@router.post("/sync", response_model=ApiResponse[TranscriptionResult])
async def transcribe_sync(
    audio: Optional[UploadFile] = File(None),
    service: TranscriptionService = Depends(get_transcription_service),
) -> ApiResponse[TranscriptionResult]:
    """Upload an audio file and receive the transcription in one request."""
    if audio is None or not audio.filename:
        raise MissingUploadError()

    path, size = await save_uploaded_file(audio, service)
    logger.info("Sync transcription request: %s (%d bytes)", audio.filename, size)

    result = await service.transcribe_sync(
        path, audio.filename, audio.content_type or "application/octet-stream", size
    )
    return ApiResponse(success=True, data=result, message="Transcription completed successfully.")


@router.post(
    "/async",
    response_model=ApiResponse[JobAccepted],
    status_code=status.HTTP_202_ACCEPTED,
)
async def transcribe_async(
    request: Request,
    audio: Optional[UploadFile] = File(None),
    service: TranscriptionService = Depends(get_transcription_service),
) -> ApiResponse[JobAccepted]:
    """Upload an audio file and receive a job id to poll."""
    if audio is None or not audio.filename:
        raise MissingUploadError()

    path, size = await save_uploaded_file(audio, service)
    logger.info("Async transcription request: %s (%d bytes)", audio.filename, size)

    job_id = await service.transcribe_async(
        path, audio.filename, audio.content_type or "application/octet-stream", size
    )
    poll_url = request.url_for("get_job_status", job_id=job_id).path
    return ApiResponse(
        success=True,
        data=JobAccepted(job_id=job_id),
        message=f"Job accepted. Poll GET {poll_url} for status.",
    )


@router.get("/jobs/{job_id}", response_model=ApiResponse[TranscriptionJob])
async def get_job_status(
    job_id: str,
    service: TranscriptionService = Depends(get_transcription_service),
) -> ApiResponse[TranscriptionJob]:
    """Return the current state of an asynchronous job (404 if unknown)."""
    return ApiResponse(success=True, data=service.get_job(job_id))

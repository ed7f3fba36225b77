"""Synchronous and background execution of the transcription pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..errors import InvalidJobTransitionError, JobNotFoundError, TranscriptionServiceError
from ..models import JobStatus, TranscriptionJob, TranscriptionResult
from ..utils.storage import cleanup_files, job_work_dir, remove_work_dir
from .audio_processing import AudioPreparer
from .chunker import Chunker
from .groq_client import GroqTranscriptionClient, TranscriptionProvider
from .job_store import InMemoryJobStore, JobStore
from .pipeline import PipelineOrchestrator

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Internal error during transcription."


class TranscriptionService:
    """Entry point for both execution modes.

    ``transcribe_sync`` runs the pipeline inline and lets errors propagate.
    ``transcribe_async`` records a pending job, schedules the work on the
    running event loop and returns the job id straight away.  Either way every
    temp file created for the request (the upload included) is deleted once
    the work is over.
    """

    def __init__(
        self,
        settings: Settings,
        preparer: AudioPreparer,
        pipeline: PipelineOrchestrator,
        job_store: JobStore,
    ) -> None:
        self.settings = settings
        self.preparer = preparer
        self.pipeline = pipeline
        self.job_store = job_store
        self._job_slots = asyncio.Semaphore(max(1, settings.MAX_CONCURRENT_JOBS))
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        job_store: Optional[JobStore] = None,
        provider: Optional[TranscriptionProvider] = None,
    ) -> "TranscriptionService":
        """Wire the default collaborators for ``settings``."""
        chunker = Chunker(
            settings.CHUNK_DURATION_SECONDS,
            concurrency=settings.CHUNK_CONCURRENCY,
            ffmpeg_cmd=settings.FFMPEG_PATH,
            ffprobe_cmd=settings.FFPROBE_PATH,
        )
        pipeline = PipelineOrchestrator(chunker, provider or GroqTranscriptionClient(settings))
        return cls(settings, AudioPreparer(settings), pipeline, job_store or InMemoryJobStore())

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def transcribe_sync(
        self,
        upload_path: Path,
        original_name: str,
        mime_type: str,
        size_bytes: int,
    ) -> TranscriptionResult:
        job_id = str(uuid.uuid4())
        started = time.perf_counter()
        cleanup: list[Path] = [upload_path]
        work_dir: Optional[Path] = None
        logger.info("[%s] Starting synchronous transcription: %s", job_id, original_name)

        try:
            work_dir = job_work_dir(self.settings.TEMP_DIR, job_id)
            result = await self._execute(
                job_id, upload_path, original_name, mime_type, size_bytes, work_dir, cleanup, started
            )
            logger.info("[%s] Transcription completed in %dms", job_id, result.processing_time_ms)
            return result
        finally:
            self._cleanup(job_id, cleanup, work_dir)

    async def transcribe_async(
        self,
        upload_path: Path,
        original_name: str,
        mime_type: str,
        size_bytes: int,
    ) -> str:
        job_id = str(uuid.uuid4())
        self.job_store.create(job_id)

        task = asyncio.create_task(
            self._process_job_in_background(job_id, upload_path, original_name, mime_type, size_bytes),
            name=f"transcription-{job_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("[%s] Accepted asynchronous transcription: %s", job_id, original_name)
        return job_id

    def get_job(self, job_id: str) -> TranscriptionJob:
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for background jobs to finish; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return
        logger.info("Waiting for %d background job(s) to finish", len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d background job(s) still running at shutdown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _execute(
        self,
        job_id: str,
        upload_path: Path,
        original_name: str,
        mime_type: str,
        size_bytes: int,
        work_dir: Path,
        cleanup: list[Path],
        started: float,
    ) -> TranscriptionResult:
        prepared = await self.preparer.prepare_audio(
            upload_path, original_name, mime_type, size_bytes, work_dir
        )
        if prepared.metadata.was_converted:
            cleanup.append(prepared.processed_path)

        output = await self.pipeline.run(prepared.processed_path, job_id, work_dir, cleanup)

        metadata = prepared.metadata.model_copy(
            update={"chunks_processed": output.chunks_processed, "model": self.settings.TRANSCRIPTION_MODEL}
        )
        return TranscriptionResult(
            job_id=job_id,
            status="completed",
            language=output.language,
            duration=prepared.duration,
            text=output.full_text,
            segments=output.segments,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            metadata=metadata,
        )

    async def _process_job_in_background(
        self,
        job_id: str,
        upload_path: Path,
        original_name: str,
        mime_type: str,
        size_bytes: int,
    ) -> None:
        cleanup: list[Path] = [upload_path]
        work_dir: Optional[Path] = None

        try:
            async with self._job_slots:
                self.job_store.transition(job_id, JobStatus.PROCESSING)
                started = time.perf_counter()
                work_dir = job_work_dir(self.settings.TEMP_DIR, job_id)
                result = await self._execute(
                    job_id, upload_path, original_name, mime_type, size_bytes, work_dir, cleanup, started
                )
                self.job_store.transition(job_id, JobStatus.COMPLETED, result=result)
                logger.info("[%s] Background job completed in %dms", job_id, result.processing_time_ms)
        except TranscriptionServiceError as exc:
            logger.error("[%s] Background job failed: %s", job_id, exc.detail)
            self._record_failure(job_id, exc.detail)
        except asyncio.CancelledError:
            logger.warning("[%s] Background job cancelled", job_id)
            self._record_failure(job_id, "Job cancelled before completion.")
            raise
        except Exception as exc:
            logger.exception("[%s] Background job crashed: %s", job_id, exc)
            self._record_failure(job_id, GENERIC_FAILURE_MESSAGE)
        finally:
            self._cleanup(job_id, cleanup, work_dir)

    def _record_failure(self, job_id: str, message: str) -> None:
        try:
            self.job_store.transition(job_id, JobStatus.FAILED, error=message)
        except (InvalidJobTransitionError, JobNotFoundError) as exc:
            logger.error("[%s] Could not mark job as failed: %s", job_id, exc)

    def _cleanup(self, job_id: str, cleanup: list[Path], work_dir: Optional[Path]) -> None:
        logger.debug("[%s] Cleaning up %d temp file(s)", job_id, len(cleanup))
        cleanup_files(cleanup)
        if work_dir is not None:
            remove_work_dir(work_dir)

"""Keyed store tracking the lifecycle of asynchronous transcription jobs."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from ..errors import InvalidJobTransitionError, JobNotFoundError
from ..models import JobStatus, TranscriptionJob, TranscriptionResult

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class JobStore(ABC):
    """Interface the transcription service records job state through.

    Implementations must be safe to call from concurrent tasks and threads.
    """

    @abstractmethod
    def create(self, job_id: str) -> TranscriptionJob: ...

    @abstractmethod
    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: Optional[TranscriptionResult] = None,
        error: Optional[str] = None,
    ) -> TranscriptionJob: ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[TranscriptionJob]: ...


class InMemoryJobStore(JobStore):
    """Process-local store. Entries are never evicted."""

    def __init__(self) -> None:
        self._jobs: dict[str, TranscriptionJob] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, job_id: str) -> TranscriptionJob:
        now = datetime.now(timezone.utc)
        job = TranscriptionJob(job_id=job_id, created_at=now, updated_at=now)
        with self._lock:
            if job_id in self._jobs:
                raise ValueError(f"Job {job_id} already exists")
            self._jobs[job_id] = job
        logger.debug("[%s] Job created (pending)", job_id)
        return job.model_copy()

    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: Optional[TranscriptionResult] = None,
        error: Optional[str] = None,
    ) -> TranscriptionJob:
        """Move a job to ``status`` and refresh ``updated_at``.

        Only pending -> processing -> completed|failed (or pending -> failed)
        is accepted; terminal jobs never change again.
        """
        with self._lock:
            existing = self._jobs.get(job_id)
            if existing is None:
                raise JobNotFoundError(job_id)
            if status not in ALLOWED_TRANSITIONS[existing.status]:
                raise InvalidJobTransitionError(job_id, existing.status.value, status.value)
            updated = existing.model_copy(
                update={
                    "status": status,
                    "result": result if result is not None else existing.result,
                    "error": error if error is not None else existing.error,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            self._jobs[job_id] = updated
        logger.debug("[%s] Job %s -> %s", job_id, existing.status.value, status.value)
        return updated.model_copy()

    def get(self, job_id: str) -> Optional[TranscriptionJob]:
        with self._lock:
            job = self._jobs.get(job_id)
        return job.model_copy() if job is not None else None

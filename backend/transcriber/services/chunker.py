"""Splits long audio into ordered, contiguous, independently encoded chunks."""

from __future__ import annotations

import asyncio
import logging
import math
from pathlib import Path

from ..errors import ChunkingError, TranscriptionServiceError
from ..models import AudioChunk
from ..utils import ffmpeg as ffmpeg_utils

logger = logging.getLogger(__name__)


def plan_chunks(duration: float, chunk_duration_seconds: float) -> list[tuple[float, float]]:
    """Return the ``(start, end)`` interval of every chunk covering ``[0, duration)``.

    Intervals are contiguous and the last one ends exactly at ``duration``.
    """
    if chunk_duration_seconds <= 0:
        raise ValueError("chunk_duration_seconds must be positive")
    if duration <= chunk_duration_seconds:
        return [(0.0, duration)]
    total = math.ceil(duration / chunk_duration_seconds)
    return [
        (i * chunk_duration_seconds, min((i + 1) * chunk_duration_seconds, duration))
        for i in range(total)
    ]


class Chunker:
    """Materializes chunks concurrently and returns them in index order.

    Args:
        chunk_duration_seconds: maximum length of a chunk.
        concurrency: how many ffmpeg processes may run at once.
        ffmpeg_cmd / ffprobe_cmd: executables handed to ffmpeg-python.
    """

    def __init__(
        self,
        chunk_duration_seconds: float,
        concurrency: int = 4,
        ffmpeg_cmd: str = "ffmpeg",
        ffprobe_cmd: str = "ffprobe",
    ) -> None:
        self.chunk_duration_seconds = chunk_duration_seconds
        self.concurrency = max(1, concurrency)
        self.ffmpeg_cmd = ffmpeg_cmd
        self.ffprobe_cmd = ffprobe_cmd

    async def split(self, input_path: Path, output_dir: Path) -> list[AudioChunk]:
        """Split ``input_path`` into chunks written under ``output_dir``.

        Audio no longer than one chunk is returned as a single chunk pointing
        at ``input_path`` itself; nothing is written in that case.

        Raises:
            ProbeError: the total duration could not be determined.
            ChunkingError: a chunk could not be written. Its ``artifacts``
                name every file the split may have left behind; deleting
                them is the caller's job.
        """
        duration = await asyncio.to_thread(ffmpeg_utils.probe_duration, input_path, self.ffprobe_cmd)
        intervals = plan_chunks(duration, self.chunk_duration_seconds)
        logger.debug(
            "Audio duration: %ss, chunk size: %ss, chunks: %d",
            duration, self.chunk_duration_seconds, len(intervals),
        )

        if len(intervals) == 1:
            return [AudioChunk(path=input_path, start_seconds=0.0, end_seconds=duration, index=0)]

        planned = [
            AudioChunk(path=output_dir / f"chunk_{i}.mp3", start_seconds=start, end_seconds=end, index=i)
            for i, (start, end) in enumerate(intervals)
        ]
        semaphore = asyncio.Semaphore(self.concurrency)
        aborted = asyncio.Event()

        async def materialize(chunk: AudioChunk) -> AudioChunk | None:
            async with semaphore:
                if aborted.is_set():
                    return None
                try:
                    await asyncio.to_thread(
                        ffmpeg_utils.transcode_to_mp3,
                        input_path,
                        chunk.path,
                        start=chunk.start_seconds,
                        duration=chunk.duration,
                        ffmpeg_cmd=self.ffmpeg_cmd,
                    )
                except TranscriptionServiceError as exc:
                    aborted.set()
                    raise ChunkingError(chunk.index, exc.detail) from exc
                except Exception as exc:
                    aborted.set()
                    raise ChunkingError(chunk.index, str(exc)) from exc
            return chunk

        tasks = [asyncio.create_task(materialize(chunk)) for chunk in planned]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            # Nothing may still be writing into output_dir once we return.
            aborted.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning("Chunking of %s cancelled", input_path.name)
            raise

        failures = [t.exception() for t in done if t.exception() is not None]
        if failures:
            # Chunks still waiting for a slot are skipped; ffmpeg processes
            # already running cannot be interrupted, so let them settle.
            aborted.set()
            await asyncio.gather(*pending, return_exceptions=True)
            failure = min(failures, key=lambda exc: getattr(exc, "index", len(planned)))
            logger.error("Chunking aborted: %s", failure)
            if isinstance(failure, ChunkingError):
                failure.artifacts = [chunk.path for chunk in planned]
            raise failure

        chunks = sorted((task.result() for task in tasks), key=lambda c: c.index)
        logger.info("Split %s into %d chunks of up to %ss", input_path.name, len(chunks), self.chunk_duration_seconds)
        return chunks


async def split_audio_into_chunks(
    input_path: Path,
    output_dir: Path,
    chunk_duration_seconds: float,
    concurrency: int = 4,
) -> list[AudioChunk]:
    """One-shot helper around :meth:`Chunker.split` using the default executables."""
    return await Chunker(chunk_duration_seconds, concurrency=concurrency).split(input_path, output_dir)

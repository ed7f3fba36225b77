"""Chunk -> transcribe -> merge pipeline for one prepared audio file."""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import ChunkingError, ProviderError
from ..models import PipelineOutput, TranscriptionSegment
from .chunker import Chunker
from .groq_client import TranscriptionProvider

logger = logging.getLogger(__name__)


def join_segment_text(segments: list[TranscriptionSegment]) -> str:
    return " ".join(seg.text.strip() for seg in segments)


class PipelineOrchestrator:
    """Runs every chunk through the provider and rebases the results onto one timeline."""

    def __init__(self, chunker: Chunker, provider: TranscriptionProvider) -> None:
        self.chunker = chunker
        self.provider = provider

    async def run(
        self,
        processed_path: Path,
        job_id: str,
        work_dir: Path,
        cleanup: list[Path],
    ) -> PipelineOutput:
        """Transcribe ``processed_path`` chunk by chunk.

        Chunk files written by the split are appended to ``cleanup`` before any
        provider call is made, so the caller removes them whatever happens next.
        """
        try:
            chunks = await self.chunker.split(processed_path, work_dir)
        except ChunkingError as exc:
            cleanup.extend(exc.artifacts)
            raise
        logger.info("[%s] Processing %d chunk(s)...", job_id, len(chunks))

        if len(chunks) > 1:
            cleanup.extend(chunk.path for chunk in chunks)

        all_segments: list[TranscriptionSegment] = []
        detected_language = "unknown"

        for chunk in chunks:
            try:
                transcription = await self.provider.transcribe(chunk)
            except ProviderError as exc:
                logger.error("[%s] Transcription failed at chunk %d: %s", job_id, chunk.index, exc.detail)
                if exc.chunk_index is None:
                    raise ProviderError(
                        f"Transcription failed at chunk {chunk.index}: {exc.detail}",
                        chunk_index=chunk.index,
                    ) from exc
                raise
            # Last chunk wins; languages are not voted across chunks.
            detected_language = transcription.language

            for seg in sorted(transcription.segments, key=lambda s: s.start):
                all_segments.append(
                    seg.model_copy(
                        update={
                            "id": len(all_segments),
                            "start": seg.start + chunk.start_seconds,
                            "end": seg.end + chunk.start_seconds,
                        }
                    )
                )
            logger.debug(
                "[%s] Chunk %d merged: %d segment(s), offset %ss",
                job_id, chunk.index, len(transcription.segments), chunk.start_seconds,
            )

        return PipelineOutput(
            segments=all_segments,
            full_text=join_segment_text(all_segments),
            language=detected_language,
            chunks_processed=len(chunks),
        )

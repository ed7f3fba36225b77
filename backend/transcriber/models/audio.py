"""Audio entities passed between the preparation, chunking and pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .transcription import AudioMetadata, TranscriptionSegment


@dataclass(frozen=True)
class AudioChunk:
    """A time-bounded slice of the source audio, materialized as its own file.

    ``start_seconds`` and ``end_seconds`` are offsets into the original audio.
    """

    path: Path
    start_seconds: float
    end_seconds: float
    index: int

    @property
    def duration(self) -> float:
        return self.end_seconds - self.start_seconds


@dataclass
class PreparedAudio:
    """Outcome of normalizing an upload into a provider-compatible file."""

    processed_path: Path
    metadata: AudioMetadata
    duration: float


@dataclass
class ChunkTranscription:
    """Provider output for one chunk, with chunk-relative timestamps."""

    segments: list[TranscriptionSegment]
    language: str


@dataclass
class PipelineOutput:
    segments: list[TranscriptionSegment]
    full_text: str
    language: str
    chunks_processed: int

# Namespace for Pydantic models and pipeline data classes.
from .audio import AudioChunk, ChunkTranscription, PipelineOutput, PreparedAudio
from .job import JobStatus, TranscriptionJob
from .transcription import (
    ApiResponse,
    AudioMetadata,
    JobAccepted,
    TranscriptionResult,
    TranscriptionSegment,
)

__all__ = [
    "ApiResponse",
    "AudioChunk",
    "AudioMetadata",
    "ChunkTranscription",
    "JobAccepted",
    "JobStatus",
    "PipelineOutput",
    "PreparedAudio",
    "TranscriptionJob",
    "TranscriptionResult",
    "TranscriptionSegment",
]

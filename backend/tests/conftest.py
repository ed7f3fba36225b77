"""Shared fixtures: isolated settings, a fake ffmpeg and fake providers."""

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from transcriber.config import Settings
from transcriber.errors import ProviderError, TranscodeError
from transcriber.models import AudioChunk, ChunkTranscription, TranscriptionSegment
from transcriber.utils import ffmpeg as ffmpeg_utils


class FakeMedia:
    """Stands in for ffmpeg/ffprobe.

    Durations are looked up by file name; transcoding writes a small file and
    records the window that was requested.
    """

    def __init__(self, default_duration: float = 15.0) -> None:
        self.default_duration = default_duration
        self.durations: dict[str, float] = {}
        self.transcode_calls: list[dict] = []
        self.fail_outputs: set[str] = set()
        self.delays: dict[str, float] = {}
        self._lock = threading.Lock()

    def probe_duration(self, input_path: Path, ffprobe_cmd: str = "ffprobe") -> float:
        return self.durations.get(Path(input_path).name, self.default_duration)

    def transcode_to_mp3(self, input_path, output_path, *, start=None, duration=None, ffmpeg_cmd="ffmpeg"):
        with self._lock:
            self.transcode_calls.append(
                {"input": Path(input_path), "output": Path(output_path), "start": start, "duration": duration}
            )
        if output_path.name in self.delays:
            time.sleep(self.delays[output_path.name])
        if output_path.name in self.fail_outputs:
            raise TranscodeError(f"Format conversion failed: cannot write {output_path.name}")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"ID3-fake-mp3")
        with self._lock:
            self.durations[output_path.name] = (
                duration if duration is not None else self.probe_duration(input_path)
            )
        return output_path


class FakeProvider:
    """Returns ``segments_per_chunk`` five-second segments for every chunk."""

    def __init__(self, segments_per_chunk: int = 2, languages=None, fail_at=None, error=None) -> None:
        self.segments_per_chunk = segments_per_chunk
        self.languages = languages or {}
        self.fail_at = fail_at
        self.error = error
        self.calls: list[AudioChunk] = []

    async def transcribe(self, chunk: AudioChunk) -> ChunkTranscription:
        self.calls.append(chunk)
        assert chunk.path.exists(), f"chunk file {chunk.path} missing"
        if chunk.index == self.fail_at:
            raise self.error or ProviderError("provider exploded")
        segments = [
            TranscriptionSegment(
                id=i,
                start=i * 5.0,
                end=i * 5.0 + 5.0,
                text=f" chunk{chunk.index} part{i} ",
                confidence=0.9,
            )
            for i in range(self.segments_per_chunk)
        ]
        return ChunkTranscription(segments=segments, language=self.languages.get(chunk.index, "en"))


class GatedProvider(FakeProvider):
    """Blocks inside ``transcribe`` until ``release`` is set (thread-safe gates)."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    async def transcribe(self, chunk: AudioChunk) -> ChunkTranscription:
        self.started.set()
        await asyncio.to_thread(self.release.wait, 5)
        return await super().transcribe(chunk)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        UPLOAD_DIR=tmp_path / "uploads",
        TEMP_DIR=tmp_path / "temp",
        LOG_DIR=tmp_path / "logs",
        GROQ_API_KEY="test-key",
        CHUNK_DURATION_SECONDS=600,
        MAX_CONCURRENT_JOBS=4,
        TRANSCRIPTION_MODEL="whisper-large-v3",
    )


@pytest.fixture
def fake_media():
    media = FakeMedia()
    with patch.object(ffmpeg_utils, "probe_duration", side_effect=media.probe_duration), \
         patch.object(ffmpeg_utils, "transcode_to_mp3", side_effect=media.transcode_to_mp3):
        yield media


@pytest.fixture
def make_upload(settings: Settings):
    def _make(name: str = "upload.mp3", content: bytes = b"fake audio bytes") -> Path:
        settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
        path = settings.UPLOAD_DIR / name
        path.write_bytes(content)
        return path

    return _make


def leftover_files(root: Path) -> list[Path]:
    """Every file still present below ``root``."""
    if not root.exists():
        return []
    return [p for p in root.rglob("*") if p.is_file()]

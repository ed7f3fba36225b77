import asyncio

import pytest
from unittest.mock import patch

from transcriber.errors import ChunkingError, JobNotFoundError, ProviderError, TranscodeError
from transcriber.models import JobStatus
from transcriber.services.transcription import GENERIC_FAILURE_MESSAGE, TranscriptionService
from transcriber.utils import ffmpeg as ffmpeg_utils

from .conftest import FakeProvider, GatedProvider, leftover_files


def _service(settings, provider=None) -> TranscriptionService:
    return TranscriptionService.from_settings(settings, provider=provider or FakeProvider())


def _assert_no_temp_files(settings):
    assert leftover_files(settings.UPLOAD_DIR) == []
    assert leftover_files(settings.TEMP_DIR) == []
    if settings.TEMP_DIR.exists():
        assert list(settings.TEMP_DIR.iterdir()) == []


@pytest.mark.asyncio
async def test_sync_transcription_of_short_native_file(settings, fake_media, make_upload):
    upload = make_upload("meeting.mp3")
    provider = FakeProvider(segments_per_chunk=2, languages={0: "en"})

    result = await _service(settings, provider).transcribe_sync(upload, "meeting.mp3", "audio/mpeg", 16)

    assert result.status == "completed"
    assert result.language == "en"
    assert result.duration == 15.0
    assert result.text == "chunk0 part0 chunk0 part1"
    assert [s.id for s in result.segments] == [0, 1]
    assert result.processing_time_ms >= 0
    assert result.metadata.original_name == "meeting.mp3"
    assert result.metadata.was_converted is False
    assert result.metadata.chunks_processed == 1
    assert result.metadata.model == "whisper-large-v3"
    assert fake_media.transcode_calls == []
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_sync_transcription_of_long_converted_file(settings, fake_media, make_upload):
    upload = make_upload("lecture.flac")
    fake_media.durations["lecture.flac"] = 1000.0

    result = await _service(settings).transcribe_sync(upload, "lecture.flac", "audio/flac", 4096)

    assert result.metadata.was_converted is True
    assert result.metadata.format == "flac"
    assert result.metadata.chunks_processed == 2
    assert result.duration == 1000.0
    assert [(s.start, s.end) for s in result.segments] == [(0, 5), (5, 10), (600, 605), (605, 610)]
    # One conversion plus two chunk encodes.
    assert len(fake_media.transcode_calls) == 3
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_sync_provider_failure_propagates_and_cleans_up(settings, fake_media, make_upload):
    upload = make_upload("long.mp3")
    fake_media.durations["long.mp3"] = 1500.0

    with pytest.raises(ProviderError) as excinfo:
        await _service(settings, FakeProvider(fail_at=2)).transcribe_sync(upload, "long.mp3", "audio/mpeg", 10)

    assert "chunk 2" in excinfo.value.detail
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_sync_preparation_failure_still_removes_upload(settings, fake_media, make_upload):
    upload = make_upload("broken.ogg")

    def _fail(input_path, output_path, **kwargs):
        raise TranscodeError("Format conversion failed: corrupt header")

    with patch.object(ffmpeg_utils, "transcode_to_mp3", side_effect=_fail), pytest.raises(TranscodeError):
        await _service(settings).transcribe_sync(upload, "broken.ogg", "audio/ogg", 10)

    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_sync_chunking_failure_removes_written_chunks(settings, fake_media, make_upload):
    upload = make_upload("long.mp3")
    fake_media.durations["long.mp3"] = 1500.0
    fake_media.fail_outputs = {"chunk_1.mp3"}

    with pytest.raises(ChunkingError) as excinfo:
        await _service(settings).transcribe_sync(upload, "long.mp3", "audio/mpeg", 10)

    assert excinfo.value.index == 1
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_async_job_completes(settings, fake_media, make_upload):
    service = _service(settings)
    upload = make_upload("memo.m4a")

    job_id = await service.transcribe_async(upload, "memo.m4a", "audio/mp4", 16)
    assert service.get_job(job_id).status in (JobStatus.PENDING, JobStatus.PROCESSING)

    await service.drain()

    job = service.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.error is None
    assert job.result.job_id == job_id
    assert job.result.text == "chunk0 part0 chunk0 part1"
    assert job.updated_at >= job.created_at
    assert service.active_jobs == 0
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_async_job_records_classified_failure(settings, fake_media, make_upload):
    service = _service(settings, FakeProvider(fail_at=2))
    upload = make_upload("long.mp3")
    fake_media.durations["long.mp3"] = 1500.0

    job_id = await service.transcribe_async(upload, "long.mp3", "audio/mpeg", 16)
    await service.drain()

    job = service.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.result is None
    assert job.error == "Transcription failed at chunk 2: provider exploded"
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_async_job_hides_unexpected_errors(settings, fake_media, make_upload):
    service = _service(settings, FakeProvider(fail_at=0, error=RuntimeError("secret internals")))
    upload = make_upload("clip.wav")

    job_id = await service.transcribe_async(upload, "clip.wav", "audio/wav", 16)
    await service.drain()

    job = service.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == GENERIC_FAILURE_MESSAGE
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_background_jobs_are_bounded(settings, fake_media, make_upload):
    settings.MAX_CONCURRENT_JOBS = 1
    provider = GatedProvider()
    service = _service(settings, provider)

    first = await service.transcribe_async(make_upload("a.mp3"), "a.mp3", "audio/mpeg", 16)
    second = await service.transcribe_async(make_upload("b.mp3"), "b.mp3", "audio/mpeg", 16)

    assert await asyncio.to_thread(provider.started.wait, 5)
    assert service.get_job(first).status == JobStatus.PROCESSING
    assert service.get_job(second).status == JobStatus.PENDING

    provider.release.set()
    await service.drain(timeout=5)

    assert service.get_job(first).status == JobStatus.COMPLETED
    assert service.get_job(second).status == JobStatus.COMPLETED
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_drain_timeout_cancels_and_fails_running_jobs(settings, fake_media, make_upload):
    provider = GatedProvider()
    service = _service(settings, provider)

    job_id = await service.transcribe_async(make_upload("stuck.mp3"), "stuck.mp3", "audio/mpeg", 16)
    assert await asyncio.to_thread(provider.started.wait, 5)

    await service.drain(timeout=0.05)
    provider.release.set()

    job = service.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "Job cancelled before completion."
    assert service.active_jobs == 0
    _assert_no_temp_files(settings)


def test_unknown_job_raises(settings):
    with pytest.raises(JobNotFoundError) as excinfo:
        _service(settings).get_job("does-not-exist")
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_async_chunking_failure_marks_job_failed_and_cleans_up(settings, fake_media, make_upload):
    service = _service(settings)
    upload = make_upload("long.mp3")
    fake_media.durations["long.mp3"] = 1500.0
    fake_media.fail_outputs = {"chunk_1.mp3"}

    job_id = await service.transcribe_async(upload, "long.mp3", "audio/mpeg", 16)
    await service.drain()

    job = service.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "Chunking failed at chunk 1: Format conversion failed: cannot write chunk_1.mp3"
    _assert_no_temp_files(settings)


@pytest.mark.asyncio
async def test_drain_timeout_during_chunking_leaves_no_chunk_files(settings, fake_media, make_upload):
    provider = FakeProvider()
    service = _service(settings, provider)
    fake_media.durations["long.mp3"] = 1500.0
    fake_media.delays = {f"chunk_{i}.mp3": 0.3 for i in range(3)}

    job_id = await service.transcribe_async(make_upload("long.mp3"), "long.mp3", "audio/mpeg", 16)
    await service.drain(timeout=0.05)

    job = service.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "Job cancelled before completion."
    assert provider.calls == []
    assert service.active_jobs == 0
    _assert_no_temp_files(settings)

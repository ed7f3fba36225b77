"""Thin wrappers around ffmpeg/ffprobe built on ``ffmpeg-python``.

Each helper blocks until the external process finishes; async callers run them
through :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

import ffmpeg

from ..errors import ProbeError, TranscodeError

logger = logging.getLogger(__name__)

FFMPEG_GLOBAL_ARGS = ["-hide_banner", "-loglevel", "error"]
MP3_CODEC = "libmp3lame"
MP3_BITRATE = "128k"


def _stderr_text(exc: ffmpeg.Error) -> str:
    return exc.stderr.decode("utf8", errors="replace").strip() if exc.stderr else str(exc)


def _remove_partial(output_path: Path) -> None:
    if output_path.exists():
        try:
            output_path.unlink()
            logger.debug("Removed partially created file: %s", output_path)
        except OSError as os_err:
            logger.error("Could not remove partially created file %s: %s", output_path, os_err)


def probe_duration(input_path: Path, ffprobe_cmd: str = "ffprobe") -> float:
    """Return the duration of ``input_path`` in seconds.

    Raises:
        ProbeError: if ffprobe fails or reports no positive duration.
    """
    try:
        info = ffmpeg.probe(str(input_path), cmd=ffprobe_cmd)
    except ffmpeg.Error as exc:
        details = _stderr_text(exc)
        logger.error("ffprobe failed for %s: %s", input_path, details)
        raise ProbeError(f"ffprobe failed: {details}") from exc

    raw = (info.get("format") or {}).get("duration")
    try:
        duration = float(raw) if raw is not None else 0.0
    except (TypeError, ValueError):
        duration = 0.0
    if duration <= 0:
        logger.error("Could not determine audio duration for %s (reported: %r)", input_path, raw)
        raise ProbeError("Could not determine audio duration")
    return duration


def transcode_to_mp3(
    input_path: Path,
    output_path: Path,
    *,
    start: float | None = None,
    duration: float | None = None,
    ffmpeg_cmd: str = "ffmpeg",
) -> Path:
    """Encode ``input_path`` (optionally a ``[start, start+duration)`` window) to MP3.

    Raises:
        TranscodeError: if ffmpeg exits with an error. Partial output is removed.
    """
    input_kwargs = {}
    if start is not None:
        input_kwargs["ss"] = start
    if duration is not None:
        input_kwargs["t"] = duration

    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        source = ffmpeg.input(str(input_path), **input_kwargs)
        stream = ffmpeg.output(source, str(output_path), acodec=MP3_CODEC, audio_bitrate=MP3_BITRATE)
        stream = stream.global_args(*FFMPEG_GLOBAL_ARGS)
        ffmpeg.run(
            stream,
            cmd=ffmpeg_cmd,
            overwrite_output=True,
            capture_stdout=True,
            capture_stderr=True,
        )
    except ffmpeg.Error as exc:
        details = _stderr_text(exc)
        logger.error("FFmpeg error writing %s. Details: %s", output_path, details)
        _remove_partial(output_path)
        raise TranscodeError(f"Format conversion failed: {details}") from exc

    logger.debug("Wrote MP3 %s (start=%s, duration=%s)", output_path, start, duration)
    return output_path


def convert_to_mp3(input_path: Path, output_dir: Path, ffmpeg_cmd: str = "ffmpeg") -> Path:
    """Convert any audio format to MP3 under ``output_dir`` and return the new path."""
    output_path = output_dir / f"converted_{uuid.uuid4().hex}.mp3"
    return transcode_to_mp3(input_path, output_path, ffmpeg_cmd=ffmpeg_cmd)

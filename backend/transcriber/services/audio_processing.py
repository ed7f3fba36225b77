"""Normalization of uploaded audio into a provider-compatible file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from ..config import Settings
from ..errors import UnsupportedFormatError
from ..models import AudioMetadata, PreparedAudio
from ..utils import ffmpeg as ffmpeg_utils
from ..utils.storage import ensure_dir_exists

logger = logging.getLogger(__name__)


def audio_format(filename: str) -> str:
    """Format tag of ``filename``: its lower-cased extension without the dot."""
    return Path(filename).suffix.lower().lstrip(".")


class AudioPreparer:
    """Decides whether an upload needs transcoding and measures its duration."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def is_format_allowed(self, filename: str) -> bool:
        return audio_format(filename) in self.settings.ALLOWED_FORMATS

    def validate_format(self, filename: str) -> str:
        """Return the format tag of ``filename`` or raise :class:`UnsupportedFormatError`."""
        fmt = audio_format(filename)
        if fmt not in self.settings.ALLOWED_FORMATS:
            logger.warning("Rejected upload '%s': format '.%s' is not allowed", filename, fmt)
            raise UnsupportedFormatError(fmt, self.settings.ALLOWED_FORMATS)
        return fmt

    def is_native_format(self, filename: str) -> bool:
        return audio_format(filename) in self.settings.NATIVE_FORMATS

    def ensure_directories(self) -> None:
        for path in (self.settings.UPLOAD_DIR, self.settings.TEMP_DIR):
            ensure_dir_exists(path)
            logger.debug("Ensured directory exists: %s", path)

    async def prepare_audio(
        self,
        source_path: Path,
        original_name: str,
        mime_type: str,
        size_bytes: int,
        work_dir: Path,
    ) -> PreparedAudio:
        """Normalize ``source_path`` for the provider.

        Native formats are passed through untouched.  Anything else is
        transcoded to MP3 inside ``work_dir``; the caller owns the new file.

        Raises:
            TranscodeError: the conversion failed.
            ProbeError: the duration of the processed file is unknown.
        """
        fmt = audio_format(original_name)
        is_native = fmt in self.settings.NATIVE_FORMATS
        logger.info("Preparing audio: format=%s, native=%s, size=%d bytes", fmt, is_native, size_bytes)

        processed_path = source_path
        was_converted = False
        if not is_native:
            logger.info("Format '%s' not natively supported by Whisper, converting to MP3...", fmt)
            processed_path = await asyncio.to_thread(
                ffmpeg_utils.convert_to_mp3, source_path, work_dir, self.settings.FFMPEG_PATH
            )
            was_converted = True

        try:
            duration = await asyncio.to_thread(
                ffmpeg_utils.probe_duration, processed_path, self.settings.FFPROBE_PATH
            )
        except Exception:
            # The converted file is ours until we hand it back.
            if was_converted:
                processed_path.unlink(missing_ok=True)
            raise

        metadata = AudioMetadata(
            original_name=original_name,
            mime_type=mime_type,
            size_bytes=size_bytes,
            format=fmt,
            was_converted=was_converted,
        )
        return PreparedAudio(processed_path=processed_path, metadata=metadata, duration=duration)

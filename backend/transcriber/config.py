"""Application-wide configuration loader.

Every setting is read from the environment once, at import time, and exposed
through the module-level ``settings`` instance.  Components receive the
instance explicitly so tests can build their own ``Settings`` with overrides.
"""

import os
from pathlib import Path

# Formats Whisper accepts without prior conversion.
WHISPER_NATIVE_FORMATS = ("mp3", "mp4", "mpeg", "mpga", "m4a", "wav", "webm")

# Model identifiers the provider endpoint understands.
TRANSCRIPTION_MODELS = (
    "whisper-large-v3",         # Groq, best quality
    "whisper-large-v3-turbo",   # Groq, faster, slightly lower quality
    "distil-whisper-large-v2",  # Groq, fastest, English only
    "whisper-1",                # OpenAI legacy
)


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip().lower().lstrip(".") for item in value.split(",") if item.strip())


class Settings:
    """Settings helper that gracefully falls back to sane defaults.

    Rationale
    ---------
    When docker-compose injects an environment variable whose value is empty
    (e.g. ``GROQ_API_URL=""``) ``os.getenv("GROQ_API_URL", default)`` returns
    an empty string *not* ``None`` and the empty string would override the
    in-code default.  Every setting therefore uses the idiom

        os.getenv(KEY) or DEFAULT

    so that *falsy* values are replaced by the specified DEFAULT.

    Keyword arguments passed to the constructor override the environment,
    which is how the test-suite builds isolated configurations.
    """

    def __init__(self, **overrides) -> None:
        self.PORT: int = int(os.getenv("PORT") or "3000")
        self.APP_ENV: str = os.getenv("APP_ENV") or "development"

        self.GROQ_API_KEY: str = os.getenv("GROQ_API_KEY") or ""
        self.GROQ_API_URL: str = os.getenv("GROQ_API_URL") or "https://api.groq.com/openai/v1"
        self.TRANSCRIPTION_MODEL: str = os.getenv("TRANSCRIPTION_MODEL") or "whisper-large-v3"
        self.PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS") or "300")

        self.MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB") or "100")
        self.CHUNK_DURATION_SECONDS: int = int(os.getenv("CHUNK_DURATION_SECONDS") or "600")
        self.CHUNK_CONCURRENCY: int = int(os.getenv("CHUNK_CONCURRENCY") or "4")
        self.MAX_CONCURRENT_JOBS: int = int(os.getenv("MAX_CONCURRENT_JOBS") or "4")
        self.ALLOWED_FORMATS: tuple[str, ...] = _split_csv(
            os.getenv("ALLOWED_FORMATS") or "mp3,wav,m4a,ogg,flac,webm,mp4,mpeg"
        )
        self.NATIVE_FORMATS: tuple[str, ...] = WHISPER_NATIVE_FORMATS

        self.UPLOAD_DIR: Path = Path(os.getenv("UPLOAD_DIR") or "uploads").resolve()
        self.TEMP_DIR: Path = Path(os.getenv("TEMP_DIR") or "temp").resolve()
        self.LOG_DIR: Path = Path(os.getenv("LOG_DIR") or "logs").resolve()

        self.FFMPEG_PATH: str = os.getenv("FFMPEG_PATH") or "ffmpeg"
        self.FFPROBE_PATH: str = os.getenv("FFPROBE_PATH") or "ffprobe"

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

        if self.TRANSCRIPTION_MODEL not in TRANSCRIPTION_MODELS:
            raise ValueError(
                f"Unsupported TRANSCRIPTION_MODEL '{self.TRANSCRIPTION_MODEL}'. "
                f"Expected one of: {', '.join(TRANSCRIPTION_MODELS)}"
            )

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def max_upload_size_bytes(self) -> int:
        """Per-file upload limit in bytes (0 == unlimited)."""
        return self.MAX_FILE_SIZE_MB * 1024 * 1024


settings = Settings()

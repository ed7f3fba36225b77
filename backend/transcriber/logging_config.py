import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from transcriber.config import settings

LOG_DIR: Path = settings.LOG_DIR
COMBINED_LOG_FILE = LOG_DIR / "combined.log"
ERROR_LOG_FILE = LOG_DIR / "error.log"


def setup_logging(log_dir: Path | None = None) -> None:
    """
    Configures logging for the application.
    Outputs to console, a combined log file and an error-only log file.
    """
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    log_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s"
    )
    level = logging.INFO if settings.is_production else logging.DEBUG

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)

    # 5MB per file, 2 backups
    combined_handler = RotatingFileHandler(log_dir / COMBINED_LOG_FILE.name, maxBytes=1024*1024*5, backupCount=2)
    combined_handler.setFormatter(log_formatter)

    error_handler = RotatingFileHandler(log_dir / ERROR_LOG_FILE.name, maxBytes=1024*1024*5, backupCount=2)
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(log_formatter)

    # Avoid adding handlers multiple times
    if not root_logger.handlers:
        root_logger.addHandler(console_handler)
        root_logger.addHandler(combined_handler)
        root_logger.addHandler(error_handler)
    else:
        has_file_handler = any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers)
        if not has_file_handler:
            root_logger.addHandler(combined_handler)
            root_logger.addHandler(error_handler)
        has_console_handler = any(
            isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
            for h in root_logger.handlers
        )
        if not has_console_handler:
            root_logger.addHandler(console_handler)

    logging.getLogger("transcriber").setLevel(level)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.info("Logging configured successfully (console and file).")

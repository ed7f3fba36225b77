"""Filesystem helpers for uploads and temporary pipeline artifacts."""

import logging
import shutil
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


def ensure_dir_exists(path: Path) -> Path:
    """Ensure that the given directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def job_work_dir(temp_dir: Path, job_id: str) -> Path:
    """Per-job scratch directory so concurrent jobs never share chunk names."""
    return ensure_dir_exists(temp_dir / job_id)


def cleanup_files(file_paths: Iterable[Path]) -> None:
    """Delete temporary files. Failures are logged, never raised."""
    for file_path in file_paths:
        try:
            if file_path.exists():
                file_path.unlink()
                logger.debug("Cleaned up temp file: %s", file_path)
        except OSError as exc:
            logger.warning("Failed to delete temp file %s: %s", file_path, exc)


def remove_work_dir(path: Path) -> None:
    """Remove a per-job work directory together with anything left inside it."""
    if not path.is_dir():
        return
    leftovers = [p for p in path.rglob("*") if p.is_file()]
    if leftovers:
        logger.warning("Work directory %s still held %d file(s): %s", path, len(leftovers), leftovers)
    try:
        shutil.rmtree(path)
        logger.debug("Removed work directory: %s", path)
    except OSError as exc:
        logger.warning("Failed to remove work directory %s: %s", path, exc)

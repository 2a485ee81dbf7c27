"""Durable JSON documents on disk.

Reads are tolerant: a missing, unreadable or corrupt file yields the
caller's default. Writes are atomic (temp file + rename).
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, TypeVar

import structlog


logger = structlog.get_logger()

T = TypeVar("T")


def load_json(path: Path, default: Callable[[], T]) -> Any:
    """Load a JSON document.

    Args:
        path: File to read
        default: Factory for the value returned when the file is unusable

    Returns:
        Parsed JSON value, or default()
    """
    if not path.exists():
        return default()

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("store_unreadable", path=str(path), error=str(e))
        return default()


def save_json(path: Path, data: Any) -> None:
    """Atomically write a JSON document.

    Uses write-to-temp-then-rename pattern for crash safety.

    Args:
        path: Destination file
        data: JSON-serializable value
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (for atomic rename)
    temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        shutil.move(temp_path, str(path))

    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise

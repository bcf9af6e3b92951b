"""Local storage for uploaded and generated images.

Files are written into a single directory that the web application also
serves under ``/images/``. Names carry a millisecond timestamp, and every
file is created exclusively: if the timestamped name is already taken a
counter suffix is appended, so two writers can never overwrite each
other's artifact.
"""

from __future__ import annotations

import logging
import os
import re
import time
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Tuple

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 1000

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")


def now_ms() -> int:
    return int(time.time() * 1000)


def _ensure_dir(path: Path) -> None:
    """Create the directory (and parents) if it does not exist."""
    os.makedirs(path, exist_ok=True)


def sanitize_filename(original_name: str) -> Tuple[str, str]:
    """Split a client-supplied file name into a safe base and extension.

    Directory components are dropped and every character outside
    ``[A-Za-z0-9-_.]`` becomes ``_``. A missing extension becomes ``.bin``.
    """
    name = os.path.basename((original_name or "").replace("\\", "/"))
    base, ext = os.path.splitext(name)
    base = _UNSAFE_CHARS.sub("_", base) or "file"
    ext = _UNSAFE_CHARS.sub("_", ext) if ext else ".bin"
    return base, ext


def upload_filename(original_name: str, timestamp_ms: int | None = None) -> str:
    """Return ``<safeBase>_<millis><ext>`` for an uploaded file."""
    base, ext = sanitize_filename(original_name)
    stamp = now_ms() if timestamp_ms is None else timestamp_ms
    return f"{base}_{stamp}{ext}"


def artifact_filename(timestamp_ms: int | None = None) -> str:
    """Return ``image_<millis>.png`` for a generated image."""
    stamp = now_ms() if timestamp_ms is None else timestamp_ms
    return f"image_{stamp}.png"


def _reserve(directory: Path, filename: str) -> Tuple[Path, BinaryIO]:
    _ensure_dir(directory)
    stem, ext = os.path.splitext(filename)
    for attempt in range(MAX_NAME_ATTEMPTS):
        candidate = filename if attempt == 0 else f"{stem}_{attempt}{ext}"
        path = directory / candidate
        try:
            return path, open(path, "xb")
        except FileExistsError:
            continue
    raise FileExistsError(f"No free file name for {filename} in {directory}")


@contextmanager
def open_unique(directory: Path, filename: str) -> Iterator[Tuple[Path, BinaryIO]]:
    """Create a new file for writing under a name nobody else holds.

    Yields the final path and the open binary handle. If the body raises,
    the partially written file is removed before the error propagates.
    """
    path, fh = _reserve(directory, filename)
    try:
        with fh:
            yield path, fh
    except BaseException:
        logger.warning("Removing partially written file %s", path)
        path.unlink(missing_ok=True)
        raise


def save_bytes(directory: Path, filename: str, data: bytes) -> Path:
    """Persist ``data`` under ``filename`` (or a suffixed variant of it).

    Returns:
        The path actually written.
    """
    with open_unique(directory, filename) as (path, fh):
        fh.write(data)
    return path


def resolve_stored(directory: Path, filename: str) -> Path:
    """Return the path of a stored file, refusing names outside ``directory``.

    Raises:
        FileNotFoundError: If the name escapes the directory or no such file exists.
    """
    root = directory.resolve()
    path = (root / filename).resolve()
    if path.parent != root or not path.is_file():
        raise FileNotFoundError(filename)
    return path

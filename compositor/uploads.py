"""Upload handling: validation and storage of client images."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import Settings
from .errors import RejectedMimeType, TooLarge, UploadFailed
from .storage import save_bytes, upload_filename

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {"image/png", "image/jpeg", "image/jpg", "image/gif", "image/webp"}
)


@dataclass(frozen=True)
class StoredUpload:
    stored_name: str
    mime_type: str
    size: int
    public_url: str


def validate_upload(mime_type: str | None, size: int, max_bytes: int) -> None:
    """Reject uploads with a disallowed MIME type or an oversized payload.

    Raises:
        RejectedMimeType: ``mime_type`` is not one of the allowed image types.
        TooLarge: ``size`` exceeds ``max_bytes``.
    """
    if (mime_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise RejectedMimeType(f"Rejected MIME type {mime_type!r}")
    if size > max_bytes:
        raise TooLarge(f"Upload of {size} bytes exceeds limit of {max_bytes}")


def store_upload(data: bytes, original_name: str, mime_type: str | None, settings: Settings) -> StoredUpload:
    """Validate and persist an uploaded file.

    Nothing is written when validation fails.
    """
    validate_upload(mime_type, len(data), settings.max_upload_bytes)
    try:
        path = save_bytes(settings.image_dir, upload_filename(original_name), data)
    except OSError as exc:
        raise UploadFailed(f"Could not store upload {original_name!r}: {exc}") from exc
    logger.info("Stored upload %s (%s, %d bytes)", path.name, mime_type, len(data))
    return StoredUpload(
        stored_name=path.name,
        mime_type=mime_type or "",
        size=len(data),
        public_url=settings.public_url(path.name),
    )

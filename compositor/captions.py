"""Caption compositing pipeline.

``compose`` ties the pieces together: resolve the source reference,
decode it, render image + overlay + caption, then stream the PNG into a
freshly reserved file in the image directory. Blocking Pillow and disk
work runs in the thread pool so the event loop keeps serving requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx
from fastapi.concurrency import run_in_threadpool
from PIL import Image  # type: ignore[import]

from . import image_ops, storage
from .config import Settings
from .errors import EncodeError
from .fonts import Font
from .sources import fetch_image_bytes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedArtifact:
    """A generated PNG persisted in the image directory."""

    filename: str
    path: Path
    url: str


def save_png(image: Image.Image, directory: Path) -> Path:
    """Write ``image`` to ``image_<millis>.png`` in ``directory``.

    Raises:
        EncodeError: If encoding or writing fails. The partial file is removed.
    """
    try:
        with storage.open_unique(directory, storage.artifact_filename()) as (path, fh):
            image_ops.write_png(image, fh)
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Could not write PNG into {directory}: {exc}") from exc
    return path


def _render(data: bytes, text: str, font: Font) -> Image.Image:
    source = image_ops.decode_image(data)
    return image_ops.render_caption(source, text, font)


async def compose(
    image_source: str,
    text: str,
    *,
    settings: Settings,
    font: Font,
    client: httpx.AsyncClient,
) -> RenderedArtifact:
    """Render ``text`` over the image behind ``image_source`` and store it.

    Raises:
        DecodeError: The source could not be fetched or decoded.
        EncodeError: The PNG could not be encoded or written.
    """
    data = await fetch_image_bytes(image_source, settings, client)
    rendered = await run_in_threadpool(_render, data, text, font)
    path = await run_in_threadpool(save_png, rendered, settings.image_dir)
    artifact = RenderedArtifact(filename=path.name, path=path, url=settings.public_url(path.name))
    logger.info("Generated %s (%dx%d)", artifact.filename, rendered.width, rendered.height)
    return artifact

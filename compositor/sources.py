"""Resolution of caption source references into raw image bytes.

A source may be a remote ``http(s)`` URL, an inline ``data:`` URL, or a
URL pointing back at this service's own ``/images/`` route, which is read
straight from the storage directory.
"""

from __future__ import annotations

import base64
import binascii
import logging
from urllib.parse import unquote, urlparse

import httpx
from fastapi.concurrency import run_in_threadpool

from .config import Settings
from .errors import DecodeError
from .storage import resolve_stored

logger = logging.getLogger(__name__)


def decode_data_url(data_url: str) -> bytes:
    """Return the payload of a base64 ``data:`` URL.

    Expects ``data:image/png;base64,AAAA...``.
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise DecodeError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload in data URL: {exc}") from exc


def _local_name(image_source: str, settings: Settings) -> str | None:
    prefix = f"{settings.domain}/images/"
    if not image_source.startswith(prefix):
        return None
    remainder = image_source[len(prefix):]
    remainder = remainder.split("#", 1)[0].split("?", 1)[0]
    return unquote(remainder)


async def fetch_image_bytes(image_source: str, settings: Settings, client: httpx.AsyncClient) -> bytes:
    """Load the bytes behind ``image_source``.

    Args:
        image_source: URL given by the client.
        settings: Active settings; supplies the domain and storage directory.
        client: HTTP client used for remote sources.

    Raises:
        DecodeError: If the reference is unsupported, missing or unreachable.
    """
    if image_source.startswith("data:"):
        return decode_data_url(image_source)

    local_name = _local_name(image_source, settings)
    if local_name is not None:
        try:
            path = resolve_stored(settings.image_dir, local_name)
        except FileNotFoundError as exc:
            raise DecodeError(f"No stored image named {local_name!r}") from exc
        logger.debug("Reading stored source image %s", path)
        return await run_in_threadpool(path.read_bytes)

    parsed = urlparse(image_source)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise DecodeError(f"Unsupported image source: {image_source!r}")

    try:
        response = await client.get(image_source)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise DecodeError(f"Could not fetch {image_source}: {exc}") from exc
    return response.content

"""Runtime settings for the caption compositor.

Every value is read from the environment (a ``.env`` file in the working
directory is honoured through python-dotenv). Relative paths are resolved
against the project root so the service behaves the same regardless of
the directory it is started from.

Environment variables:
    FONT_PATH: TrueType/OpenType font used for captions.
    FONT_REQUIRED: Refuse to start when the font cannot be loaded.
    IMAGE_PATH: Directory holding uploads and generated images.
    PUBLIC_PATH: Directory served as generic static assets.
    DOMAIN: Public URL root used to build returned image URLs.
    HOST / PORT: Listen address.
    MAX_UPLOAD_BYTES: Upload size ceiling (default 10 MiB).
    FETCH_TIMEOUT: Seconds allowed for fetching a remote source image.
    LOG_LEVEL: Root log level.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_FONT_PATH = "fonts/TiroDevanagariMarathi-Italic.ttf"
DEFAULT_IMAGE_PATH = "public/images"
DEFAULT_PUBLIC_PATH = "public"
DEFAULT_DOMAIN = "http://localhost:5500"
DEFAULT_PORT = 5500
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _resolve(path: str) -> Path:
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


@dataclass(frozen=True)
class Settings:
    """Aggregated service configuration."""

    font_path: Path
    image_dir: Path
    public_dir: Path
    domain: str
    font_required: bool = False
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    fetch_timeout: float = 30.0
    log_level: str = "INFO"

    def public_url(self, filename: str) -> str:
        """Return the URL under which a stored file is served."""
        return f"{self.domain}/images/{filename}"


def load_settings() -> Settings:
    """Build a fresh :class:`Settings` from the current environment."""
    load_dotenv(find_dotenv(usecwd=True))
    return Settings(
        font_path=_resolve(_env("FONT_PATH", DEFAULT_FONT_PATH)),
        image_dir=_resolve(_env("IMAGE_PATH", DEFAULT_IMAGE_PATH)),
        public_dir=_resolve(_env("PUBLIC_PATH", DEFAULT_PUBLIC_PATH)),
        domain=_env("DOMAIN", DEFAULT_DOMAIN).rstrip("/"),
        font_required=_env_bool("FONT_REQUIRED", False),
        host=_env("HOST", "0.0.0.0"),
        port=_env_int("PORT", DEFAULT_PORT),
        max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        fetch_timeout=_env_float("FETCH_TIMEOUT", 30.0),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = ["Settings", "get_settings", "load_settings", "PROJECT_ROOT"]

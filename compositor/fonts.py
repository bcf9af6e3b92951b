"""Caption font loading.

The configured face is loaded once at startup. Whether it loaded is kept
in a :class:`FontStatus` so the health endpoint can report a service that
is rendering with the fallback face instead of the intended one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from PIL import ImageFont  # type: ignore[import]

from .errors import FontUnavailable

logger = logging.getLogger(__name__)

FONT_SIZE = 50

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


@dataclass(frozen=True)
class FontStatus:
    """Outcome of loading the caption font."""

    path: str
    loaded: bool
    family: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "path": self.path,
            "loaded": self.loaded,
            "family": self.family,
            "error": self.error,
        }


def load_caption_font(
    path: Path, size: int = FONT_SIZE, required: bool = False
) -> tuple[Font, FontStatus]:
    """Load the caption font, falling back to Pillow's default face.

    Args:
        path: Font file to load.
        size: Point size of the caption text.
        required: Raise instead of falling back when the file is unusable.

    Returns:
        The font object and a status record describing which face is used.

    Raises:
        FontUnavailable: If ``required`` is set and the font cannot be loaded.
    """
    try:
        font = ImageFont.truetype(str(path), size=size)
    except OSError as exc:
        if required:
            raise FontUnavailable(f"Could not load font from {path}: {exc}") from exc
        logger.warning("Could not load font from %s (%s); using default font", path, exc)
        return ImageFont.load_default(size=size), FontStatus(path=str(path), loaded=False, error=str(exc))

    family, _style = font.getname()
    logger.info("Font loaded successfully from: %s", path)
    return font, FontStatus(path=str(path), loaded=True, family=family)

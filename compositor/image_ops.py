"""Image manipulation utilities.

This module holds the Pillow side of the compositor: decoding source
bytes, laying out caption lines, drawing image + overlay + text onto a
fresh surface and streaming the PNG encoding into a file.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import BinaryIO, List

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError  # type: ignore[import]

from .errors import DecodeError
from .fonts import Font

LINE_HEIGHT = 60
OVERLAY_COLOR = (0, 0, 0, round(255 * 0.3))
TEXT_COLOR = (255, 255, 255, 255)


@dataclass(frozen=True)
class TextLine:
    """One caption line and the point its middle is anchored on."""

    text: str
    x: float
    y: float


def decode_image(data: bytes) -> Image.Image:
    """Decode raw image bytes into an RGBA bitmap of the original size.

    Raises:
        DecodeError: If the bytes are not an image Pillow can read.
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Could not decode source image: {exc}") from exc
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    return img


def layout_caption(text: str, width: int, height: int, line_height: int = LINE_HEIGHT) -> List[TextLine]:
    """Split ``text`` on line breaks and center the block on the surface.

    Each line gets one full pitch whether or not it holds any glyphs, and
    the block is centered using the pitch rather than measured glyph
    metrics. No wrapping is done; lines wider than the surface overflow.
    Only ``"\\n"`` separates lines, so a ``"\\r"`` before it stays in the line.
    """
    lines = text.split("\n")
    total_height = len(lines) * line_height
    start_y = (height - total_height) / 2 + line_height / 2
    return [
        TextLine(text=line, x=width / 2, y=start_y + index * line_height)
        for index, line in enumerate(lines)
    ]


def _draw_line(draw: ImageDraw.ImageDraw, line: TextLine, font: Font) -> None:
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text((line.x, line.y), line.text, font=font, fill=TEXT_COLOR, anchor="mm")
        return
    # Bitmap fonts have no anchor support; center on the bounding box instead.
    left, top, right, bottom = draw.textbbox((0, 0), line.text, font=font)
    x = line.x - (left + right) / 2
    y = line.y - (top + bottom) / 2
    draw.text((x, y), line.text, font=font, fill=TEXT_COLOR)


def render_caption(source: Image.Image, text: str, font: Font) -> Image.Image:
    """Composite ``source``, a 30% black overlay and ``text`` onto a new surface.

    The surface has exactly the source's dimensions and the source is left
    untouched.
    """
    surface = Image.new("RGBA", source.size, (0, 0, 0, 0))
    surface.paste(source.convert("RGBA"), (0, 0))

    overlay = Image.new("RGBA", surface.size, OVERLAY_COLOR)
    surface = Image.alpha_composite(surface, overlay)

    draw = ImageDraw.Draw(surface)
    for line in layout_caption(text, surface.width, surface.height):
        _draw_line(draw, line, font)
    return surface


def write_png(image: Image.Image, fp: BinaryIO) -> None:
    """Encode ``image`` as PNG directly into an open binary file.

    Pillow's encoder flushes compressed blocks to ``fp`` as it goes, so the
    full encoded image is never held in memory.
    """
    image.save(fp, format="PNG")

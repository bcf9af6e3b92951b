"""Shared fixtures: sandboxed settings, a test client and in-memory images."""

import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image, ImageFont  # type: ignore

from compositor.config import Settings


def png_bytes(size=(200, 200), color=(30, 120, 200)) -> bytes:
    """Encode a solid-colour RGB image as PNG."""
    img = Image.new("RGB", size, color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def settings(tmp_path):
    """Settings that write into a temporary directory and use a missing font."""
    public_dir = tmp_path / "public"
    public_dir.mkdir()
    return Settings(
        font_path=tmp_path / "fonts" / "missing.ttf",
        image_dir=public_dir / "images",
        public_dir=public_dir,
        domain="http://testserver",
    )


@pytest.fixture
def ttf_path(tmp_path):
    """Write Pillow's bundled TrueType face to disk and return its path."""
    font = ImageFont.load_default(size=50)
    if not isinstance(font, ImageFont.FreeTypeFont):
        pytest.skip("Pillow built without FreeType")
    path = tmp_path / "fonts" / "caption.ttf"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(font.font_bytes)
    return path


@pytest.fixture
def client(settings):
    from main import create_app

    with TestClient(create_app(settings)) as test_client:
        yield test_client

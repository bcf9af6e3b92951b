"""Smoke tests for the FastAPI application.

These tests drive the app defined in ``main.py`` through FastAPI's
TestClient, with every file written into a temporary directory. They
cover uploads, caption generation, static serving and the health report.
"""

import base64
import io
import re

import pytest
from PIL import Image  # type: ignore

from compositor.errors import FontUnavailable
from conftest import png_bytes

GENERATED_URL = re.compile(r"^http://testserver/images/(image_\d+(?:_\d+)?\.png)$")


def _data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


def _stored_files(settings):
    return sorted(p.name for p in settings.image_dir.iterdir())


def test_upload_png(client, settings):
    data = png_bytes((64, 48))
    resp = client.post("/upload", files={"file": ("my photo.png", data, "image/png")})
    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["success"] is True
    assert re.fullmatch(r"my_photo_\d+\.png", payload["fileName"])
    assert payload["mimeType"] == "image/png"
    assert payload["size"] == len(data)
    assert payload["imageUrl"] == f"http://testserver/images/{payload['fileName']}"
    assert (settings.image_dir / payload["fileName"]).read_bytes() == data

    served = client.get(f"/images/{payload['fileName']}")
    assert served.status_code == 200
    assert served.content == data
    assert "immutable" in served.headers["cache-control"]


def test_upload_without_file(client):
    resp = client.post("/upload")
    assert resp.status_code == 400
    assert resp.json() == {"error": "No file uploaded"}


def test_upload_rejects_pdf(client, settings):
    resp = client.post("/upload", files={"file": ("doc.pdf", b"%PDF-1.4 ...", "application/pdf")})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Only image files are allowed"}
    assert _stored_files(settings) == []


def test_upload_rejects_oversized_file(client, settings):
    big = b"\0" * (15 * 1024 * 1024)
    resp = client.post("/upload", files={"file": ("huge.png", big, "image/png")})
    assert resp.status_code == 400
    assert resp.json() == {"error": "File too large"}
    assert _stored_files(settings) == []


@pytest.mark.parametrize(
    "body",
    [
        {"text": "hello"},
        {"imageUrl": "http://example.com/a.png"},
        {"imageUrl": "", "text": "hello"},
        {"imageUrl": "http://example.com/a.png", "text": ""},
        {},
    ],
)
def test_generate_requires_fields(client, settings, body):
    resp = client.post("/generate", json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "imageUrl and text are required"}
    assert _stored_files(settings) == []


def test_generate_without_body(client):
    resp = client.post("/generate")
    assert resp.status_code == 400
    assert resp.json() == {"error": "imageUrl and text are required"}


def test_generate_from_data_url(client, settings):
    source = png_bytes((320, 180))
    resp = client.post("/generate", json={"imageUrl": _data_url(source), "text": "Hello\nWorld"})
    assert resp.status_code == 200, resp.text
    match = GENERATED_URL.match(resp.json()["imageUrl"])
    assert match, resp.json()

    path = settings.image_dir / match.group(1)
    with Image.open(path) as generated:
        assert generated.format == "PNG"
        assert generated.size == (320, 180)

    served = client.get(f"/images/{match.group(1)}")
    assert served.status_code == 200
    assert served.content == path.read_bytes()


def test_generate_from_uploaded_image(client):
    upload = client.post("/upload", files={"file": ("bg.png", png_bytes((90, 70)), "image/png")})
    assert upload.status_code == 200, upload.text

    resp = client.post("/generate", json={"imageUrl": upload.json()["imageUrl"], "text": "Caption"})
    assert resp.status_code == 200, resp.text
    name = GENERATED_URL.match(resp.json()["imageUrl"]).group(1)
    served = client.get(f"/images/{name}")
    with Image.open(io.BytesIO(served.content)) as generated:
        assert generated.size == (90, 70)


def test_back_to_back_generations_are_distinct(client, settings):
    body = {"imageUrl": _data_url(png_bytes((50, 50))), "text": "Same"}
    first = client.post("/generate", json=body).json()["imageUrl"]
    second = client.post("/generate", json=body).json()["imageUrl"]
    assert first != second
    assert len(_stored_files(settings)) == 2


@pytest.mark.parametrize(
    "image_url",
    [
        "http://127.0.0.1:9/unreachable.png",
        "not a url",
        "file:///etc/passwd",
        "http://testserver/images/does-not-exist.png",
        "http://testserver/images/../secret.png",
        _data_url(b"definitely not an image"),
    ],
)
def test_generate_with_bad_source(client, settings, image_url):
    resp = client.post("/generate", json={"imageUrl": image_url, "text": "Hello"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Image generation failed"}
    assert _stored_files(settings) == []


def test_generate_reports_write_failure(client, settings):
    # Replace the storage directory with a plain file so the write cannot happen.
    settings.image_dir.rmdir()
    settings.image_dir.write_bytes(b"")
    resp = client.post("/generate", json={"imageUrl": _data_url(png_bytes((40, 40))), "text": "Hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to save image"}


def test_health_reports_font_fallback(client, settings):
    resp = client.get("/health")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "degraded"
    assert payload["font"]["loaded"] is False
    assert payload["font"]["path"] == str(settings.font_path)
    assert payload["font"]["error"]


def test_health_reports_loaded_font(settings, ttf_path):
    from dataclasses import replace

    from fastapi.testclient import TestClient

    from main import create_app

    with TestClient(create_app(replace(settings, font_path=ttf_path, font_required=True))) as test_client:
        resp = test_client.get("/health")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "ok"
    assert payload["font"]["loaded"] is True
    assert payload["font"]["family"]
    assert payload["font"]["error"] is None


def test_upload_with_text_field_instead_of_file(client, settings):
    resp = client.post("/upload", data={"file": "notafile"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No file uploaded"}
    assert _stored_files(settings) == []


@pytest.mark.parametrize(
    "body",
    [{"imageUrl": 5, "text": "x"}, {"imageUrl": "http://example.com/a.png", "text": ["x"]}, [1, 2]],
)
def test_generate_with_wrongly_typed_fields(client, settings, body):
    resp = client.post("/generate", json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "imageUrl and text are required"}
    assert _stored_files(settings) == []


def test_required_font_refuses_to_start(settings):
    from dataclasses import replace

    from main import create_app

    with pytest.raises(FontUnavailable):
        create_app(replace(settings, font_required=True))


def test_public_assets_are_served(client, settings):
    (settings.public_dir / "index.html").write_text("<h1>captions</h1>")
    resp = client.get("/")
    assert resp.status_code == 200
    assert "<h1>captions</h1>" in resp.text

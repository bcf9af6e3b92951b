"""FastAPI application for the caption compositor.

Routes:
    POST /upload    store an uploaded image and return its public URL
    POST /generate  caption an image and return the generated PNG's URL
    GET  /health    report whether the caption font is loaded
    GET  /images/*  stored uploads and generated images
    GET  /*         static assets from the public directory
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from compositor.captions import compose
from compositor.config import Settings, get_settings
from compositor.errors import (
    CompositorError,
    MissingFieldError,
    NoFileUploaded,
    ProcessingError,
    UploadFailed,
)
from compositor.fonts import load_caption_font
from compositor.models import (
    ErrorResponse,
    FontHealth,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    UploadResponse,
)
from compositor.uploads import store_upload

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}

# Malformed bodies are reported with the same message as missing ones.
_INVALID_BODY_MESSAGES = {
    "/upload": NoFileUploaded.public_message,
    "/generate": MissingFieldError.public_message,
}


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(settings.log_level)


def _log_loop_fault(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Log faults that escape background tasks instead of letting them pass silently."""
    logger.error(
        "Unhandled fault in event loop: %s",
        context.get("message", "unknown error"),
        exc_info=context.get("exception"),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application for ``settings`` (environment settings by default)."""
    settings = settings or get_settings()
    configure_logging(settings)

    # --- Startup: storage directory and caption font ---
    os.makedirs(settings.image_dir, exist_ok=True)
    font, font_status = load_caption_font(settings.font_path, required=settings.font_required)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        asyncio.get_running_loop().set_exception_handler(_log_loop_fault)
        logger.info("Storing images in %s", settings.image_dir)
        logger.info("Server is ready to accept requests on port %s", settings.port)
        yield
        logger.info("Server closed.")

    app = FastAPI(title="Caption Compositor", lifespan=lifespan)
    app.state.settings = settings
    app.state.font = font
    app.state.font_status = font_status

    # Generated and uploaded files never change once written.
    @app.middleware("http")
    async def add_cache_control_header(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/images/") and response.status_code == 200:
            response.headers["Cache-Control"] = "public, max-age=604800, immutable"
        return response

    # --- Error handlers ---
    @app.exception_handler(CompositorError)
    async def compositor_error_handler(request: Request, exc: CompositorError):
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("%s %s invalid body: %s", request.method, request.url.path, exc.errors())
        message = _INVALID_BODY_MESSAGES.get(request.url.path, "Invalid request body")
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # --- Endpoints ---
    @app.post("/upload", response_model=UploadResponse, responses=_ERROR_RESPONSES)
    async def upload_endpoint(file: Optional[UploadFile] = File(None)):
        if file is None:
            raise NoFileUploaded()
        try:
            # One byte past the ceiling is enough to know the upload is too large.
            data = await file.read(settings.max_upload_bytes + 1)
            stored = await run_in_threadpool(
                store_upload, data, file.filename or "", file.content_type, settings
            )
        except CompositorError:
            raise
        except Exception as exc:
            raise UploadFailed(f"Unexpected upload failure: {exc}") from exc
        finally:
            await file.close()
        return UploadResponse(
            fileName=stored.stored_name,
            mimeType=stored.mime_type,
            size=stored.size,
            imageUrl=stored.public_url,
        )

    @app.post("/generate", response_model=GenerateResponse, responses=_ERROR_RESPONSES)
    async def generate_endpoint(body: Optional[GenerateRequest] = None):
        if body is None or not body.imageUrl or not body.text:
            raise MissingFieldError()
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=settings.fetch_timeout) as client:
                artifact = await compose(
                    body.imageUrl,
                    body.text,
                    settings=settings,
                    font=app.state.font,
                    client=client,
                )
        except CompositorError:
            raise
        except Exception as exc:
            raise ProcessingError(f"Unexpected failure generating image: {exc}") from exc
        return GenerateResponse(imageUrl=artifact.url)

    @app.get("/health", response_model=HealthResponse)
    async def health_endpoint():
        status = app.state.font_status
        return HealthResponse(
            status="ok" if status.loaded else "degraded",
            font=FontHealth(**status.as_dict()),
        )

    # --- Static files ---
    app.mount("/images", StaticFiles(directory=settings.image_dir), name="images")
    # Mounted last so it never shadows the API routes.
    if os.path.isdir(settings.public_dir):
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    logger.info("Server running on http://localhost:%s", settings.port)
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

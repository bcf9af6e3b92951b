"""Exception hierarchy shared by the upload handler and the compositor.

Each exception knows the HTTP status it maps to and the message that is
safe to show a client. Internal detail travels in the exception's own
arguments and only ever reaches the server log.
"""

from __future__ import annotations


class CompositorError(Exception):
    """Base class for every error the service reports to clients."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, detail: str | None = None, *, public_message: str | None = None) -> None:
        super().__init__(detail or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ClientInputError(CompositorError):
    """The request itself is unusable."""

    status_code = 400
    public_message = "Invalid request"


class MissingFieldError(ClientInputError):
    public_message = "imageUrl and text are required"


class NoFileUploaded(ClientInputError):
    public_message = "No file uploaded"


class RejectedMimeType(ClientInputError):
    public_message = "Only image files are allowed"


class TooLarge(ClientInputError):
    public_message = "File too large"


class ProcessingError(CompositorError):
    """The request was valid but the server could not complete it."""

    status_code = 500
    public_message = "Image generation failed"


class DecodeError(ProcessingError):
    """The source image could not be fetched or decoded."""


class EncodeError(ProcessingError):
    """The rendered image could not be encoded or written to storage."""

    public_message = "Failed to save image"


class UploadFailed(ProcessingError):
    public_message = "File upload failed"


class FontUnavailable(RuntimeError):
    """Raised at startup when a required caption font cannot be loaded."""

"""Pydantic models for the HTTP API.

Field names follow the JSON the service has always spoken (camelCase).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Body of ``POST /generate``.

    Both fields are optional at the schema level so that a missing value
    is reported with the service's own 400 message instead of a 422.
    """

    imageUrl: Optional[str] = Field(default=None, description="Source image URL or data URL")
    text: Optional[str] = Field(default=None, description="Caption; '\\n' separates lines")


class GenerateResponse(BaseModel):
    imageUrl: str


class UploadResponse(BaseModel):
    """Response returned after storing an uploaded image."""

    success: bool = True
    fileName: str
    mimeType: str
    size: int
    imageUrl: str


class FontHealth(BaseModel):
    path: str
    loaded: bool
    family: Optional[str] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(..., description="'ok', or 'degraded' when the fallback font is in use")
    font: FontHealth


class ErrorResponse(BaseModel):
    error: str

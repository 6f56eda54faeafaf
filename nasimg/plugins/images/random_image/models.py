"""Pydantic models for the random image plugin."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ImageDescriptor(BaseModel):
    """A candidate image found by listing one directory during a request."""

    path: str
    modified_at: datetime


class RandomImage(BaseModel):
    """The selected image, fully read, ready to be sent back."""

    path: str
    data: bytes
    content_type: str
    modified_at: datetime

    @property
    def creation_date_header(self) -> str:
        """Modification time formatted for the X-Creation-Date header (RFC 3339)."""
        return self.modified_at.isoformat(timespec="seconds")


class ErrorResponse(BaseModel):
    """Response model for every error returned by the API."""

    error: str

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"error": "No images found in selected directory"}]}
    )

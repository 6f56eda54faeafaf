"""Filename based image classification."""

import posixpath

IMAGE_CONTENT_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".svg": "image/svg+xml",
}

FALLBACK_CONTENT_TYPE = "image/jpeg"


def _extension(filename: str) -> str:
    return posixpath.splitext(filename)[1].lower()


def is_image(filename: str) -> bool:
    """Return True if the filename carries a recognized image extension (case-insensitive)."""
    return _extension(filename) in IMAGE_CONTENT_TYPES


def content_type_of(filename: str) -> str:
    """
    Map a filename to its image MIME type.

    Unrecognized extensions fall back to ``image/jpeg`` instead of failing.
    """
    return IMAGE_CONTENT_TYPES.get(_extension(filename), FALLBACK_CONTENT_TYPE)

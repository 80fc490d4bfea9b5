"""Pre-decode checks for user-selected image files."""

from __future__ import annotations

from dataclasses import dataclass


ACCEPTED_CONTENT_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/heic", "image/heif"}
)
MAX_UPLOAD_BYTES = 15 * 1024 * 1024
MIN_UPLOAD_BYTES = 10 * 1024


@dataclass(frozen=True)
class UploadCheck:
    valid: bool
    error: str | None = None


def validate_upload(content_type: str, size_bytes: int) -> UploadCheck:
    """Check a raw upload before it is compressed on the client side."""

    if str(content_type or "").lower() not in ACCEPTED_CONTENT_TYPES:
        return UploadCheck(False, "Please use JPEG, PNG, or WebP images only")
    if size_bytes > MAX_UPLOAD_BYTES:
        return UploadCheck(False, "Image is too large. Please use an image under 15MB")
    if size_bytes < MIN_UPLOAD_BYTES:
        return UploadCheck(False, "Image file appears to be corrupt or too small")
    return UploadCheck(True)

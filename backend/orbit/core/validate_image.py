"""Image Validation — size, extension and magic-byte checks before an upload reaches the provider.

Invariants:
    - All functions are PURE: bytes in, ValidatedImage or ImageValidationError out
    - The media type sent to the provider comes from the signature, never the filename
    - Checks run cheapest-first: size, extension, signature

Design Decisions:
    - Signature table instead of an imaging library: three formats, fixed prefixes
"""

import os
from dataclasses import dataclass

from orbit.core.errors import ImageValidationError

DEFAULT_MAX_IMAGE_BYTES = 20 * 1024 * 1024
ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})


@dataclass(frozen=True)
class ValidatedImage:
    media_type: str
    size: int
    data: bytes


def detect_media_type(data: bytes) -> str | None:
    """Media type from magic bytes; None when no allowed format matches."""
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def validate_image(
    filename: str | None,
    data: bytes,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> ValidatedImage:
    size = len(data)
    if size == 0:
        raise ImageValidationError("File is empty.")
    if size > max_bytes:
        raise ImageValidationError(
            f"File size exceeds maximum allowed size of {max_bytes // (1024 * 1024)}MB."
        )

    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ImageValidationError(
            f"File extension '{extension}' is not allowed. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}."
        )

    media_type = detect_media_type(data)
    if media_type is None:
        raise ImageValidationError(
            "File signature does not match allowed image formats."
        )
    return ValidatedImage(media_type=media_type, size=size, data=data)

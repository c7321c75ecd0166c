"""Image Validation — size, extension and signature checks."""

import pytest

from orbit.core.errors import ImageValidationError
from orbit.core.validate_image import detect_media_type, validate_image

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 16
WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 8


def test_detect_media_type():
    assert detect_media_type(PNG) == "image/png"
    assert detect_media_type(JPEG) == "image/jpeg"
    assert detect_media_type(WEBP) == "image/webp"
    assert detect_media_type(b"GIF89a") is None


def test_valid_png_passes():
    image = validate_image("photo.PNG", PNG)
    assert image.media_type == "image/png"
    assert image.size == len(PNG)


def test_media_type_comes_from_signature_not_extension():
    image = validate_image("photo.png", JPEG)
    assert image.media_type == "image/jpeg"


def test_empty_file_rejected():
    with pytest.raises(ImageValidationError, match="empty"):
        validate_image("photo.png", b"")


def test_oversized_file_rejected():
    with pytest.raises(ImageValidationError, match="exceeds"):
        validate_image("photo.png", PNG, max_bytes=8)


def test_disallowed_extension_rejected():
    with pytest.raises(ImageValidationError, match="'.gif' is not allowed"):
        validate_image("anim.gif", PNG)


def test_missing_filename_rejected():
    with pytest.raises(ImageValidationError):
        validate_image(None, PNG)


def test_bad_signature_rejected():
    with pytest.raises(ImageValidationError, match="signature"):
        validate_image("photo.jpg", b"not really an image")


def test_error_is_client_error():
    with pytest.raises(ImageValidationError) as exc:
        validate_image("photo.png", b"")
    assert exc.value.http_status == 400
    assert exc.value.code == "IMAGE_INVALID"

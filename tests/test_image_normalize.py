"""Tests for image validation and normalization."""

import io

import pytest
from PIL import Image

from services.images.normalize import (
    ImageFormatError,
    ImageSizeLimitError,
    ImageValidationError,
    normalize_image,
    prepare_upload,
    validate_content_type,
    validate_dimensions,
    validate_file_size,
)


MAX_BYTES = 5 * 1024 * 1024


def create_test_image(
    width: int = 800, height: int = 600, mode: str = "RGB", format: str = "JPEG"
) -> bytes:
    """Create a test image in memory."""
    color = (255, 0, 0, 0) if mode == "RGBA" else "white"
    img = Image.new(mode, (width, height), color=color)
    output = io.BytesIO()
    img.save(output, format=format)
    return output.getvalue()


@pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "image/webp"])
def test_validate_content_type_allowed(content_type):
    validate_content_type(content_type)  # Should not raise


@pytest.mark.parametrize("content_type", ["image/gif", "application/pdf", None])
def test_validate_content_type_invalid(content_type):
    with pytest.raises(ImageFormatError, match="Unsupported image type"):
        validate_content_type(content_type)


def test_validate_file_size():
    validate_file_size(1024, MAX_BYTES)

    with pytest.raises(ImageSizeLimitError, match="exceeds limit"):
        validate_file_size(MAX_BYTES + 1, MAX_BYTES)

    with pytest.raises(ImageSizeLimitError, match="empty"):
        validate_file_size(0, MAX_BYTES)


def test_validate_dimensions_bounds():
    validate_dimensions(50, 4096)

    with pytest.raises(ImageSizeLimitError, match="too small"):
        validate_dimensions(49, 400)

    with pytest.raises(ImageSizeLimitError, match="too large"):
        validate_dimensions(400, 4097)


def test_normalize_image_downscales_to_max_dimension():
    image = Image.open(io.BytesIO(create_test_image(3000, 1500)))

    normalized = normalize_image(image, max_dimension=1024)

    result = Image.open(io.BytesIO(normalized))
    assert result.format == "JPEG"
    assert max(result.size) == 1024
    assert result.size == (1024, 512)


def test_normalize_image_keeps_small_images():
    image = Image.open(io.BytesIO(create_test_image(400, 300)))

    result = Image.open(io.BytesIO(normalize_image(image, max_dimension=1024)))

    assert result.size == (400, 300)


def test_transparent_png_is_flattened_onto_white():
    png = create_test_image(100, 100, mode="RGBA", format="PNG")

    normalized = prepare_upload(png, "image/png", MAX_BYTES, 2048)

    result = Image.open(io.BytesIO(normalized))
    assert result.mode == "RGB"
    r, g, b = result.getpixel((50, 50))
    assert min(r, g, b) > 240


def test_prepare_upload_returns_jpeg():
    normalized = prepare_upload(create_test_image(format="PNG"), "image/png", MAX_BYTES, 2048)

    assert Image.open(io.BytesIO(normalized)).format == "JPEG"


def test_prepare_upload_rejects_undecodable_bytes():
    with pytest.raises(ImageFormatError, match="Could not decode image"):
        prepare_upload(b"definitely not an image", "image/jpeg", MAX_BYTES, 2048)


def test_prepare_upload_rejects_tiny_images():
    with pytest.raises(ImageSizeLimitError):
        prepare_upload(create_test_image(20, 20), "image/jpeg", MAX_BYTES, 2048)


def test_prepare_upload_checks_size_before_decoding():
    with pytest.raises(ImageSizeLimitError):
        prepare_upload(create_test_image(), "image/jpeg", 100, 2048)


def test_errors_share_a_base_class():
    assert issubclass(ImageSizeLimitError, ImageValidationError)
    assert issubclass(ImageFormatError, ImageValidationError)

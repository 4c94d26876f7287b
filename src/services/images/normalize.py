"""Validation and normalization of uploaded garment images.

Uploads are checked for type, size and pixel dimensions, then EXIF-transposed,
flattened to RGB, downscaled and re-encoded as JPEG before they are queued, so
the vision model always receives a predictable payload.
"""

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError
from PIL.Image import Image as PILImage


logger = logging.getLogger(__name__)

# Configuration constants
JPEG_QUALITY = 85  # JPEG re-encoding quality (0-100)
MIN_SOURCE_DIMENSION = 50  # Smallest accepted width/height in pixels
MAX_SOURCE_DIMENSION = 4096  # Largest accepted width/height in pixels
NORMALIZED_MIME_TYPE = "image/jpeg"

# Allowed MIME types
ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})


class ImageValidationError(Exception):
    """Raised when image validation fails."""

    pass


class ImageSizeLimitError(ImageValidationError):
    """Raised when image size or dimensions are out of bounds."""

    pass


class ImageFormatError(ImageValidationError):
    """Raised when image format is not supported."""

    pass


def validate_content_type(content_type: str | None) -> None:
    """Validate that the content type is an allowed image format.

    Raises:
        ImageFormatError: If content type is not allowed
    """
    if content_type not in ALLOWED_MIME_TYPES:
        raise ImageFormatError(
            f"Unsupported image type: {content_type}. "
            f"Only {', '.join(sorted(ALLOWED_MIME_TYPES))} are allowed."
        )


def validate_file_size(size: int, limit: int) -> None:
    """Validate that a file is non-empty and within ``limit`` bytes.

    Raises:
        ImageSizeLimitError: If the file is empty or too large
    """
    if size == 0:
        raise ImageSizeLimitError("Uploaded file is empty")
    if size > limit:
        raise ImageSizeLimitError(
            f"File size {size} bytes exceeds limit of {limit} bytes"
        )


def validate_dimensions(
    width: int,
    height: int,
    min_dimension: int = MIN_SOURCE_DIMENSION,
    max_dimension: int = MAX_SOURCE_DIMENSION,
) -> None:
    """Reject images too small to analyse or too large to accept.

    Raises:
        ImageSizeLimitError: If either side is outside the bounds
    """
    if width < min_dimension or height < min_dimension:
        raise ImageSizeLimitError(
            f"Image {width}x{height} is too small; "
            f"minimum is {min_dimension}x{min_dimension} pixels"
        )
    if width > max_dimension or height > max_dimension:
        raise ImageSizeLimitError(
            f"Image {width}x{height} is too large; "
            f"maximum is {max_dimension}x{max_dimension} pixels"
        )


def _to_rgb(image: PILImage) -> PILImage:
    if image.mode == "RGB":
        return image
    if image.mode == "P":
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA", "PA"):
        # Flatten transparency onto white
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    return image.convert("RGB")


def normalize_image(
    image: PILImage,
    max_dimension: int,
    jpeg_quality: int = JPEG_QUALITY,
) -> bytes:
    """Normalize an opened image and return JPEG bytes.

    1. Applies EXIF orientation
    2. Converts to RGB, flattening transparency onto white
    3. Downscales so neither side exceeds ``max_dimension``
    4. Re-encodes to JPEG
    """
    image = ImageOps.exif_transpose(image) or image
    image = _to_rgb(image)

    width, height = image.size
    if width > max_dimension or height > max_dimension:
        image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        logger.debug(
            "Downscaled image from %dx%d to %dx%d",
            width,
            height,
            image.size[0],
            image.size[1],
        )

    output = io.BytesIO()
    image.save(output, format="JPEG", quality=jpeg_quality, optimize=True)
    return output.getvalue()


def prepare_upload(
    image_bytes: bytes,
    content_type: str | None,
    max_bytes: int,
    max_dimension: int,
) -> bytes:
    """Validate an uploaded image and return normalized JPEG bytes.

    Args:
        image_bytes: Raw upload
        content_type: Declared MIME type of the upload
        max_bytes: Maximum accepted upload size
        max_dimension: Longest side after normalization

    Raises:
        ImageValidationError: If the upload is rejected or cannot be decoded
    """
    validate_content_type(content_type)
    validate_file_size(len(image_bytes), max_bytes)

    try:
        image: PILImage = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        logger.warning("Rejected undecodable image upload: %s", e)
        raise ImageFormatError(f"Could not decode image: {e}") from e

    validate_dimensions(*image.size)

    try:
        normalized = normalize_image(image, max_dimension)
    except OSError as e:
        logger.error("Failed to normalize image: %s", e)
        raise ImageValidationError(f"Failed to process image: {e}") from e

    logger.debug(
        "Normalized image: original=%d bytes, normalized=%d bytes",
        len(image_bytes),
        len(normalized),
    )
    return normalized

# guestlens/utils/images.py

import numpy as np
import cv2

# ---------------------------------------------------------------------
# Configuration (tweakable)
# ---------------------------------------------------------------------

THUMBNAIL_MIME_TYPE = "image/jpeg"
DEFAULT_MAX_DIMENSION = 512
DEFAULT_JPEG_QUALITY = 80


class ImageTransformError(ValueError):
    """Raised when an image cannot be decoded or encoded."""


# ---------------------------------------------------------------------
# Thumbnail transform
# ---------------------------------------------------------------------

def decode_image(contents: bytes) -> np.ndarray:
    """
    Decode image bytes to a BGR array.

    IMREAD_COLOR applies the EXIF orientation tag, so the returned pixels are
    already upright.
    """
    if not contents:
        raise ImageTransformError("Empty image file")

    np_buffer = np.frombuffer(contents, dtype=np.uint8)
    image = cv2.imdecode(np_buffer, cv2.IMREAD_COLOR)

    if image is None:
        raise ImageTransformError("Invalid or corrupted image")
    return image


def fit_within(image: np.ndarray, max_dimension: int) -> np.ndarray:
    """Scale down to fit inside max_dimension x max_dimension. Never enlarges."""
    height, width = image.shape[:2]
    longest = max(height, width)
    if longest <= max_dimension:
        return image

    scale = max_dimension / float(longest)
    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    return cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)


def make_thumbnail(
    contents: bytes,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_JPEG_QUALITY
) -> bytes:
    """
    Build a JPEG thumbnail from original image bytes.

    Args:
        contents: Raw original bytes (any format OpenCV decodes)
        max_dimension: Bounding box edge in pixels
        quality: JPEG quality 1-100

    Returns:
        JPEG encoded bytes

    Raises:
        ImageTransformError
    """
    image = fit_within(decode_image(contents), max_dimension)

    ok, encoded = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ImageTransformError("Failed to encode thumbnail")
    return encoded.tobytes()

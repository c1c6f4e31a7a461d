"""
ID image compression and upload.

Images are shrunk to fit 800x800 and re-encoded as WebP before they reach
object storage.
"""

import logging
import re
from typing import Tuple, Union

import cv2

from .capture import decode_image
from .errors import CheckInError, ImageConversionError
from .storage import get_storage

logger = logging.getLogger(__name__)

MAX_WIDTH = 800
MAX_HEIGHT = 800
WEBP_QUALITY = 80

_EXTENSION_RE = re.compile(r'\.\w+$')


def webp_file_name(file_name: str) -> str:
    """Swap the file extension for .webp (names without one are kept)."""
    return _EXTENSION_RE.sub('.webp', file_name)


def fit_within(width: int, height: int, max_width=MAX_WIDTH, max_height=MAX_HEIGHT) -> Tuple[int, int]:
    """Scale (width, height) down so the longer side fits, keeping aspect ratio."""
    if width <= max_width and height <= max_height:
        return width, height
    if width > height:
        return max_width, max(1, round(max_width / width * height))
    return max(1, round(max_height / height * width)), max_height


def convert_to_webp(data: bytes, file_name: str = "image.jpg") -> Tuple[bytes, str]:
    """
    Resize and re-encode an image as WebP.

    Args:
        data: Encoded image bytes (JPEG, PNG, ...)
        file_name: Name for the file; its extension becomes .webp

    Returns:
        (webp_bytes, webp_file_name)
    """
    try:
        image = decode_image(data)
    except CheckInError as e:
        raise ImageConversionError("Failed to load image for conversion") from e

    height, width = image.shape[:2]
    new_width, new_height = fit_within(width, height)
    if (new_width, new_height) != (width, height):
        image = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)
        logger.debug(f"Resized {width}x{height} -> {new_width}x{new_height}")

    ok, encoded = cv2.imencode('.webp', image, [int(cv2.IMWRITE_WEBP_QUALITY), WEBP_QUALITY])
    if not ok:
        raise ImageConversionError("Conversion to WebP failed")

    return encoded.tobytes(), webp_file_name(file_name)


def upload_image(data: bytes, path: str, file_name: str = "image.jpg", storage=None) -> Union[str, bool]:
    """
    Compress an image and upload it to object storage.

    Args:
        data: Encoded image bytes
        path: Storage path prefix for the image
        file_name: Name for the file

    Returns:
        Download URL, or False on error
    """
    try:
        webp_data, webp_name = convert_to_webp(data, file_name)
        key = f"{path}_{webp_name}"
        storage = storage or get_storage()
        return storage.upload(key, webp_data, 'image/webp')
    except Exception as e:
        logger.error(f"Error uploading image {path}_{file_name}: {e}")
        return False

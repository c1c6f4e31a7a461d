"""
Camera Capture
Responsibility: map the on-screen ID frame onto the real video frame and crop
Output: JPEG bytes of the ID card area
"""
import base64
import binascii
import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, Tuple

import cv2
import numpy as np

from .errors import CaptureError, InvalidImageError

logger = logging.getLogger(__name__)

# The guide frame drawn over the live video: 85% of the viewport width,
# at most 448 CSS px (28rem), ID-1 card aspect ratio.
FRAME_WIDTH_RATIO = 0.85
FRAME_MAX_WIDTH = 448
FRAME_ASPECT_RATIO = 1.6

CAPTURE_JPEG_QUALITY = 90

_DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w/+.-]*)(;[\w=-]+)*;base64,', re.IGNORECASE)


@dataclass
class CropRect:
    """Crop rectangle in video-frame pixels (may be fractional)."""
    x: float
    y: float
    width: float
    height: float

    def to_pixels(self, frame_width: int, frame_height: int) -> Tuple[int, int, int, int]:
        """
        Round to whole pixels and clamp to the frame.

        Returns:
            (x0, y0, x1, y1) with 0 <= x0 < x1 <= frame_width, same for y
        """
        x0 = max(0, int(round(self.x)))
        y0 = max(0, int(round(self.y)))
        x1 = min(frame_width, int(round(self.x + self.width)))
        y1 = min(frame_height, int(round(self.y + self.height)))
        if x1 <= x0 or y1 <= y0:
            raise CaptureError(
                "crop area lies outside the video frame",
                details={"crop": self.to_dict(), "frame": [frame_width, frame_height]}
            )
        return x0, y0, x1, y1

    def to_dict(self) -> Dict:
        return {
            'x': round(self.x, 2),
            'y': round(self.y, 2),
            'width': round(self.width, 2),
            'height': round(self.height, 2),
        }


def compute_crop_rect(video_width, video_height, display_width, display_height, viewport_width) -> CropRect:
    """
    Map the centered guide frame from screen space to video space.

    Args:
        video_width, video_height: Native resolution of the video frame
        display_width, display_height: Rendered size of the video element
        viewport_width: Browser viewport width (sizes the guide frame)

    Returns:
        CropRect in video pixels
    """
    dims = {
        'video_width': video_width,
        'video_height': video_height,
        'display_width': display_width,
        'display_height': display_height,
        'viewport_width': viewport_width,
    }
    if any(value is None or not math.isfinite(value) or value <= 0 for value in dims.values()):
        raise CaptureError(
            "invalid video or display dimensions",
            details={key: str(value) for key, value in dims.items()}
        )

    frame_width = min(viewport_width * FRAME_WIDTH_RATIO, FRAME_MAX_WIDTH)
    frame_height = frame_width / FRAME_ASPECT_RATIO

    frame_left = (display_width - frame_width) / 2
    frame_top = (display_height - frame_height) / 2

    scale_x = video_width / display_width
    scale_y = video_height / display_height

    rect = CropRect(
        x=frame_left * scale_x,
        y=frame_top * scale_y,
        width=frame_width * scale_x,
        height=frame_height * scale_y,
    )
    logger.debug(f"Crop for video {video_width}x{video_height} shown at {display_width}x{display_height}: {rect.to_dict()}")
    return rect


def crop_frame(image: np.ndarray, rect: CropRect) -> np.ndarray:
    """Cut the crop rectangle out of a BGR frame."""
    height, width = image.shape[:2]
    x0, y0, x1, y1 = rect.to_pixels(width, height)
    return image[y0:y1, x0:x1].copy()


def decode_data_url(data) -> bytes:
    """
    Decode a base64 image, with or without a "data:image/...;base64," prefix.
    """
    if not data or not isinstance(data, str):
        raise InvalidImageError("No image data provided")

    match = _DATA_URL_RE.match(data)
    if match:
        mime = match.group('mime').lower()
        if mime and not mime.startswith('image/'):
            raise InvalidImageError(f"Unsupported data type: {mime}")
        data = data[match.end():]

    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image data is not valid base64") from e


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into a BGR array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if image is None:
        raise InvalidImageError()
    return image


def encode_jpeg(image: np.ndarray, quality=CAPTURE_JPEG_QUALITY) -> bytes:
    ok, encoded = cv2.imencode('.jpg', image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise CaptureError("JPEG encoding failed")
    return encoded.tobytes()


def capture_id_image(frame_data: bytes, display_width, display_height, viewport_width) -> bytes:
    """
    Crop the ID card out of a full camera frame.

    Args:
        frame_data: Encoded full-resolution video frame
        display_width, display_height: Rendered size of the video element
        viewport_width: Browser viewport width

    Returns:
        JPEG bytes of the cropped area
    """
    frame = decode_image(frame_data)
    video_height, video_width = frame.shape[:2]

    rect = compute_crop_rect(video_width, video_height, display_width, display_height, viewport_width)
    cropped = crop_frame(frame, rect)

    logger.info(f"Captured ID area {cropped.shape[1]}x{cropped.shape[0]} from {video_width}x{video_height} frame")
    return encode_jpeg(cropped)

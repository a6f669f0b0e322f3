"""
Image Check
===========

Decoding, validation and size normalisation of grabbed stills.

Design Rules:
    - This is the ONLY place in the codebase that decodes images
    - Fails fast on corrupt or empty grabs
    - Downscales oversized frames so generative payloads stay bounded
    - Returns encoded bytes again; nothing downstream sees a matrix
"""

import logging
from typing import Tuple

import cv2
import numpy as np


logger = logging.getLogger(__name__)


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class ImageDecodeError(Exception):
    """Raised when grabbed bytes are not a usable image."""
    pass


def sniff_media_type(data: bytes) -> str:
    """MIME type of encoded image bytes (PNG or JPEG)."""
    if data.startswith(PNG_SIGNATURE):
        return "image/png"
    return "image/jpeg"


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes to a BGR matrix.

    Args:
        data: JPEG or PNG bytes

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    if not data:
        raise ImageDecodeError("Empty image data")

    nparr = np.frombuffer(data, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ImageDecodeError("cv2.imdecode returned None")

    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    if bgr.shape[0] == 0 or bgr.shape[1] == 0:
        raise ImageDecodeError(f"Zero-sized image: {bgr.shape}")

    return bgr


def normalize_image(
    data: bytes,
    max_width: int = 1280,
    jpeg_quality: int = 85,
) -> Tuple[bytes, str]:
    """
    Validate a grabbed still and downscale it if too wide.

    Images within `max_width` are returned unchanged.

    Args:
        data: Encoded image bytes from the grabber
        max_width: Maximum width in pixels
        jpeg_quality: JPEG quality used when re-encoding

    Returns:
        Tuple of (encoded bytes, media type)

    Raises:
        ImageDecodeError: If the bytes cannot be decoded or re-encoded
    """
    bgr = decode_image(data)
    height, width = bgr.shape[:2]

    if width <= max_width:
        return data, sniff_media_type(data)

    scale = max_width / float(width)
    new_size = (max_width, max(1, int(round(height * scale))))
    resized = cv2.resize(bgr, new_size, interpolation=cv2.INTER_AREA)

    ok, encoded = cv2.imencode(".jpg", resized, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
    if not ok:
        raise ImageDecodeError("cv2.imencode failed")

    logger.debug(f"Downscaled frame {width}x{height} -> {new_size[0]}x{new_size[1]}")
    return encoded.tobytes(), "image/jpeg"

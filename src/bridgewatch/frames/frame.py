"""
Frame Data Model
================

Internal representation of one captured, classified camera still.

Design Rules:
    - Immutable once created (frozen dataclass)
    - Shared by reference between the rolling buffer and the
      preserved slot for its angle; neither copies it
    - Carries raw encoded bytes, never a decoded matrix
"""

import base64
from dataclasses import dataclass

from bridgewatch.models.angle import CameraAngle


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Captured camera frame.

    Attributes:
        image: Encoded image bytes (JPEG or PNG)
        timestamp: UNIX time the frame was captured
        angle: Camera angle assigned by the classifier
        media_type: MIME type of `image`
    """

    image: bytes
    timestamp: float
    angle: CameraAngle
    media_type: str = "image/jpeg"

    def age(self, now: float) -> float:
        """Seconds elapsed since capture."""
        return now - self.timestamp

    def to_base64(self) -> str:
        return base64.b64encode(self.image).decode("ascii")

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image."""
        return (
            f"Frame(angle={self.angle.value}, "
            f"timestamp={self.timestamp:.3f}, "
            f"bytes={len(self.image)})"
        )

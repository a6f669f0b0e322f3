"""
Angle and Traffic Level Models
==============================

Discrete categories shared by the capture, selection and analysis stages.

Core Concepts:
    - CameraAngle: Which viewpoint the public camera was showing when a
      frame was grabbed. The stream rotates between views on its own.
    - TrafficLevel: Coarse congestion label for one travel direction.

Count Thresholds:
    0-3   vehicles -> LIGHT
    4-10  vehicles -> MODERATE
    >10   vehicles -> HEAVY

    SEVERE is never derived from a count. It is reserved for the
    generative stage when images show a backup beyond the visible lanes.
"""

from enum import Enum


class CameraAngle(str, Enum):
    """
    Camera viewpoint categories.

    Attributes:
        BRIDGE: Close view of the bridge deck and its lanes
        PROCESSING: Canopy-covered processing / customs area
        WIDE: Wide view including the approach road and fuel station
        USELESS: Anything else (blank, transition, logo, ambiguous)
    """

    BRIDGE = "BRIDGE"
    PROCESSING = "PROCESSING"
    WIDE = "WIDE"
    USELESS = "USELESS"

    @property
    def is_useful(self) -> bool:
        """Whether frames of this angle may be used for analysis."""
        return self is not CameraAngle.USELESS


# Fixed priority order used everywhere angles are iterated
USEFUL_ANGLES = (
    CameraAngle.BRIDGE,
    CameraAngle.PROCESSING,
    CameraAngle.WIDE,
)


class TrafficLevel(str, Enum):
    """Congestion level for a single direction of travel."""

    LIGHT = "LIGHT"
    MODERATE = "MODERATE"
    HEAVY = "HEAVY"
    SEVERE = "SEVERE"


LIGHT_MAX_COUNT = 3
MODERATE_MAX_COUNT = 10


def level_for_count(count: int) -> TrafficLevel:
    """
    Derive a traffic level from a directional vehicle count.

    Args:
        count: Vehicles counted travelling in one direction

    Returns:
        LIGHT, MODERATE or HEAVY (never SEVERE)
    """
    if count < 0:
        raise ValueError("count must be non-negative")
    if count <= LIGHT_MAX_COUNT:
        return TrafficLevel.LIGHT
    if count <= MODERATE_MAX_COUNT:
        return TrafficLevel.MODERATE
    return TrafficLevel.HEAVY

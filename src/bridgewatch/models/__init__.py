"""
Data Models
===========

Typed models shared across the bridgewatch pipeline.

Models:
    Angle:
        - CameraAngle: BRIDGE, PROCESSING, WIDE, USELESS
        - TrafficLevel: LIGHT, MODERATE, HEAVY, SEVERE

    Detection:
        - DetectorResult: Directional counts from the counting service
        - VehicleBreakdown: Cars / trucks / buses for one direction

    Question:
        - QuestionType: Answer-style taxonomy
        - CacheCategory: Response cache keys

    Output:
        - AnalysisResult: Externally visible analysis outcome

    Reading:
        - AnalysisReading: Analytics record for persistence
        - ParsedReading: Best-effort fields scraped from generated text
"""

from bridgewatch.models.angle import (
    USEFUL_ANGLES,
    CameraAngle,
    TrafficLevel,
    level_for_count,
)
from bridgewatch.models.detection import (
    DetectorResult,
    VehicleBreakdown,
    traffic_levels,
)
from bridgewatch.models.question import CacheCategory, QuestionType
from bridgewatch.models.output import AnalysisResult
from bridgewatch.models.reading import AnalysisReading, ParsedReading

__all__ = [
    # Angle
    "CameraAngle",
    "TrafficLevel",
    "USEFUL_ANGLES",
    "level_for_count",
    # Detection
    "DetectorResult",
    "VehicleBreakdown",
    "traffic_levels",
    # Question
    "QuestionType",
    "CacheCategory",
    # Output
    "AnalysisResult",
    # Reading
    "AnalysisReading",
    "ParsedReading",
]

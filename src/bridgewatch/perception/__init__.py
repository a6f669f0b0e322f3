"""
Perception Module
=================

Black-box collaborators that look at frames.

Components:
    - AngleClassifier: Vision-model camera angle categorisation
    - VehicleDetectorClient: External deterministic vehicle counter

Design Philosophy:
    Perception is treated as a pluggable black box. Downstream stages
    reason over angles and counts, never over pixels.
"""

from bridgewatch.perception.classifier import AngleClassifier, parse_angle
from bridgewatch.perception.detector import VehicleDetectorClient

__all__ = [
    "AngleClassifier",
    "VehicleDetectorClient",
    "parse_angle",
]

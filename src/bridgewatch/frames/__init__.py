"""
Frames Module
=============

Frame acquisition, retention and selection.

This module provides the frame lifecycle for bridgewatch:
    - Frame: Immutable captured still with its angle
    - FrameStore: Rolling buffer plus per-angle preserved frames
    - FrameSelector: Chooses frames for one analysis request
    - FFmpegFrameGrabber: Single-still acquisition with hard timeout
    - CaptureScheduler: Periodic, single-flight capture loop

Example:
    from bridgewatch.frames import FrameStore, FrameSelector

    store = FrameStore(capacity=12, freshness_seconds=600)
    selector = FrameSelector(store)
    selected = selector.select()
"""

from bridgewatch.frames.frame import Frame
from bridgewatch.frames.store import FrameStore
from bridgewatch.frames.selector import FrameSelector, SelectedFrame
from bridgewatch.frames.grabber import (
    FFmpegFrameGrabber,
    FrameGrabber,
    FrameGrabError,
    FrameGrabTimeout,
)
from bridgewatch.frames.image_check import ImageDecodeError, normalize_image
from bridgewatch.frames.scheduler import CaptureScheduler, CaptureMetrics


__all__ = [
    "Frame",
    "FrameStore",
    "FrameSelector",
    "SelectedFrame",
    "FrameGrabber",
    "FFmpegFrameGrabber",
    "FrameGrabError",
    "FrameGrabTimeout",
    "ImageDecodeError",
    "normalize_image",
    "CaptureScheduler",
    "CaptureMetrics",
]

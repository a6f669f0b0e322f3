"""
Analysis Output Models
======================

This module defines the externally visible outcome of one analysis.

Output Contract:
    {
        "success": true,
        "message": "LESOTHO → SOUTH AFRICA: MODERATE ...",
        "timestamp": 1770500938.284,
        "frame_timestamp": 1770500901.112,
        "frames_used": 2,
        "cached": false,
        "error": null
    }

Design Rules:
    - `message` is the verbatim generated text, never post-processed
    - Failures are results with success=false, not exceptions
    - `error` carries the underlying error text for generation failures
"""

from typing import Optional

from pydantic import BaseModel, Field


CAMERA_UNAVAILABLE_MESSAGE = (
    "The border camera isn't available right now, so I can't see the "
    "crossing. Please try again in a few minutes."
)

ANALYSIS_UNAVAILABLE_MESSAGE = "Analysis temporarily unavailable. Please try again shortly."


class AnalysisResult(BaseModel):
    """
    Result of one analysis invocation.

    Attributes:
        success: Whether a usable answer was produced
        message: User-facing text
        timestamp: UNIX time the result was produced
        frame_timestamp: Capture time of the newest frame used
        frames_used: Number of frames attached to the generative call
        cached: Whether this result was served from a cache
        error: Underlying error text on generation failure
    """

    success: bool = Field(..., description="Whether a usable answer was produced")

    message: str = Field(..., description="User-facing answer or failure text")

    timestamp: float = Field(..., ge=0.0, description="UNIX time of the result")

    frame_timestamp: Optional[float] = Field(
        default=None,
        description="Capture time of the newest frame used",
    )

    frames_used: int = Field(default=0, ge=0, description="Frames sent for analysis")

    cached: bool = Field(default=False, description="Served from a cache")

    error: Optional[str] = Field(default=None, description="Underlying error text")

    @classmethod
    def camera_unavailable(cls, timestamp: float) -> "AnalysisResult":
        return cls(success=False, message=CAMERA_UNAVAILABLE_MESSAGE, timestamp=timestamp)

    @classmethod
    def generation_failed(
        cls,
        timestamp: float,
        error: str,
        frame_timestamp: Optional[float] = None,
        frames_used: int = 0,
    ) -> "AnalysisResult":
        return cls(
            success=False,
            message=f"{ANALYSIS_UNAVAILABLE_MESSAGE} ({error})",
            timestamp=timestamp,
            frame_timestamp=frame_timestamp,
            frames_used=frames_used,
            error=error,
        )

    def as_cached(self) -> "AnalysisResult":
        """Copy of this result flagged as served from cache."""
        return self.model_copy(update={"cached": True})

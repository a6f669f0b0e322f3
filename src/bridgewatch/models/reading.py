"""
Reading Models
==============

Analytics records handed to the persistence sink.

A reading is assembled by the analysis engine after every non-cached
analysis and enriched with best-effort parsed fields on the logging
path. Nothing in here feeds back into the user-facing response.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from bridgewatch.models.detection import DetectorResult


COUNT_SOURCE_DETECTOR = "automated_detection"
COUNT_SOURCE_ESTIMATE = "visual_estimate"


@dataclass(frozen=True, slots=True)
class ParsedReading:
    """
    Fields scraped from generated prose.

    Attributes:
        parsed: False when nothing recognisable was found
        ls_to_sa_status / sa_to_ls_status: Status word per direction
        ls_to_sa_detail / sa_to_ls_detail: Detail line per direction
        summary: Overall summary sentence
        advice: Traveller advice sentence
    """

    parsed: bool = False
    ls_to_sa_status: Optional[str] = None
    ls_to_sa_detail: Optional[str] = None
    sa_to_ls_status: Optional[str] = None
    sa_to_ls_detail: Optional[str] = None
    summary: Optional[str] = None
    advice: Optional[str] = None


UNPARSED = ParsedReading()


@dataclass(frozen=True, slots=True)
class AnalysisReading:
    """
    One analysis outcome as stored for analytics.

    `detector_levels` is only ever populated from a trusted detector
    result; `count_source` says where any numbers came from.
    """

    timestamp: float
    success: bool
    message: str
    question: Optional[str] = None
    question_type: Optional[str] = None
    category: Optional[str] = None
    frames_used: int = 0
    frame_timestamp: Optional[float] = None
    angles: str = ""
    detector: Optional[DetectorResult] = None
    count_source: str = COUNT_SOURCE_ESTIMATE
    detector_levels: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    parsed: ParsedReading = field(default_factory=ParsedReading)

    def with_parsed(self, parsed: ParsedReading) -> "AnalysisReading":
        return replace(self, parsed=parsed)

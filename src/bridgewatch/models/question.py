"""
Question Models
===============

Fixed taxonomies a free-text question is mapped into.

    - QuestionType: Drives the answer style of the generative call
    - CacheCategory: Coarse bucket for short-TTL answer reuse

Both are produced by the rule tables in bridgewatch.analysis.questions.
"""

from enum import Enum


class QuestionType(str, Enum):
    """
    Answer-style categories.

    Attributes:
        GENERAL: No question, or a broad "how is it" question
        OFF_TOPIC: Unrelated to the crossing (jokes, sport, ...)
        DIRECTIONAL: About one specific direction of travel
        YES_NO: Expects a short yes/no answer
        VISUAL: About what can be seen in the view itself
        TIMING: About waiting time or when to travel
        BORDER_INFO: Opening hours, documents, procedures
    """

    GENERAL = "general"
    OFF_TOPIC = "off_topic"
    DIRECTIONAL = "directional"
    YES_NO = "yes_no"
    VISUAL = "visual"
    TIMING = "timing"
    BORDER_INFO = "border_info"

    @property
    def wants_structured_format(self) -> bool:
        """Whether the two-direction report layout is required."""
        return self is QuestionType.GENERAL

    @property
    def suppresses_structured_format(self) -> bool:
        """Whether the two-direction report layout must not be used."""
        return self in (
            QuestionType.OFF_TOPIC,
            QuestionType.YES_NO,
            QuestionType.VISUAL,
            QuestionType.TIMING,
        )


class CacheCategory(str, Enum):
    """Response cache keys."""

    STATUS = "status"
    GOOD_TIME = "good_time"
    QUEUE = "queue"
    LS_TO_SA = "ls_to_sa"
    SA_TO_LS = "sa_to_ls"

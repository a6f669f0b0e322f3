"""
Question Rules
==============

Deterministic, data-driven classification of free-text questions.

Two independent rule tables:
    - QUESTION_TYPE_RULES -> QuestionType (answer style)
    - CACHE_CATEGORY_RULES -> CacheCategory (response cache key)

Both tables are ordered; the first matching rule wins.

Off-topic Rule:
    A question is OFF_TOPIC only if it matches an off-topic keyword AND
    matches no traffic-domain keyword. Domain relevance always wins.
"""

import re
from dataclasses import dataclass
from typing import Generic, Optional, Pattern, Sequence, Tuple, TypeVar

from bridgewatch.models.question import CacheCategory, QuestionType


T = TypeVar("T")


def _words(*alternatives: str) -> Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b", re.IGNORECASE)


@dataclass(frozen=True)
class Rule(Generic[T]):
    """One ordered rule: any matching pattern yields `result`."""

    result: T
    patterns: Tuple[Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def first_match(rules: Sequence[Rule[T]], text: str) -> Optional[T]:
    for rule in rules:
        if rule.matches(text):
            return rule.result
    return None


# =============================================================================
# Vocabulary
# =============================================================================

_LESOTHO = r"(?:ls|lesotho|maseru)"
_SOUTH_AFRICA = r"(?:sa|rsa|south\s+africa|ladybrand|bloemfontein|bloem)"

LS_TO_SA_PATTERNS = (
    re.compile(rf"\b{_LESOTHO}\b.*\b(?:to|into|towards?)\s+{_SOUTH_AFRICA}\b", re.IGNORECASE),
    re.compile(rf"\b(?:to|into|entering|towards?)\s+{_SOUTH_AFRICA}\b", re.IGNORECASE),
    re.compile(rf"\b(?:from|leaving)\s+{_LESOTHO}\b", re.IGNORECASE),
    re.compile(r"\bls\s*(?:->|→|>)\s*sa\b", re.IGNORECASE),
)

SA_TO_LS_PATTERNS = (
    re.compile(rf"\b{_SOUTH_AFRICA}\b.*\b(?:to|into|towards?)\s+{_LESOTHO}\b", re.IGNORECASE),
    re.compile(rf"\b(?:to|into|entering|towards?)\s+{_LESOTHO}\b", re.IGNORECASE),
    re.compile(rf"\b(?:from|leaving)\s+{_SOUTH_AFRICA}\b", re.IGNORECASE),
    re.compile(r"\bsa\s*(?:->|→|>)\s*ls\b", re.IGNORECASE),
)

TRAFFIC_KEYWORDS = _words(
    r"traffic", r"queues?", r"lines?", r"wait(?:ing)?", r"border", r"bridge",
    r"cross(?:ing)?", r"cars?", r"trucks?", r"buse?s", r"taxis?", r"vehicles?",
    r"busy", r"jam", r"congest\w*", r"delays?", r"maseru", r"ladybrand",
    r"lesotho", r"south\s+africa", r"sa", r"ls", r"engen", r"customs",
    r"immigration", r"passports?", r"permits?", r"road", r"lanes?", r"drive",
    r"driving", r"travel\w*", r"trip", r"camera", r"post",
)

OFF_TOPIC_KEYWORDS = _words(
    r"jokes?", r"poems?", r"story", r"stories", r"songs?", r"lyrics", r"recipes?",
    r"cook(?:ing)?", r"movies?", r"films?", r"football", r"soccer", r"rugby",
    r"cricket", r"games?", r"homework", r"math(?:s|ematics)?", r"code", r"coding",
    r"programming", r"python", r"president", r"politics", r"elections?",
    r"bitcoin", r"crypto", r"stocks?", r"horoscope", r"dating", r"capital\s+of",
    r"who\s+are\s+you", r"meaning\s+of\s+life",
)


# =============================================================================
# Question type rules
# =============================================================================

QUESTION_TYPE_RULES: Tuple[Rule[QuestionType], ...] = (
    Rule(QuestionType.DIRECTIONAL, LS_TO_SA_PATTERNS + SA_TO_LS_PATTERNS + (
        _words(r"direction", r"which\s+side", r"both\s+ways", r"inbound", r"outbound",
               r"northbound", r"southbound"),
    )),
    Rule(QuestionType.BORDER_INFO, (
        _words(r"open", r"opens", r"opening", r"close[sd]?", r"closing", r"documents?",
               r"passports?", r"permits?", r"visa", r"customs", r"immigration",
               r"requirements?", r"fees?", r"toll", r"declare", r"operating\s+hours"),
    )),
    Rule(QuestionType.TIMING, (
        _words(r"how\s+long", r"wait(?:ing)?\s+times?", r"minutes?", r"hours?",
               r"when", r"what\s+time", r"good\s+time", r"best\s+time", r"later",
               r"tonight", r"tomorrow", r"morning", r"afternoon", r"evening", r"eta"),
    )),
    Rule(QuestionType.VISUAL, (
        _words(r"see", r"seen", r"visible", r"visibility", r"camera", r"picture",
               r"image", r"photo", r"view", r"look(?:s)?\s+like", r"weather",
               r"rain(?:ing)?", r"fog(?:gy)?", r"dark", r"night", r"accident",
               r"police", r"roadworks?"),
    )),
    Rule(QuestionType.YES_NO, (
        re.compile(r"^\s*(?:is|are|can|could|should|will|would|do|does|did|was|were|has|have)\b",
                   re.IGNORECASE),
    )),
)


def is_off_topic(question: str) -> bool:
    """Off-topic keyword present and no traffic-domain keyword present."""
    return bool(OFF_TOPIC_KEYWORDS.search(question)) and not TRAFFIC_KEYWORDS.search(question)


def classify_question(question: Optional[str]) -> QuestionType:
    """
    Map a question to its answer-style type.

    A missing or blank question is GENERAL.
    """
    if question is None or not question.strip():
        return QuestionType.GENERAL
    if is_off_topic(question):
        return QuestionType.OFF_TOPIC
    return first_match(QUESTION_TYPE_RULES, question) or QuestionType.GENERAL


# =============================================================================
# Cache category rules
# =============================================================================

CACHE_CATEGORY_RULES: Tuple[Rule[CacheCategory], ...] = (
    Rule(CacheCategory.LS_TO_SA, LS_TO_SA_PATTERNS),
    Rule(CacheCategory.SA_TO_LS, SA_TO_LS_PATTERNS),
    Rule(CacheCategory.QUEUE, (
        _words(r"queues?", r"lines?", r"backed\s+up", r"backlog", r"engen",
               r"how\s+many\s+(?:cars|vehicles|trucks)"),
    )),
    Rule(CacheCategory.GOOD_TIME, (
        _words(r"good\s+time", r"best\s+time", r"right\s+time", r"when\s+should",
               r"should\s+i\s+(?:go|leave|cross|wait)", r"worth\s+(?:going|crossing)"),
    )),
    Rule(CacheCategory.STATUS, (
        _words(r"status", r"how(?:'s|\s+is)\s+(?:the\s+)?(?:traffic|border|bridge|crossing)",
               r"traffic\s+(?:like|now|today)", r"busy", r"right\s+now", r"currently",
               r"current\s+(?:traffic|situation|conditions?)", r"update"),
    )),
)


def categorize(question: Optional[str]) -> Optional[CacheCategory]:
    """
    Map a question to a response cache category.

    Returns None for blank, off-topic, open-ended or unrecognised
    questions, which disables caching for them.
    """
    if question is None or not question.strip():
        return None
    if is_off_topic(question):
        return None
    return first_match(CACHE_CATEGORY_RULES, question)

"""
Response Parser
===============

Best-effort extraction of structured fields from generated answers.

Used ONLY on the asynchronous logging path. The user-facing message is
never derived from, or blocked by, anything in this module. Unmatched
text yields UNPARSED rather than an error.

Expected (but not guaranteed) layout:
    LESOTHO → SOUTH AFRICA: MODERATE
    About a dozen cars waiting on the bridge.

    SOUTH AFRICA → LESOTHO: LIGHT
    Lanes are moving freely.

    SUMMARY: ...
    ADVICE: ...
"""

import re
from typing import Optional, Pattern, Tuple

from bridgewatch.models.reading import UNPARSED, ParsedReading


_STATUS = r"\**\s*(LIGHT|MODERATE|HEAVY|SEVERE)\b"
_ARROW = r"\s*(?:→|->|to)\s*"

LS_TO_SA_HEADING = re.compile(
    rf"\b(?:lesotho|ls){_ARROW}(?:south\s+africa|sa)\**\s*[:\-–]\s*{_STATUS}",
    re.IGNORECASE,
)
SA_TO_LS_HEADING = re.compile(
    rf"\b(?:south\s+africa|sa){_ARROW}(?:lesotho|ls)\**\s*[:\-–]\s*{_STATUS}",
    re.IGNORECASE,
)
SUMMARY_LINE = re.compile(r"^\W*summary\W*[:\-]\s*(.+)$", re.IGNORECASE | re.MULTILINE)
ADVICE_LINE = re.compile(r"^\W*advice\W*[:\-]\s*(.+)$", re.IGNORECASE | re.MULTILINE)


def _direction(text: str, heading: Pattern[str]) -> Tuple[Optional[str], Optional[str]]:
    match = heading.search(text)
    if match is None:
        return None, None

    status = match.group(1).upper()
    rest = text[match.end():]
    # Detail: remainder of the heading line, else the next non-empty line
    lines = rest.split("\n")
    inline = lines[0].strip(" -–:*")
    if inline:
        return status, inline
    for line in lines[1:]:
        candidate = line.strip(" *")
        if not candidate:
            continue
        if LS_TO_SA_HEADING.search(candidate) or SA_TO_LS_HEADING.search(candidate):
            break
        if SUMMARY_LINE.match(candidate) or ADVICE_LINE.match(candidate):
            break
        return status, candidate
    return status, None


def _line(text: str, pattern: Pattern[str]) -> Optional[str]:
    match = pattern.search(text)
    if match is None:
        return None
    return match.group(1).strip(" *") or None


def parse_response(text: Optional[str]) -> ParsedReading:
    """
    Scrape status/detail/summary/advice fields from an answer.

    Args:
        text: Generated answer

    Returns:
        ParsedReading; UNPARSED when nothing recognisable was found
    """
    if not text:
        return UNPARSED

    ls_status, ls_detail = _direction(text, LS_TO_SA_HEADING)
    sa_status, sa_detail = _direction(text, SA_TO_LS_HEADING)
    summary = _line(text, SUMMARY_LINE)
    advice = _line(text, ADVICE_LINE)

    if not any((ls_status, sa_status, summary, advice)):
        return UNPARSED

    return ParsedReading(
        parsed=True,
        ls_to_sa_status=ls_status,
        ls_to_sa_detail=ls_detail,
        sa_to_ls_status=sa_status,
        sa_to_ls_detail=sa_detail,
        summary=summary,
        advice=advice,
    )

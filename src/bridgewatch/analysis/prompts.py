"""
Prompt Construction
===================

Builds the system instruction and user text for the generative call.

The system instruction carries three things:
    1. Local context for the crossing and the views attached
    2. Vehicle counts, when a trusted detector result exists, with an
       instruction to use them verbatim instead of recounting
    3. The style contract: lay wording only, and the two-direction
       report layout required or suppressed by question type

Design Rules:
    - Internal vocabulary (angle names, "detector", "frame") never
      reaches the model as something it may repeat to the user
    - Without trusted counts the model is told to estimate
      qualitatively and never to state exact vehicle numbers
"""

from typing import List, Optional, Sequence

from bridgewatch.frames.selector import SelectedFrame
from bridgewatch.models.angle import CameraAngle
from bridgewatch.models.detection import (
    DIRECTION_LABELS,
    DIRECTIONS,
    DetectorResult,
    traffic_levels,
)
from bridgewatch.models.question import QuestionType


BASE_CONTEXT = """You are a friendly local traffic helper for the Maseru Bridge border crossing between Lesotho and South Africa. People crossing here usually travel between Maseru (Lesotho) and Ladybrand or Bloemfontein (South Africa).

You are looking at recent still images of the crossing. Use them to describe how busy each direction is, how long the queues look, and anything that affects travellers such as night-time darkness, rain or an obstruction. If you cannot see clearly, say so honestly."""

VIEW_DESCRIPTIONS = {
    CameraAngle.BRIDGE: "the bridge itself",
    CameraAngle.PROCESSING: "the processing area under the canopy roof",
    CameraAngle.WIDE: "the wider approach road near the Engen fuel station",
}

STYLE_CONTRACT = """How to write your answer:
- Speak like a helpful local, in plain everyday language.
- Never mention cameras, camera angles, frames, images, snapshots, detectors, models, counts being "automated", or any other behind-the-scenes wording. Say "at the bridge" or "near the Engen garage", not "in the bridge view".
- Keep it short and practical."""

STRUCTURED_FORMAT = """Use exactly this layout:

LESOTHO → SOUTH AFRICA: <LIGHT | MODERATE | HEAVY | SEVERE>
<one sentence about this direction>

SOUTH AFRICA → LESOTHO: <LIGHT | MODERATE | HEAVY | SEVERE>
<one sentence about this direction>

SUMMARY: <one sentence overall>
ADVICE: <one practical tip>

Use SEVERE only when the queue clearly extends beyond what is visible."""

NO_STRUCTURE = (
    "Do NOT use the two-direction report layout. Answer the question "
    "directly in one to three sentences."
)

TYPE_GUIDANCE = {
    QuestionType.OFF_TOPIC: (
        "The question is not about the border crossing. Politely say you can only help "
        "with traffic at Maseru Bridge, and offer a one-line update on how busy it is."
    ),
    QuestionType.YES_NO: "Start with a clear yes or no, then give one short reason.",
    QuestionType.VISUAL: "Describe what can be seen at the crossing that answers the question.",
    QuestionType.TIMING: (
        "Give a rough wait estimate or timing suggestion based on how long the queues look. "
        "Make clear it is an estimate."
    ),
    QuestionType.DIRECTIONAL: (
        "Focus on the direction the traveller asked about. Mention the other direction "
        "only briefly if at all."
    ),
    QuestionType.BORDER_INFO: (
        "Answer the border question from general knowledge and advise checking official "
        "sources for hours and documents, then add one line on current traffic."
    ),
}


def describe_age(seconds: float) -> str:
    minutes = int(max(0.0, seconds) // 60)
    if minutes < 1:
        return "less than a minute ago"
    if minutes == 1:
        return "about a minute ago"
    return f"about {minutes} minutes ago"


def describe_views(selected: Sequence[SelectedFrame], now: float) -> str:
    """One line per attached image, in attachment order."""
    lines = []
    for index, item in enumerate(selected, start=1):
        place = VIEW_DESCRIPTIONS.get(item.angle, "the crossing")
        note = " (older picture, the latest is not available)" if item.fallback else ""
        lines.append(
            f"Image {index}: {place}, taken {describe_age(item.frame.age(now))}{note}."
        )
    return "\n".join(lines)


def describe_counts(result: Optional[DetectorResult]) -> str:
    """Count section: authoritative numbers, or an instruction to estimate."""
    levels = traffic_levels(result)
    if result is None or levels is None:
        return (
            "No reliable vehicle numbers are available right now. Judge how busy each "
            "direction is from the pictures alone, say it is an estimate, and do NOT "
            "state exact vehicle numbers."
        )

    lines = [
        "Reliable vehicle numbers for the bridge right now. Use these numbers and levels "
        "exactly as given; do NOT recount vehicles from the pictures:",
    ]
    for direction in DIRECTIONS:
        breakdown = result.breakdown.get(direction)
        detail = f" ({breakdown.describe()})" if breakdown is not None else ""
        lines.append(
            f"- {DIRECTION_LABELS[direction]}: {result.count(direction)} vehicles"
            f"{detail}, level {levels[direction].value}"
        )
    lines.append(f"- Total on the bridge: {result.total}")
    return "\n".join(lines)


def build_system_prompt(
    question_type: QuestionType,
    selected: Sequence[SelectedFrame],
    detector_result: Optional[DetectorResult],
    now: float,
) -> str:
    sections: List[str] = [
        BASE_CONTEXT,
        describe_views(selected, now),
        describe_counts(detector_result),
        STYLE_CONTRACT,
    ]

    if question_type.wants_structured_format:
        sections.append(STRUCTURED_FORMAT)
    elif question_type.suppresses_structured_format:
        sections.append(NO_STRUCTURE)

    guidance = TYPE_GUIDANCE.get(question_type)
    if guidance:
        sections.append(guidance)

    return "\n\n".join(section for section in sections if section)


def build_user_prompt(question: Optional[str]) -> str:
    if question is None or not question.strip():
        return (
            "What is the traffic like at Maseru Bridge right now in each direction, "
            "and what should travellers know?"
        )
    return f"Traveller's question: {question.strip()}"

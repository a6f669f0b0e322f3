"""
Angle Classifier
================

Assigns each captured frame to one camera angle with a single-shot
vision-model query.

This classifier:
    - Describes each view by its visual landmarks
    - Asks for exactly one category word
    - Maps anything ambiguous to USELESS (fail-closed)
    - Allows at most one classification in flight

Design Rules:
    - Never raises; every failure becomes USELESS
    - A request arriving while another is running returns USELESS
      immediately instead of queueing behind a slow external call
"""

import logging
import re
from typing import Optional

from bridgewatch.llm import ImageInput, VisionLanguageClient
from bridgewatch.models.angle import USEFUL_ANGLES, CameraAngle


logger = logging.getLogger(__name__)


CLASSIFIER_SYSTEM_PROMPT = """You sort still images from a public traffic camera at the Maseru Bridge border crossing between Lesotho and South Africa. The camera rotates between several fixed views.

Categories:
BRIDGE - the bridge itself: concrete bridge deck with lane markings, a railing or bridge pillar in view, vehicles crossing over the river.
PROCESSING - the border processing area: a large canopy roof over lanes and booths, boom gates, officials or queued vehicles under the roof.
WIDE - a wide view of the approach road: several lanes seen from a distance, fuel-station signage (Engen) or roadside buildings visible.
USELESS - anything else: black or frozen screen, a logo or caption card, the camera moving between views, heavy blur, or a view you cannot place.

Reply with exactly one word: BRIDGE, PROCESSING, WIDE or USELESS."""

CLASSIFIER_PROMPT = "Which category is this image?"

_WORD = re.compile(r"[A-Z]+")


def parse_angle(text: Optional[str]) -> CameraAngle:
    """
    Map a model reply to an angle.

    Exactly one distinct useful category name must appear; otherwise
    the frame is USELESS.
    """
    if not text:
        return CameraAngle.USELESS

    words = set(_WORD.findall(text.upper()))
    found = [angle for angle in USEFUL_ANGLES if angle.value in words]
    if len(found) != 1:
        return CameraAngle.USELESS
    return found[0]


class AngleClassifier:
    """
    Single-flight camera angle classifier.

    Attributes:
        client: Vision language client
        max_tokens: Token cap for the one-word reply
        skipped_count: Requests refused because one was in flight
        error_count: Calls that failed and defaulted to USELESS
    """

    def __init__(
        self,
        client: VisionLanguageClient,
        max_tokens: int = 10,
    ) -> None:
        self.client = client
        self.max_tokens = max_tokens

        self._in_flight: bool = False
        self.classified_count: int = 0
        self.skipped_count: int = 0
        self.error_count: int = 0

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def classify(self, image: bytes, media_type: str = "image/jpeg") -> CameraAngle:
        """
        Classify one frame.

        Args:
            image: Encoded image bytes
            media_type: MIME type of `image`

        Returns:
            The frame's angle; USELESS on ambiguity, failure or contention
        """
        if self._in_flight:
            self.skipped_count += 1
            logger.info("Classification already in flight, returning USELESS")
            return CameraAngle.USELESS

        self._in_flight = True
        try:
            reply = await self.client.complete(
                system=CLASSIFIER_SYSTEM_PROMPT,
                images=[ImageInput(data=image, media_type=media_type)],
                prompt=CLASSIFIER_PROMPT,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            self.error_count += 1
            logger.warning(f"Angle classification failed: {e}")
            return CameraAngle.USELESS
        finally:
            self._in_flight = False

        angle = parse_angle(reply)
        self.classified_count += 1
        logger.info(f"Frame classified as {angle.value} (reply={(reply or '').strip()[:40]!r})")
        return angle

    def get_metrics(self) -> dict:
        return {
            "classified_count": self.classified_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "busy": self._in_flight,
        }

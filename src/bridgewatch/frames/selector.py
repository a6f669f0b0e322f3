"""
Frame Selector
==============

Picks the frames attached to one analysis request.

Selection Rules (per angle, priority BRIDGE, PROCESSING, WIDE):
    1. Newest buffered frame of the angle, if any
    2. Else the preserved frame of the angle, if fresh (tagged fallback)
    3. Else the angle is omitted

Backfill:
    If fewer than `max_frames` were selected, take the buffered angle
    with the most frames and add its next-most-recent frames, ordered
    oldest-first, until the limit is reached or the angle is exhausted.

An empty selection means there is nothing usable to analyse.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional

from bridgewatch.frames.frame import Frame
from bridgewatch.frames.store import FrameStore
from bridgewatch.models.angle import USEFUL_ANGLES, CameraAngle


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SelectedFrame:
    """
    A frame chosen for analysis.

    Attributes:
        frame: The chosen frame
        fallback: True when taken from a preserved slot, not the buffer
    """

    frame: Frame
    fallback: bool = False

    @property
    def angle(self) -> CameraAngle:
        return self.frame.angle


class FrameSelector:
    """Chooses up to `max_frames` frames from a FrameStore."""

    def __init__(self, store: FrameStore, max_frames: int = 3) -> None:
        if max_frames < 1:
            raise ValueError("max_frames must be >= 1")
        self.store = store
        self.max_frames = max_frames

    def select(self) -> List[SelectedFrame]:
        useful = self.store.useful_frames()
        selected: List[SelectedFrame] = []

        for angle in USEFUL_ANGLES:
            if len(selected) >= self.max_frames:
                break

            live = [frame for frame in useful if frame.angle is angle]
            if live:
                selected.append(SelectedFrame(frame=live[-1]))
                continue

            preserved = self.store.preserved(angle)
            if preserved is not None and self.store.is_fresh(preserved):
                selected.append(SelectedFrame(frame=preserved, fallback=True))
                logger.debug(f"Using preserved {angle.value} frame as fallback")

        if len(selected) < self.max_frames:
            selected.extend(self._backfill(useful, selected))

        return selected

    def bridge_frame(self, selected: List[SelectedFrame]) -> Optional[Frame]:
        """The BRIDGE frame within a selection, if one was chosen."""
        for item in selected:
            if item.angle is CameraAngle.BRIDGE:
                return item.frame
        return None

    def _backfill(
        self,
        useful: List[Frame],
        selected: List[SelectedFrame],
    ) -> List[SelectedFrame]:
        if not useful:
            return []

        counts = Counter(frame.angle for frame in useful)
        # Ties resolve by angle priority
        deepest = max(USEFUL_ANGLES, key=lambda angle: (counts[angle], -USEFUL_ANGLES.index(angle)))
        if counts[deepest] == 0:
            return []

        used = {id(item.frame) for item in selected}
        remainder = [
            frame for frame in useful
            if frame.angle is deepest and id(frame) not in used
        ]
        needed = self.max_frames - len(selected)
        if needed <= 0 or not remainder:
            return []

        extra = remainder[-needed:]
        logger.debug(f"Backfilled {len(extra)} {deepest.value} frame(s)")
        return [SelectedFrame(frame=frame) for frame in extra]

"""
Frame Store
===========

Bounded rolling buffer of recent frames plus one preserved frame per
useful camera angle.

Retention Rules:
    - Rolling buffer holds the N most recent frames in capture order;
      the oldest is evicted first once N is exceeded
    - Each useful angle (BRIDGE, PROCESSING, WIDE) has a preserved slot
      holding the newest frame of that angle, overwritten unconditionally
    - Buffer eviction never touches preserved slots
    - A preserved frame older than the freshness threshold is stale: it
      is kept for diagnostics but must not be used for analysis

Concurrency:
    All methods are synchronous and never yield to the event loop, so a
    single asyncio loop cannot observe a half-applied mutation.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from bridgewatch.frames.frame import Frame
from bridgewatch.models.angle import USEFUL_ANGLES, CameraAngle


logger = logging.getLogger(__name__)


class FrameStore:
    """
    Rolling frame buffer with per-angle preserved frames.

    Attributes:
        capacity: Maximum frames kept in the rolling buffer
        freshness_seconds: Maximum age at which a preserved frame is usable
        evicted_count: Number of frames evicted from the buffer so far

    Example:
        store = FrameStore(capacity=12, freshness_seconds=600)
        store.record(frame)
        latest = store.latest()
    """

    def __init__(
        self,
        capacity: int = 12,
        freshness_seconds: float = 600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize frame store.

        Args:
            capacity: Rolling buffer size. Must be >= 1.
            freshness_seconds: Preserved-frame freshness threshold
            clock: Source of the current UNIX time
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if freshness_seconds < 0:
            raise ValueError("freshness_seconds must be >= 0")

        self._capacity = capacity
        self._freshness_seconds = freshness_seconds
        self._clock = clock
        self._buffer: Deque[Frame] = deque()
        self._preserved: Dict[CameraAngle, Frame] = {}
        self._evicted_count: int = 0
        self._total_recorded: int = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def freshness_seconds(self) -> float:
        return self._freshness_seconds

    @property
    def size(self) -> int:
        """Current number of frames in the rolling buffer."""
        return len(self._buffer)

    @property
    def evicted_count(self) -> int:
        return self._evicted_count

    def now(self) -> float:
        return self._clock()

    def record(self, frame: Frame) -> None:
        """
        Append a frame, evicting the oldest if over capacity.

        Frames of a useful angle also overwrite that angle's preserved
        slot. Capture order is monotonic, so no age comparison is made.
        """
        self._buffer.append(frame)
        self._total_recorded += 1

        while len(self._buffer) > self._capacity:
            evicted = self._buffer.popleft()
            self._evicted_count += 1
            logger.debug(f"Evicted {evicted!r} from rolling buffer")

        if frame.angle.is_useful:
            self._preserved[frame.angle] = frame

    def latest(self) -> Optional[Frame]:
        """Most recently recorded frame, or None if the buffer is empty."""
        if not self._buffer:
            return None
        return self._buffer[-1]

    def frames(self) -> Tuple[Frame, ...]:
        """Snapshot of the rolling buffer in capture order."""
        return tuple(self._buffer)

    def useful_frames(self) -> List[Frame]:
        """Buffered frames whose angle is not USELESS, in capture order."""
        return [frame for frame in self._buffer if frame.angle.is_useful]

    def preserved(self, angle: CameraAngle) -> Optional[Frame]:
        """Preserved frame for an angle, fresh or stale."""
        return self._preserved.get(angle)

    def preserved_frames(self) -> Dict[CameraAngle, Frame]:
        return dict(self._preserved)

    def is_fresh(self, frame: Frame) -> bool:
        """Whether `now - frame.timestamp <= freshness threshold`."""
        return self._clock() - frame.timestamp <= self._freshness_seconds

    def metrics(self) -> dict:
        """
        Get store metrics for observability.

        Returns:
            Dict with buffer size, capacity, eviction counters and
            per-angle preserved-frame age / freshness
        """
        now = self._clock()
        preserved = {}
        for angle in USEFUL_ANGLES:
            frame = self._preserved.get(angle)
            if frame is None:
                preserved[angle.value] = None
            else:
                preserved[angle.value] = {
                    "age_seconds": round(frame.age(now), 1),
                    "fresh": self.is_fresh(frame),
                }
        return {
            "size": self.size,
            "capacity": self._capacity,
            "evicted_count": self._evicted_count,
            "total_recorded": self._total_recorded,
            "preserved": preserved,
        }

"""
Response Caches
===============

Two short-lived, process-local caches in front of the generative call.

    - ResponseCache: One entry per CacheCategory, for repeated questions
    - LatestAnalysisSlot: Single slot for the newest unprompted analysis

Design Rules:
    - Lazy expiry: an entry older than the TTL reads as absent
    - No sweeper; entries are simply overwritten by the next write
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from bridgewatch.models.output import AnalysisResult
from bridgewatch.models.question import CacheCategory


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """
    Cached answer for one category.

    Attributes:
        text: Generated answer
        frame_timestamp: Capture time of the newest frame used
        frames_used: Number of frames the answer was based on
        created_at: UNIX time the entry was written
    """

    text: str
    frame_timestamp: Optional[float]
    frames_used: int
    created_at: float


class ResponseCache:
    """Category-keyed answer cache with lazy TTL expiry."""

    def __init__(
        self,
        ttl_seconds: float = 120.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheCategory, CacheEntry] = {}
        self.hits: int = 0
        self.misses: int = 0

    def get(self, category: CacheCategory) -> Optional[CacheEntry]:
        """Live entry for a category, or None if absent or expired."""
        entry = self._entries.get(category)
        if entry is None or self._clock() - entry.created_at >= self.ttl_seconds:
            self.misses += 1
            return None
        self.hits += 1
        logger.debug(f"Response cache hit: {category.value}")
        return entry

    def put(
        self,
        category: CacheCategory,
        text: str,
        frame_timestamp: Optional[float],
        frames_used: int,
    ) -> CacheEntry:
        entry = CacheEntry(
            text=text,
            frame_timestamp=frame_timestamp,
            frames_used=frames_used,
            created_at=self._clock(),
        )
        self._entries[category] = entry
        return entry

    def live_count(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries.values() if now - entry.created_at < self.ttl_seconds)

    def metrics(self) -> dict:
        return {
            "ttl_seconds": self.ttl_seconds,
            "entries": len(self._entries),
            "live_entries": self.live_count(),
            "hits": self.hits,
            "misses": self.misses,
        }


class LatestAnalysisSlot:
    """
    Single-slot holder for the newest unprompted analysis.

    Absorbs bursts of identical status polling.
    """

    def __init__(
        self,
        ttl_seconds: float = 180.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._result: Optional[AnalysisResult] = None
        self._stored_at: float = 0.0

    def get(self) -> Optional[AnalysisResult]:
        if self._result is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._result

    def put(self, result: AnalysisResult) -> None:
        """Store a result; reads return it flagged as cached."""
        self._result = result.as_cached()
        self._stored_at = self._clock()

    def clear(self) -> None:
        self._result = None
        self._stored_at = 0.0

    def metrics(self) -> dict:
        return {
            "ttl_seconds": self.ttl_seconds,
            "populated": self.get() is not None,
        }

"""
Background Recorder
===================

Fire-and-forget submission of frames and readings to a sink.

Design Rules:
    - submit_* never blocks and never raises
    - Each write runs in a worker thread inside its own error boundary;
      failures are logged and dropped
    - Response parsing for readings happens here, off the request path
    - drain() lets shutdown wait for pending writes
"""

import asyncio
import logging
from typing import Callable, Set

from bridgewatch.analysis.parser import parse_response
from bridgewatch.frames.frame import Frame
from bridgewatch.models.reading import AnalysisReading
from bridgewatch.persistence.sink import PersistenceSink


logger = logging.getLogger(__name__)


class BackgroundRecorder:
    """
    Non-blocking writer in front of a PersistenceSink.

    Attributes:
        sink: Destination sink
        written_count: Successful writes
        failed_count: Writes that raised and were dropped
    """

    def __init__(self, sink: PersistenceSink) -> None:
        self.sink = sink
        self._pending: Set[asyncio.Task] = set()
        self.written_count: int = 0
        self.failed_count: int = 0

    @property
    def configured(self) -> bool:
        return bool(getattr(self.sink, "configured", True))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit_frame(self, frame: Frame) -> None:
        self._submit("frame", lambda: self.sink.save_frame(frame))

    def submit_reading(self, reading: AnalysisReading) -> None:
        def write() -> None:
            parsed = parse_response(reading.message) if reading.success else None
            self.sink.save_reading(reading.with_parsed(parsed) if parsed else reading)

        self._submit("reading", write)

    def _submit(self, kind: str, write: Callable[[], None]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._guarded(kind, write))
        except RuntimeError:
            logger.warning(f"No running event loop, dropping {kind} write")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guarded(self, kind: str, write: Callable[[], None]) -> None:
        try:
            await asyncio.to_thread(write)
            self.written_count += 1
        except Exception as e:
            self.failed_count += 1
            logger.warning(f"Persistence {kind} write failed: {e}")

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for pending writes to finish, up to `timeout` seconds."""
        if not self._pending:
            return
        _, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} persistence write(s) still pending at shutdown")

    def get_metrics(self) -> dict:
        return {
            "configured": self.configured,
            "pending": self.pending_count,
            "written_count": self.written_count,
            "failed_count": self.failed_count,
        }

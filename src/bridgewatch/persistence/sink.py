"""Persistence sink protocol and the no-op default."""

from typing import Protocol

from bridgewatch.frames.frame import Frame
from bridgewatch.models.reading import AnalysisReading


class PersistenceSink(Protocol):
    """
    Optional durable log of frames and analysis readings.

    Methods are blocking; callers run them off the event loop.
    """

    def save_frame(self, frame: Frame) -> None:
        ...

    def save_reading(self, reading: AnalysisReading) -> None:
        ...

    def close(self) -> None:
        ...


class NullSink:
    """Sink used when no database is configured."""

    configured = False

    def save_frame(self, frame: Frame) -> None:
        pass

    def save_reading(self, reading: AnalysisReading) -> None:
        pass

    def close(self) -> None:
        pass

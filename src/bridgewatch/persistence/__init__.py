"""
Persistence Module
==================

Optional durability / analytics sink for frames and analysis readings.

Components:
    - PersistenceSink: Protocol for sinks
    - NullSink: Default when no database is configured
    - SqlAlchemySink: Relational sink (any SQLAlchemy URL)
    - BackgroundRecorder: Fire-and-forget writer with its own error boundary

The service behaves identically for users with or without a sink.
"""

from typing import Optional

from bridgewatch.persistence.sink import NullSink, PersistenceSink
from bridgewatch.persistence.recorder import BackgroundRecorder


def create_sink(database_url: Optional[str]) -> PersistenceSink:
    """SqlAlchemySink for a configured URL, NullSink otherwise."""
    if not database_url:
        return NullSink()
    from bridgewatch.persistence.database import SqlAlchemySink
    return SqlAlchemySink(database_url)


__all__ = [
    "PersistenceSink",
    "NullSink",
    "BackgroundRecorder",
    "create_sink",
]

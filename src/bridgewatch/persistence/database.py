"""
Relational Persistence
======================

SQLAlchemy sink writing captured frames and analysis readings.

Tables:
    - frames: one row per recorded useful-angle frame (image blob)
    - analysis_readings: one row per generated analysis, with detector
      counts, derived levels and best-effort parsed fields

Design Rules:
    - Synchronous; callers run writes in a worker thread
    - Schema is created on construction
"""

import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, LargeBinary, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from bridgewatch.frames.frame import Frame
from bridgewatch.models.detection import LS_TO_SA, SA_TO_LS
from bridgewatch.models.reading import AnalysisReading


class Base(DeclarativeBase):
    """Declarative base for persistence tables."""
    pass


class FrameRecord(Base):
    """A captured frame keyed by angle and capture time."""

    __tablename__ = "frames"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    angle: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    media_type: Mapped[str] = mapped_column(String(32), nullable=False)
    image: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class ReadingRecord(Base):
    """One analysis result with its detector and parsed fields."""

    __tablename__ = "analysis_readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    question: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    question_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    frames_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    frame_captured_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    angles: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    count_source: Mapped[str] = mapped_column(String(32), nullable=False)
    ls_to_sa_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sa_to_ls_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    direction_uncertain: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    detector_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ls_to_sa_level: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    sa_to_ls_level: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    parsed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ls_to_sa_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    ls_to_sa_detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sa_to_ls_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    sa_to_ls_detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    advice: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


def _utc(timestamp: Optional[float]) -> Optional[datetime]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class SqlAlchemySink:
    """Relational sink for frames and readings."""

    configured = True

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        """
        Initialize the sink.

        Args:
            database_url: SQLAlchemy URL, used when no engine is given
            engine: Pre-built engine (tests pass an in-memory SQLite one)

        Raises:
            ValueError: If neither is provided
        """
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)
        Base.metadata.create_all(bind=engine)

    def save_frame(self, frame: Frame) -> None:
        with self._sessions() as session:
            session.add(FrameRecord(
                angle=frame.angle.value,
                captured_at=_utc(frame.timestamp),
                media_type=frame.media_type,
                image=frame.image,
            ))
            session.commit()

    def save_reading(self, reading: AnalysisReading) -> None:
        detector = reading.detector
        levels = reading.detector_levels or {}
        parsed = reading.parsed
        with self._sessions() as session:
            session.add(ReadingRecord(
                created_at=_utc(reading.timestamp),
                success=reading.success,
                message=reading.message,
                question=reading.question,
                question_type=reading.question_type,
                category=reading.category,
                frames_used=reading.frames_used,
                frame_captured_at=_utc(reading.frame_timestamp),
                angles=reading.angles,
                count_source=reading.count_source,
                ls_to_sa_count=detector.ls_to_sa if detector else None,
                sa_to_ls_count=detector.sa_to_ls if detector else None,
                total_count=detector.total if detector else None,
                direction_uncertain=detector.direction_uncertain if detector else None,
                detector_json=json.dumps(detector.to_dict()) if detector else None,
                ls_to_sa_level=levels.get(LS_TO_SA),
                sa_to_ls_level=levels.get(SA_TO_LS),
                parsed=parsed.parsed,
                ls_to_sa_status=parsed.ls_to_sa_status,
                ls_to_sa_detail=parsed.ls_to_sa_detail,
                sa_to_ls_status=parsed.sa_to_ls_status,
                sa_to_ls_detail=parsed.sa_to_ls_detail,
                summary=parsed.summary,
                advice=parsed.advice,
                error=reading.error,
            ))
            session.commit()

    def close(self) -> None:
        self.engine.dispose()

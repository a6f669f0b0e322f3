"""
Persistence Tests
=================

SQLAlchemy sink against in-memory SQLite, the null sink and the
background recorder's error boundary.
"""

import json

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from bridgewatch.models.angle import CameraAngle
from bridgewatch.models.detection import DetectorResult
from bridgewatch.models.reading import COUNT_SOURCE_DETECTOR, AnalysisReading, ParsedReading
from bridgewatch.persistence import BackgroundRecorder, NullSink, create_sink
from bridgewatch.persistence.database import FrameRecord, ReadingRecord, SqlAlchemySink

from conftest import STRUCTURED_ANSWER, RecordingSink, make_frame


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture()
def sql_sink(db_engine):
    return SqlAlchemySink(engine=db_engine)


def _reading(**overrides):
    values = dict(
        timestamp=1_700_000_100.0,
        success=True,
        message=STRUCTURED_ANSWER,
        question="going from SA to Lesotho",
        question_type="directional",
        category="sa_to_ls",
        frames_used=2,
        frame_timestamp=1_700_000_040.0,
        angles="BRIDGE,WIDE",
    )
    values.update(overrides)
    return AnalysisReading(**values)


class TestSqlAlchemySink:
    """Rows written by the relational sink."""

    def test_save_frame(self, sql_sink, db_engine):
        sql_sink.save_frame(make_frame(CameraAngle.PROCESSING, 1_700_000_000.0, image=b"jpeg"))

        with Session(db_engine) as session:
            row = session.scalars(select(FrameRecord)).one()
        assert row.angle == "PROCESSING"
        assert row.image == b"jpeg"
        assert row.media_type == "image/jpeg"
        assert row.captured_at.year == 2023

    def test_save_reading_with_detector(self, sql_sink, db_engine, detector_payload):
        reading = _reading(
            detector=DetectorResult.from_payload(detector_payload),
            count_source=COUNT_SOURCE_DETECTOR,
            detector_levels={"LS_to_SA": "HEAVY", "SA_to_LS": "LIGHT"},
            parsed=ParsedReading(parsed=True, ls_to_sa_status="MODERATE", summary="Busy."),
        )
        sql_sink.save_reading(reading)

        with Session(db_engine) as session:
            row = session.scalars(select(ReadingRecord)).one()
        assert row.count_source == COUNT_SOURCE_DETECTOR
        assert row.ls_to_sa_count == 12
        assert row.sa_to_ls_count == 2
        assert row.total_count == 14
        assert row.ls_to_sa_level == "HEAVY"
        assert row.sa_to_ls_level == "LIGHT"
        assert json.loads(row.detector_json)["total"] == 14
        assert row.parsed is True
        assert row.ls_to_sa_status == "MODERATE"
        assert row.category == "sa_to_ls"

    def test_save_reading_without_detector(self, sql_sink, db_engine):
        sql_sink.save_reading(_reading(success=False, message="down", error="overloaded"))

        with Session(db_engine) as session:
            row = session.scalars(select(ReadingRecord)).one()
        assert row.ls_to_sa_count is None
        assert row.detector_json is None
        assert row.parsed is False
        assert row.error == "overloaded"

    def test_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            SqlAlchemySink()


class TestCreateSink:
    """Sink selection from configuration."""

    def test_no_url_is_null_sink(self):
        sink = create_sink(None)
        assert isinstance(sink, NullSink)
        assert sink.configured is False

    def test_url_builds_sql_sink(self):
        sink = create_sink("sqlite://")
        try:
            assert isinstance(sink, SqlAlchemySink)
        finally:
            sink.close()


class TestBackgroundRecorder:
    """Fire-and-forget writes with their own error boundary."""

    @pytest.mark.asyncio
    async def test_writes_frames_and_parsed_readings(self):
        sink = RecordingSink()
        recorder = BackgroundRecorder(sink)
        frame = make_frame(CameraAngle.BRIDGE, 1.0)

        recorder.submit_frame(frame)
        recorder.submit_reading(_reading())
        await recorder.drain()

        assert sink.frames == [frame]
        assert sink.readings[0].parsed.parsed is True
        assert sink.readings[0].parsed.sa_to_ls_status == "LIGHT"
        assert recorder.written_count == 2
        assert recorder.pending_count == 0

    @pytest.mark.asyncio
    async def test_failed_reading_is_not_parsed(self):
        sink = RecordingSink()
        recorder = BackgroundRecorder(sink)

        recorder.submit_reading(_reading(success=False, message="LESOTHO → SA: HEAVY"))
        await recorder.drain()

        assert sink.readings[0].parsed.parsed is False

    @pytest.mark.asyncio
    async def test_sink_errors_are_swallowed(self):
        recorder = BackgroundRecorder(RecordingSink(fail=True))

        recorder.submit_frame(make_frame(CameraAngle.BRIDGE, 1.0))
        recorder.submit_reading(_reading())
        await recorder.drain()

        assert recorder.failed_count == 2
        assert recorder.written_count == 0

    def test_submit_without_loop_is_dropped(self):
        sink = RecordingSink()
        recorder = BackgroundRecorder(sink)

        recorder.submit_frame(make_frame(CameraAngle.BRIDGE, 1.0))

        assert recorder.pending_count == 0
        assert sink.frames == []

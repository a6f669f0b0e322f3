"""
Frame Store Tests
=================

Rolling buffer bound, preserved-frame slots and freshness.
"""

import pytest

from bridgewatch.frames.store import FrameStore
from bridgewatch.models.angle import CameraAngle

from conftest import FakeClock, make_frame


ROTATION = [CameraAngle.BRIDGE, CameraAngle.USELESS, CameraAngle.PROCESSING, CameraAngle.WIDE]


class TestRollingBuffer:
    """Tests for the bounded FIFO buffer."""

    @pytest.mark.parametrize("captures", [1, 12, 13, 40])
    def test_buffer_never_exceeds_capacity(self, captures):
        clock = FakeClock()
        store = FrameStore(capacity=12, clock=clock)
        recorded = []

        for i in range(captures):
            frame = make_frame(ROTATION[i % len(ROTATION)], clock.now + i)
            store.record(frame)
            recorded.append(frame)
            assert store.size <= 12

        assert list(store.frames()) == recorded[-12:]
        assert store.evicted_count == max(0, captures - 12)

    def test_latest(self):
        store = FrameStore(capacity=3)
        assert store.latest() is None

        first = make_frame(CameraAngle.BRIDGE, 1.0)
        second = make_frame(CameraAngle.USELESS, 2.0)
        store.record(first)
        store.record(second)

        assert store.latest() is second

    def test_useful_frames_excludes_useless(self):
        store = FrameStore(capacity=5)
        frames = [make_frame(angle, float(i)) for i, angle in enumerate(ROTATION)]
        for frame in frames:
            store.record(frame)

        assert store.useful_frames() == [frames[0], frames[2], frames[3]]

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            FrameStore(capacity=0)


class TestPreservedFrames:
    """Tests for the per-angle preserved slots."""

    def test_slot_tracks_most_recent_of_angle(self):
        store = FrameStore(capacity=2)
        bridges = []

        for i in range(10):
            angle = CameraAngle.BRIDGE if i % 3 == 0 else CameraAngle.PROCESSING
            frame = make_frame(angle, float(i))
            store.record(frame)
            if angle is CameraAngle.BRIDGE:
                bridges.append(frame)
            assert store.preserved(CameraAngle.BRIDGE) is bridges[-1]

    def test_survives_buffer_eviction(self):
        store = FrameStore(capacity=2)
        wide = make_frame(CameraAngle.WIDE, 1.0)
        store.record(wide)
        for i in range(5):
            store.record(make_frame(CameraAngle.USELESS, 2.0 + i))

        assert wide not in store.frames()
        assert store.preserved(CameraAngle.WIDE) is wide

    def test_useless_never_preserved(self):
        store = FrameStore(capacity=2)
        store.record(make_frame(CameraAngle.USELESS, 1.0))

        assert store.preserved(CameraAngle.USELESS) is None
        assert store.preserved_frames() == {}


class TestFreshness:
    """Freshness boundary is inclusive on the fresh side."""

    def test_exactly_at_threshold_is_fresh(self):
        clock = FakeClock(now=1000.0)
        store = FrameStore(freshness_seconds=600.0, clock=clock)
        frame = make_frame(CameraAngle.BRIDGE, 1000.0)

        clock.now = 1600.0
        assert store.is_fresh(frame)

    def test_one_microsecond_past_is_stale(self):
        clock = FakeClock(now=1000.0)
        store = FrameStore(freshness_seconds=600.0, clock=clock)
        frame = make_frame(CameraAngle.BRIDGE, 1000.0)

        clock.now = 1600.000001
        assert not store.is_fresh(frame)

    def test_stale_preserved_frame_is_kept(self):
        clock = FakeClock(now=0.0)
        store = FrameStore(freshness_seconds=600.0, clock=clock)
        frame = make_frame(CameraAngle.WIDE, 0.0)
        store.record(frame)

        clock.advance(3600)
        assert store.preserved(CameraAngle.WIDE) is frame
        assert not store.is_fresh(frame)

    def test_metrics_report_preserved_age(self):
        clock = FakeClock(now=0.0)
        store = FrameStore(capacity=4, freshness_seconds=600.0, clock=clock)
        store.record(make_frame(CameraAngle.BRIDGE, 0.0))
        clock.advance(900)

        metrics = store.metrics()
        assert metrics["size"] == 1
        assert metrics["preserved"]["BRIDGE"] == {"age_seconds": 900.0, "fresh": False}
        assert metrics["preserved"]["WIDE"] is None

"""
Capture Tests
=============

Image checks, the FFmpeg grabber and the capture scheduler.
"""

import asyncio

import cv2
import numpy as np
import pytest

from bridgewatch.frames.grabber import FFmpegFrameGrabber, FrameGrabError, FrameGrabTimeout
from bridgewatch.frames.image_check import (
    ImageDecodeError,
    normalize_image,
    sniff_media_type,
)
from bridgewatch.frames.scheduler import CaptureScheduler
from bridgewatch.frames.store import FrameStore
from bridgewatch.models.angle import CameraAngle
from bridgewatch.perception.classifier import AngleClassifier

from conftest import FakeClock, FakeGrabber, FakeVisionClient, encode_jpeg


class TestImageCheck:
    """Tests for decode/validate/downscale."""

    def test_small_image_unchanged(self, jpeg_bytes):
        data, media_type = normalize_image(jpeg_bytes, max_width=1280)
        assert data == jpeg_bytes
        assert media_type == "image/jpeg"

    def test_wide_image_downscaled(self):
        data, media_type = normalize_image(encode_jpeg(width=200, height=100), max_width=100)

        decoded = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        assert media_type == "image/jpeg"
        assert decoded.shape[1] == 100
        assert decoded.shape[0] == 50

    def test_png_media_type(self):
        ok, encoded = cv2.imencode(".png", np.zeros((8, 8, 3), dtype=np.uint8))
        assert ok
        data, media_type = normalize_image(encoded.tobytes())
        assert media_type == "image/png"
        assert sniff_media_type(data) == "image/png"

    @pytest.mark.parametrize("data", [b"", b"not an image at all"])
    def test_undecodable_bytes(self, data):
        with pytest.raises(ImageDecodeError):
            normalize_image(data)


class _CommandGrabber(FFmpegFrameGrabber):
    """Grabber running an arbitrary command instead of ffmpeg."""

    def __init__(self, command, timeout=5.0):
        super().__init__(stream_url="unused", timeout=timeout)
        self.command = command

    def build_command(self):
        return list(self.command)


class TestFFmpegFrameGrabber:
    """Tests for subprocess handling."""

    def test_build_command(self):
        grabber = FFmpegFrameGrabber("https://example.test/live.m3u8", ffmpeg_bin="/usr/bin/ffmpeg")
        command = grabber.build_command()

        assert command[0] == "/usr/bin/ffmpeg"
        assert command[command.index("-i") + 1] == "https://example.test/live.m3u8"
        assert command[command.index("-frames:v") + 1] == "1"
        assert command[-1] == "pipe:1"

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            FFmpegFrameGrabber("x", timeout=0)

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        grabber = FFmpegFrameGrabber("x", ffmpeg_bin="/nonexistent/bridgewatch-ffmpeg")
        with pytest.raises(FrameGrabError):
            await grabber.grab()

    @pytest.mark.asyncio
    async def test_unexecutable_binary(self, tmp_path):
        binary = tmp_path / "ffmpeg"
        binary.write_text("not a program")
        binary.chmod(0o644)

        grabber = FFmpegFrameGrabber("x", ffmpeg_bin=str(binary))
        with pytest.raises(FrameGrabError, match="could not be started"):
            await grabber.grab()

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        grabber = _CommandGrabber(["sleep", "10"], timeout=0.2)
        with pytest.raises(FrameGrabTimeout):
            await grabber.grab()

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        with pytest.raises(FrameGrabError):
            await _CommandGrabber(["false"]).grab()

    @pytest.mark.asyncio
    async def test_empty_output(self):
        with pytest.raises(FrameGrabError, match="no image data"):
            await _CommandGrabber(["true"]).grab()

    @pytest.mark.asyncio
    async def test_stdout_returned(self):
        assert await _CommandGrabber(["printf", "abc"]).grab() == b"abc"


def _scheduler(grabber, reply="BRIDGE", on_frame=None, clock=None):
    clock = clock or FakeClock()
    store = FrameStore(capacity=12, clock=clock)
    classifier = AngleClassifier(FakeVisionClient(reply=reply))
    scheduler = CaptureScheduler(
        grabber=grabber,
        classifier=classifier,
        store=store,
        interval=3600,
        on_frame=on_frame,
        clock=clock,
    )
    return scheduler, store


class TestCaptureScheduler:
    """Tests for capture cycles and single-flight behaviour."""

    @pytest.mark.asyncio
    async def test_capture_records_classified_frame(self, jpeg_bytes):
        persisted = []
        scheduler, store = _scheduler(FakeGrabber(jpeg_bytes), reply="PROCESSING", on_frame=persisted.append)

        frame = await scheduler.capture()

        assert frame.angle is CameraAngle.PROCESSING
        assert frame.image == jpeg_bytes
        assert store.latest() is frame
        assert persisted == [frame]
        assert scheduler.metrics.captures_succeeded == 1

    @pytest.mark.asyncio
    async def test_useless_frame_buffered_not_persisted(self):
        persisted = []
        scheduler, store = _scheduler(FakeGrabber(), reply="no idea", on_frame=persisted.append)

        frame = await scheduler.capture()

        assert frame.angle is CameraAngle.USELESS
        assert store.size == 1
        assert persisted == []

    @pytest.mark.asyncio
    async def test_concurrent_triggers_grab_once(self):
        gate = asyncio.Event()
        grabber = FakeGrabber(gate=gate)
        scheduler, store = _scheduler(grabber)

        first = asyncio.create_task(scheduler.capture())
        await asyncio.sleep(0)
        assert scheduler.in_progress

        second = await scheduler.capture()
        third = await scheduler.capture()
        gate.set()
        recorded = await first

        assert grabber.calls == 1
        assert second is None and third is None
        assert store.latest() is recorded
        assert scheduler.metrics.captures_skipped == 2
        assert not scheduler.in_progress

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_frames(self, grab_error):
        grabber = FakeGrabber()
        scheduler, store = _scheduler(grabber)
        good = await scheduler.capture()

        grabber.error = grab_error
        served = await scheduler.capture()

        assert served is good
        assert store.size == 1
        assert scheduler.metrics.captures_failed == 1
        assert scheduler.metrics.last_error == str(grab_error)

    @pytest.mark.asyncio
    async def test_timeout_counted(self):
        scheduler, store = _scheduler(FakeGrabber(error=FrameGrabTimeout("slow")))

        assert await scheduler.capture() is None
        assert scheduler.metrics.captures_timed_out == 1
        assert store.size == 0

    @pytest.mark.asyncio
    async def test_corrupt_image_is_a_failed_capture(self):
        scheduler, store = _scheduler(FakeGrabber(data=b"garbage"))

        assert await scheduler.capture() is None
        assert scheduler.metrics.captures_failed == 1
        assert store.size == 0

    @pytest.mark.asyncio
    async def test_run_captures_immediately_and_stops(self):
        grabber = FakeGrabber()
        scheduler, store = _scheduler(grabber)

        scheduler.start()
        for _ in range(50):
            if store.size:
                break
            await asyncio.sleep(0.01)
        assert scheduler.running
        await scheduler.stop()

        assert grabber.calls == 1
        assert store.size == 1
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_frame_hook_error_keeps_capture(self, jpeg_bytes):
        def broken_hook(frame):
            raise RuntimeError("sink gone")

        scheduler, store = _scheduler(FakeGrabber(jpeg_bytes), on_frame=broken_hook)

        frame = await scheduler.capture()

        assert frame is not None
        assert store.latest() is frame
        assert scheduler.metrics.captures_succeeded == 1
        assert scheduler.metrics.captures_failed == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_serves_latest(self):
        grabber = FakeGrabber()
        scheduler, store = _scheduler(grabber)
        good = await scheduler.capture()

        grabber.error = PermissionError("ffmpeg not executable")
        served = await scheduler.capture()

        assert served is good
        assert scheduler.metrics.captures_failed == 1
        assert scheduler.metrics.last_error == "ffmpeg not executable"
        assert not scheduler.in_progress

    @pytest.mark.asyncio
    async def test_run_survives_unexpected_error(self):
        grabber = FakeGrabber(error=PermissionError("ffmpeg not executable"))
        scheduler = CaptureScheduler(
            grabber=grabber,
            classifier=AngleClassifier(FakeVisionClient()),
            store=FrameStore(capacity=12, clock=FakeClock()),
            interval=0.05,
        )

        task = scheduler.start()
        for _ in range(100):
            if grabber.calls >= 3:
                break
            await asyncio.sleep(0.01)

        assert not task.done()
        await scheduler.stop()

        assert grabber.calls >= 3
        assert scheduler.metrics.captures_failed == grabber.calls
        assert not scheduler.running

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            CaptureScheduler(FakeGrabber(), AngleClassifier(FakeVisionClient()), FrameStore(), interval=0)

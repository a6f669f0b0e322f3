"""
Capture Scheduler
=================

Periodically grabs a still, classifies it and records it in the store.

This module provides the CaptureScheduler class which:
    - Captures once immediately at startup, then every `interval` seconds
    - Serialises captures with an in-progress flag; overlapping triggers
      return the most recent known frame instead of grabbing again
    - Treats a failed or timed-out grab as a missed tick: logged, the
      store is left unchanged, and the next tick is the retry

Design Rules:
    - Never raises for a single missed capture
    - Foreground requests and the background timer share `capture()`
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from bridgewatch.frames.frame import Frame
from bridgewatch.frames.grabber import FrameGrabber, FrameGrabError, FrameGrabTimeout
from bridgewatch.frames.image_check import ImageDecodeError, normalize_image
from bridgewatch.frames.store import FrameStore
from bridgewatch.perception.classifier import AngleClassifier


logger = logging.getLogger(__name__)


class CaptureMetrics:
    """Metrics for CaptureScheduler observability."""

    __slots__ = (
        "captures_succeeded",
        "captures_failed",
        "captures_timed_out",
        "captures_skipped",
        "last_success_at",
        "last_failure_at",
        "last_error",
    )

    def __init__(self) -> None:
        self.captures_succeeded: int = 0
        self.captures_failed: int = 0
        self.captures_timed_out: int = 0
        self.captures_skipped: int = 0
        self.last_success_at: Optional[float] = None
        self.last_failure_at: Optional[float] = None
        self.last_error: Optional[str] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "captures_succeeded": self.captures_succeeded,
            "captures_failed": self.captures_failed,
            "captures_timed_out": self.captures_timed_out,
            "captures_skipped": self.captures_skipped,
            "last_success_at": self.last_success_at,
            "last_failure_at": self.last_failure_at,
            "last_error": self.last_error,
        }


class CaptureScheduler:
    """
    Background capture loop with single-flight captures.

    Attributes:
        interval: Seconds between scheduled captures
        metrics: Operational metrics

    Example:
        scheduler = CaptureScheduler(grabber, classifier, store, interval=180)
        scheduler.start()
        ...
        frame = await scheduler.capture()   # foreground trigger
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        grabber: FrameGrabber,
        classifier: AngleClassifier,
        store: FrameStore,
        interval: float = 180.0,
        max_image_width: int = 1280,
        jpeg_quality: int = 85,
        on_frame: Optional[Callable[[Frame], None]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize capture scheduler.

        Args:
            grabber: Frame acquisition backend (enforces its own timeout)
            classifier: Angle classifier
            store: Frame store fed by this scheduler
            interval: Seconds between scheduled captures
            max_image_width: Frames wider than this are downscaled
            jpeg_quality: Quality used when downscaling
            on_frame: Called with every recorded useful-angle frame (persistence hook)
            clock: Source of the current UNIX time
        """
        if interval <= 0:
            raise ValueError("interval must be > 0")

        self.grabber = grabber
        self.classifier = classifier
        self.store = store
        self.interval = interval
        self.max_image_width = max_image_width
        self.jpeg_quality = jpeg_quality
        self._on_frame = on_frame
        self._clock = clock

        self._in_progress: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        self.metrics = CaptureMetrics()

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def running(self) -> bool:
        return self._running

    async def capture(self) -> Optional[Frame]:
        """
        Run one grab/classify/record cycle.

        Returns:
            The newly recorded frame, or the most recent known frame if a
            capture was already running or this one failed
        """
        if self._in_progress:
            self.metrics.captures_skipped += 1
            logger.debug("Capture already in progress, serving latest frame")
            return self.store.latest()

        self._in_progress = True
        try:
            raw = await self.grabber.grab()
            image, media_type = normalize_image(
                raw,
                max_width=self.max_image_width,
                jpeg_quality=self.jpeg_quality,
            )
            captured_at = self._clock()
            angle = await self.classifier.classify(image, media_type)

            frame = Frame(
                image=image,
                timestamp=captured_at,
                angle=angle,
                media_type=media_type,
            )
            self.store.record(frame)

            self.metrics.captures_succeeded += 1
            self.metrics.last_success_at = captured_at
            logger.info(f"Captured {frame!r}")

            if self._on_frame is not None and angle.is_useful:
                try:
                    self._on_frame(frame)
                except Exception as e:
                    logger.warning(f"Frame hook failed for {frame!r}: {e}")

            return frame

        except FrameGrabTimeout as e:
            self.metrics.captures_timed_out += 1
            self._record_failure(e)
            return self.store.latest()
        except (FrameGrabError, ImageDecodeError) as e:
            self.metrics.captures_failed += 1
            self._record_failure(e)
            return self.store.latest()
        except Exception as e:
            self.metrics.captures_failed += 1
            logger.exception(f"Unexpected capture error: {e!r}")
            self._record_failure(e)
            return self.store.latest()
        finally:
            self._in_progress = False

    def start(self) -> asyncio.Task:
        """Start the background loop as a task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="capture_scheduler")
        return self._task

    async def run(self) -> None:
        """
        Capture immediately, then every `interval` seconds.

        Runs until stop() is called.
        """
        self._running = True
        self._stop_event.clear()
        logger.info(f"CaptureScheduler started, interval={self.interval:.0f}s")

        while self._running:
            await self.capture()

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.interval,
                )
                # Stop event was set, exit
                break
            except asyncio.TimeoutError:
                # Interval elapsed, capture again
                pass

        self._running = False
        logger.info("CaptureScheduler stopped")

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        logger.info("CaptureScheduler stopping...")
        self._running = False
        self._stop_event.set()

        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None

    def _record_failure(self, error: Exception) -> None:
        self.metrics.last_failure_at = self._clock()
        self.metrics.last_error = str(error)
        logger.warning(f"Capture failed, keeping previous frames: {error}")

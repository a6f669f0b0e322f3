"""
Traffic Service
===============

The single, explicitly constructed object that wires every component
together and owns their lifecycle.

Components (built from Settings unless injected):
    - FrameStore, FrameSelector
    - FFmpegFrameGrabber → AngleClassifier → CaptureScheduler
    - VehicleDetectorClient
    - AnalysisGraph → AnalysisEngine (+ ResponseCache, LatestAnalysisSlot)
    - PersistenceSink behind a BackgroundRecorder

Design Rules:
    - No module-level mutable state; the HTTP layer holds one instance
    - Collaborators that talk to the outside world can be injected, so
      tests run without ffmpeg, network or API keys
"""

import logging
import time
from typing import AsyncIterator, Callable, Optional

import anthropic

from bridgewatch.analysis.cache import LatestAnalysisSlot, ResponseCache
from bridgewatch.analysis.engine import AnalysisEngine, StreamItem
from bridgewatch.analysis.graph import AnalysisGraph
from bridgewatch.config import Settings
from bridgewatch.frames.frame import Frame
from bridgewatch.frames.grabber import FFmpegFrameGrabber, FrameGrabber
from bridgewatch.frames.scheduler import CaptureScheduler
from bridgewatch.frames.selector import FrameSelector
from bridgewatch.frames.store import FrameStore
from bridgewatch.llm import AnthropicVisionClient, VisionLanguageClient
from bridgewatch.models.output import AnalysisResult
from bridgewatch.perception.classifier import AngleClassifier
from bridgewatch.perception.detector import VehicleDetectorClient
from bridgewatch.persistence import BackgroundRecorder, PersistenceSink, create_sink


logger = logging.getLogger(__name__)


class TrafficService:
    """
    Border traffic service facade.

    Attributes:
        settings: Loaded configuration
        store: Shared frame store
        scheduler: Capture scheduler
        engine: Analysis engine
        recorder: Background persistence recorder
    """

    def __init__(
        self,
        settings: Settings,
        grabber: Optional[FrameGrabber] = None,
        classifier_client: Optional[VisionLanguageClient] = None,
        answer_client: Optional[VisionLanguageClient] = None,
        detector: Optional[VehicleDetectorClient] = None,
        sink: Optional[PersistenceSink] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Build the service.

        Args:
            settings: Configuration
            grabber: Frame grabber (default: FFmpeg against camera.stream_url)
            classifier_client: Vision client for angle classification
            answer_client: Vision client for answers
            detector: Vehicle detector client (default: from detector settings)
            sink: Persistence sink (default: from persistence.database_url)
            clock: Source of the current UNIX time
        """
        self.settings = settings
        self._clock = clock
        self._started_at: Optional[float] = None
        self._anthropic: Optional[anthropic.AsyncAnthropic] = None

        if classifier_client is None or answer_client is None:
            if not settings.llm.api_key:
                logger.error("ANTHROPIC_API_KEY is not set; classification and answers will fail")
            self._anthropic = anthropic.AsyncAnthropic(
                api_key=settings.llm.api_key,
                timeout=settings.llm.timeout_seconds,
                max_retries=0,
            )
        if classifier_client is None:
            classifier_client = AnthropicVisionClient(
                model=settings.classifier.model,
                client=self._anthropic,
            )
        if answer_client is None:
            answer_client = AnthropicVisionClient(
                model=settings.llm.model,
                client=self._anthropic,
            )
        self.classifier_client = classifier_client
        self.answer_client = answer_client

        # Frames
        self.store = FrameStore(
            capacity=settings.frames.buffer_size,
            freshness_seconds=settings.frames.freshness_seconds,
            clock=clock,
        )
        self.selector = FrameSelector(self.store, max_frames=settings.frames.max_selected)

        # Persistence
        self.sink = sink if sink is not None else create_sink(settings.persistence.database_url)
        self.recorder = BackgroundRecorder(self.sink)

        # Capture
        self.classifier = AngleClassifier(
            classifier_client,
            max_tokens=settings.classifier.max_tokens,
        )
        self.grabber = grabber or FFmpegFrameGrabber(
            stream_url=settings.camera.stream_url,
            ffmpeg_bin=settings.camera.ffmpeg_bin,
            timeout=settings.camera.capture_timeout_seconds,
        )
        self.scheduler = CaptureScheduler(
            grabber=self.grabber,
            classifier=self.classifier,
            store=self.store,
            interval=settings.camera.capture_interval_seconds,
            max_image_width=settings.camera.max_image_width,
            jpeg_quality=settings.camera.jpeg_quality,
            on_frame=self.recorder.submit_frame,
            clock=clock,
        )

        # Analysis
        self.detector = detector or VehicleDetectorClient(
            url=settings.detector.url,
            timeout=settings.detector.timeout_seconds,
            camera_view=settings.detector.camera_view,
        )
        self.response_cache = ResponseCache(
            ttl_seconds=settings.cache.response_ttl_seconds,
            clock=clock,
        )
        self.latest_analysis = LatestAnalysisSlot(
            ttl_seconds=settings.cache.latest_ttl_seconds,
            clock=clock,
        )
        self.graph = AnalysisGraph(self.selector, self.detector, clock=clock)
        self.engine = AnalysisEngine(
            graph=self.graph,
            llm=answer_client,
            response_cache=self.response_cache,
            latest=self.latest_analysis,
            recorder=self.recorder,
            max_tokens=settings.llm.max_tokens,
            timeout=settings.llm.timeout_seconds,
            clock=clock,
        )

        logger.info(
            f"TrafficService initialized: buffer={settings.frames.buffer_size}, "
            f"interval={settings.camera.capture_interval_seconds:.0f}s, "
            f"detector={'on' if self.detector.configured else 'off'}, "
            f"persistence={'on' if self.recorder.configured else 'off'}"
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the background capture loop (first capture is immediate)."""
        self._started_at = self._clock()
        self.scheduler.start()

    async def stop(self) -> None:
        """Stop capturing, flush pending work and close clients."""
        logger.info("TrafficService stopping...")
        await self.scheduler.stop()
        await self.engine.drain()
        await self.recorder.drain()
        await self.detector.close()
        if self._anthropic is not None:
            await self._anthropic.close()
        self.sink.close()
        logger.info("TrafficService stopped")

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def capture_now(self) -> Optional[Frame]:
        """
        Foreground capture trigger.

        Reuses the newest frame while it is younger than
        camera.foreground_refresh_seconds; otherwise runs a capture
        (which itself collapses into a no-op if one is in flight).
        """
        latest = self.store.latest()
        refresh = self.settings.camera.foreground_refresh_seconds
        if latest is not None and latest.age(self._clock()) < refresh:
            return latest
        return await self.scheduler.capture()

    async def status(self) -> AnalysisResult:
        """Unprompted general traffic update."""
        if self.latest_analysis.get() is None:
            await self.capture_now()
        return await self.engine.analyze(None)

    async def ask(self, question: str) -> AnalysisResult:
        """Answer a free-text question."""
        await self.capture_now()
        return await self.engine.analyze(question)

    async def ask_stream(self, question: str) -> AsyncIterator[StreamItem]:
        """Streamed answer: text chunks, then the final AnalysisResult."""
        await self.capture_now()
        async for item in self.engine.analyze_stream(question):
            yield item

    def latest_frame(self) -> Optional[Frame]:
        """Most recently captured frame of any angle."""
        return self.store.latest()

    def health(self) -> dict:
        """Operational diagnostics."""
        now = self._clock()
        uptime = now - self._started_at if self._started_at is not None else 0.0
        latest = self.store.latest()
        return {
            "status": "ok",
            "uptime_seconds": round(uptime, 1),
            "scheduler": {
                "running": self.scheduler.running,
                "in_progress": self.scheduler.in_progress,
                "interval_seconds": self.scheduler.interval,
                **self.scheduler.metrics.to_dict(),
            },
            "last_capture": "available" if latest is not None else "none",
            "last_capture_age_seconds": round(latest.age(now), 1) if latest else None,
            "frames": self.store.metrics(),
            "classifier": self.classifier.get_metrics(),
            "detector": self.detector.get_metrics(),
            "analysis": self.engine.get_metrics(),
            "persistence": self.recorder.get_metrics(),
        }

"""
Analysis Engine
===============

Answers traffic questions by combining deterministic vehicle counts
with a vision-capable language model.

Request Flow:
    1. Unprompted call with a live latest-analysis → return it (cached)
    2. Categorised question with a live cache entry → return it (cached)
    3. AnalysisGraph: select frames → detector → build prompts
    4. No frames → "camera unavailable" failure, no generative call
    5. Generative call (single-shot or streamed)
    6. Successful unprompted result → latest-analysis slot
       Successful categorised result → response cache
    7. Reading submitted to the background recorder (never awaited)

Error Handling:
    Any exception from the generative call becomes a failure result with
    a generic message plus the underlying error text. Nothing is raised
    to the caller and nothing is retried within the request.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, AsyncIterator, Callable, Optional, Set, Union

from bridgewatch.analysis.cache import LatestAnalysisSlot, ResponseCache
from bridgewatch.analysis.graph import AnalysisGraph, AnalysisGraphState
from bridgewatch.analysis.questions import categorize
from bridgewatch.llm import VisionLanguageClient
from bridgewatch.models.detection import traffic_levels
from bridgewatch.models.output import AnalysisResult
from bridgewatch.models.reading import (
    COUNT_SOURCE_DETECTOR,
    COUNT_SOURCE_ESTIMATE,
    AnalysisReading,
)

if TYPE_CHECKING:
    from bridgewatch.persistence.recorder import BackgroundRecorder


logger = logging.getLogger(__name__)


StreamItem = Union[str, AnalysisResult]

_DONE = object()


class AnalysisEngine:
    """
    Two-stage (count + generate) traffic analysis.

    Attributes:
        graph: Request preparation graph
        llm: Vision language client for answers
        response_cache: Category-keyed answer cache
        latest: Latest unprompted analysis slot
        recorder: Background persistence recorder (optional)
        max_tokens: Answer token cap
        timeout: Seconds allowed for a generative call (per chunk when streaming)
    """

    def __init__(
        self,
        graph: AnalysisGraph,
        llm: VisionLanguageClient,
        response_cache: ResponseCache,
        latest: LatestAnalysisSlot,
        recorder: Optional["BackgroundRecorder"] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.graph = graph
        self.llm = llm
        self.response_cache = response_cache
        self.latest = latest
        self.recorder = recorder
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._clock = clock

        self._stream_tasks: Set[asyncio.Task] = set()
        self.generation_count: int = 0
        self.generation_error_count: int = 0

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def analyze(self, question: Optional[str] = None) -> AnalysisResult:
        """
        Produce an answer for a question, or a general update if None.

        Args:
            question: Free-text question; None or blank for unprompted

        Returns:
            AnalysisResult (never raises)
        """
        question = _normalize(question)

        cached = self._from_cache(question)
        if cached is not None:
            return cached

        state = await self.graph.prepare(question)
        if not state.get("selected"):
            return self._unavailable(state)

        try:
            text = await asyncio.wait_for(
                self.llm.complete(
                    system=state["system_prompt"],
                    images=state["images"],
                    prompt=state["user_prompt"],
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            return self._failed(state, e)

        return self._succeeded(state, text)

    async def analyze_stream(self, question: Optional[str] = None) -> AsyncIterator[StreamItem]:
        """
        Streamed variant of analyze().

        Yields text chunks as they are generated, then exactly one final
        AnalysisResult. If the consumer stops reading early, generation
        still runs to completion and is cached and recorded as usual.
        """
        question = _normalize(question)

        cached = self._from_cache(question)
        if cached is not None:
            yield cached.message
            yield cached
            return

        state = await self.graph.prepare(question)
        if not state.get("selected"):
            yield self._unavailable(state)
            return

        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self._produce(state, queue), name="analysis_stream")
        self._stream_tasks.add(task)
        task.add_done_callback(self._stream_tasks.discard)

        while True:
            item = await queue.get()
            if item is _DONE:
                return
            yield item

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for detached streaming generations to finish."""
        if self._stream_tasks:
            await asyncio.wait(set(self._stream_tasks), timeout=timeout)

    def get_metrics(self) -> dict:
        return {
            "generation_count": self.generation_count,
            "generation_error_count": self.generation_error_count,
            "streams_in_flight": len(self._stream_tasks),
            "response_cache": self.response_cache.metrics(),
            "latest_analysis": self.latest.metrics(),
        }

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _produce(self, state: AnalysisGraphState, queue: asyncio.Queue) -> None:
        chunks = []
        try:
            stream = self.llm.stream(
                system=state["system_prompt"],
                images=state["images"],
                prompt=state["user_prompt"],
                max_tokens=self.max_tokens,
            )
            while True:
                try:
                    chunk = await asyncio.wait_for(stream.__anext__(), timeout=self.timeout)
                except StopAsyncIteration:
                    break
                chunks.append(chunk)
                queue.put_nowait(chunk)
        except Exception as e:
            queue.put_nowait(self._failed(state, e))
        else:
            queue.put_nowait(self._succeeded(state, "".join(chunks)))
        finally:
            queue.put_nowait(_DONE)

    def _from_cache(self, question: Optional[str]) -> Optional[AnalysisResult]:
        if question is None:
            result = self.latest.get()
            if result is not None:
                logger.debug("Serving latest unprompted analysis from cache")
            return result

        category = categorize(question)
        if category is None:
            return None

        entry = self.response_cache.get(category)
        if entry is None:
            return None

        logger.info(f"Response cache hit for category={category.value}")
        return AnalysisResult(
            success=True,
            message=entry.text,
            timestamp=entry.created_at,
            frame_timestamp=entry.frame_timestamp,
            frames_used=entry.frames_used,
            cached=True,
        )

    def _unavailable(self, state: AnalysisGraphState) -> AnalysisResult:
        logger.warning("No usable frames, reporting camera unavailable")
        result = AnalysisResult.camera_unavailable(self._clock())
        self._record(state, result)
        return result

    def _failed(self, state: AnalysisGraphState, error: Exception) -> AnalysisResult:
        self.generation_error_count += 1
        detail = str(error) or type(error).__name__
        logger.error(f"Generative call failed: {detail}")

        selected = state.get("selected", [])
        result = AnalysisResult.generation_failed(
            timestamp=self._clock(),
            error=detail,
            frame_timestamp=_newest(state),
            frames_used=len(selected),
        )
        self._record(state, result)
        return result

    def _succeeded(self, state: AnalysisGraphState, text: str) -> AnalysisResult:
        self.generation_count += 1
        selected = state.get("selected", [])
        result = AnalysisResult(
            success=True,
            message=text,
            timestamp=self._clock(),
            frame_timestamp=_newest(state),
            frames_used=len(selected),
        )

        if state.get("question") is None:
            self.latest.put(result)
        else:
            category = state.get("category")
            if category is not None:
                self.response_cache.put(
                    category,
                    text=text,
                    frame_timestamp=result.frame_timestamp,
                    frames_used=result.frames_used,
                )

        self._record(state, result)
        return result

    def _record(self, state: AnalysisGraphState, result: AnalysisResult) -> None:
        if self.recorder is None:
            return

        detector = state.get("detector_result")
        levels = traffic_levels(detector)
        question_type = state.get("question_type")
        category = state.get("category")

        reading = AnalysisReading(
            timestamp=result.timestamp,
            success=result.success,
            message=result.message,
            question=state.get("question"),
            question_type=question_type.value if question_type else None,
            category=category.value if category else None,
            frames_used=result.frames_used,
            frame_timestamp=result.frame_timestamp,
            angles=",".join(item.angle.value for item in state.get("selected", [])),
            detector=detector,
            count_source=COUNT_SOURCE_DETECTOR if levels is not None else COUNT_SOURCE_ESTIMATE,
            detector_levels={k: v.value for k, v in levels.items()} if levels else None,
            error=result.error,
        )
        self.recorder.submit_reading(reading)


def _normalize(question: Optional[str]) -> Optional[str]:
    if question is None:
        return None
    question = question.strip()
    return question or None


def _newest(state: AnalysisGraphState) -> Optional[float]:
    selected = state.get("selected", [])
    if not selected:
        return None
    return max(item.frame.timestamp for item in selected)

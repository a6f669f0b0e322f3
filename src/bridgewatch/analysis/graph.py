"""
Analysis Graph Definition
=========================

LangGraph workflow that prepares one generative request.

LangGraph is used for CONTROL FLOW only. The graph never calls the
language model; it gathers everything the call needs so the engine can
run it single-shot or streamed.

Graph Structure:
    START → select_frames ─┬─ (no frames) ──────────────────────→ END
                           └─→ detect_vehicles → build_request → END

    select_frames:   Frame Selector over the store
    detect_vehicles: Detector client on the BRIDGE frame, if selected
    build_request:   Question type + system/user prompt + image list

Design Philosophy:
    - The detector runs before prompt construction because its output
      seeds the prompt; they are sequential by design
    - An empty selection short-circuits, so no external call is made
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypedDict

from langgraph.graph import END, StateGraph

from bridgewatch.analysis.prompts import build_system_prompt, build_user_prompt
from bridgewatch.analysis.questions import categorize, classify_question
from bridgewatch.frames.selector import FrameSelector, SelectedFrame
from bridgewatch.llm import ImageInput
from bridgewatch.models.detection import DetectorResult
from bridgewatch.models.question import CacheCategory, QuestionType
from bridgewatch.perception.detector import VehicleDetectorClient


logger = logging.getLogger(__name__)


class AnalysisGraphState(TypedDict, total=False):
    """
    State passed through the analysis graph.

    Attributes:
        question: Raw question text, None for unprompted analysis
        question_type: Answer-style category
        category: Response cache category (None disables caching)
        timestamp: Time the request started
        selected: Frames chosen for the request
        detector_result: Counts for the BRIDGE frame, if any
        system_prompt: System instruction for the generative call
        user_prompt: User text for the generative call
        images: Attachments in the order described by the prompt
    """
    question: Optional[str]
    question_type: QuestionType
    category: Optional[CacheCategory]
    timestamp: float
    selected: List[SelectedFrame]
    detector_result: Optional[DetectorResult]
    system_prompt: str
    user_prompt: str
    images: List[ImageInput]


def create_initial_state(question: Optional[str], timestamp: float) -> AnalysisGraphState:
    """Create initial graph state for a request."""
    return {
        "question": question,
        "question_type": classify_question(question),
        "category": categorize(question),
        "timestamp": timestamp,
        "selected": [],
        "detector_result": None,
        "system_prompt": "",
        "user_prompt": "",
        "images": [],
    }


class AnalysisGraph:
    """
    LangGraph-based request preparation.

    Attributes:
        selector: Frame selector over the shared store
        detector: Vehicle detector client
    """

    def __init__(
        self,
        selector: FrameSelector,
        detector: VehicleDetectorClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.selector = selector
        self.detector = detector
        self._clock = clock

        self._graph = self._build_graph()

        logger.info("AnalysisGraph initialized")

    def _build_graph(self):
        """Build the LangGraph workflow."""
        workflow = StateGraph(AnalysisGraphState)

        workflow.add_node("select_frames", self._select_frames_node)
        workflow.add_node("detect_vehicles", self._detect_vehicles_node)
        workflow.add_node("build_request", self._build_request_node)

        workflow.set_entry_point("select_frames")
        workflow.add_conditional_edges(
            "select_frames",
            self._route_after_selection,
            {"detect": "detect_vehicles", "unavailable": END},
        )
        workflow.add_edge("detect_vehicles", "build_request")
        workflow.add_edge("build_request", END)

        return workflow.compile()

    async def _select_frames_node(self, state: AnalysisGraphState) -> Dict[str, Any]:
        selected = self.selector.select()
        logger.debug(
            f"Selected {len(selected)} frame(s): "
            f"{[item.angle.value + ('*' if item.fallback else '') for item in selected]}"
        )
        return {"selected": selected}

    @staticmethod
    def _route_after_selection(state: AnalysisGraphState) -> str:
        return "detect" if state.get("selected") else "unavailable"

    async def _detect_vehicles_node(self, state: AnalysisGraphState) -> Dict[str, Any]:
        bridge = self.selector.bridge_frame(state.get("selected", []))
        result = await self.detector.detect(bridge)
        return {"detector_result": result}

    async def _build_request_node(self, state: AnalysisGraphState) -> Dict[str, Any]:
        selected = state.get("selected", [])
        question_type = state.get("question_type", QuestionType.GENERAL)
        system_prompt = build_system_prompt(
            question_type=question_type,
            selected=selected,
            detector_result=state.get("detector_result"),
            now=self._clock(),
        )
        return {
            "system_prompt": system_prompt,
            "user_prompt": build_user_prompt(state.get("question")),
            "images": [
                ImageInput(data=item.frame.image, media_type=item.frame.media_type)
                for item in selected
            ],
        }

    async def prepare(self, question: Optional[str]) -> AnalysisGraphState:
        """
        Run the graph for one request.

        Args:
            question: Question text, or None for unprompted analysis

        Returns:
            Final graph state; `selected` is empty when nothing is usable
        """
        initial = create_initial_state(question, self._clock())
        return await self._graph.ainvoke(initial)

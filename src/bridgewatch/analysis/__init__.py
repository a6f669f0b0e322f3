"""
Analysis Module
===============

Question handling and answer generation.

Components:
    - questions: Question-type and cache-category classification
    - prompts: System/user prompt construction
    - graph: LangGraph request preparation (control flow only)
    - engine: Generative call, caching and reading submission
    - cache: Category response cache and latest-analysis slot
    - parser: Best-effort structured reading extraction
"""

from bridgewatch.analysis.cache import CacheEntry, LatestAnalysisSlot, ResponseCache
from bridgewatch.analysis.engine import AnalysisEngine
from bridgewatch.analysis.graph import AnalysisGraph, AnalysisGraphState
from bridgewatch.analysis.parser import parse_response
from bridgewatch.analysis.questions import categorize, classify_question

__all__ = [
    "AnalysisEngine",
    "AnalysisGraph",
    "AnalysisGraphState",
    "CacheEntry",
    "LatestAnalysisSlot",
    "ResponseCache",
    "categorize",
    "classify_question",
    "parse_response",
]

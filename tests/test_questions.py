"""
Question Rule Tests
===================

Question-type taxonomy and response cache categories.
"""

import pytest

from bridgewatch.analysis.questions import categorize, classify_question, is_off_topic
from bridgewatch.models.question import CacheCategory, QuestionType


class TestCategorize:
    """Order-sensitive cache category rules."""

    @pytest.mark.parametrize("question,expected", [
        ("how's the queue at Engen", CacheCategory.QUEUE),
        ("going from SA to Lesotho", CacheCategory.SA_TO_LS),
        ("tell me a joke", None),
        ("Is it busy going to Ladybrand?", CacheCategory.LS_TO_SA),
        ("Traffic from Maseru to Bloemfontein?", CacheCategory.LS_TO_SA),
        ("heading into Lesotho tonight", CacheCategory.SA_TO_LS),
        ("when is the best time to cross?", CacheCategory.GOOD_TIME),
        ("How is the traffic?", CacheCategory.STATUS),
        ("what are the visa requirements", None),
    ])
    def test_examples(self, question, expected):
        assert categorize(question) is expected

    @pytest.mark.parametrize("question", [None, "", "   "])
    def test_blank_has_no_category(self, question):
        assert categorize(question) is None

    def test_direction_outranks_queue(self):
        assert categorize("how long is the queue going to South Africa") is CacheCategory.LS_TO_SA


class TestClassifyQuestion:
    """Answer-style taxonomy."""

    @pytest.mark.parametrize("question,expected", [
        (None, QuestionType.GENERAL),
        ("", QuestionType.GENERAL),
        ("tell me a joke", QuestionType.OFF_TOPIC),
        ("who won the rugby", QuestionType.OFF_TOPIC),
        ("how bad is it going to South Africa", QuestionType.DIRECTIONAL),
        ("what time does the border open", QuestionType.BORDER_INFO),
        ("how long is the wait", QuestionType.TIMING),
        ("is it raining there", QuestionType.VISUAL),
        ("is it busy", QuestionType.YES_NO),
        ("traffic update please", QuestionType.GENERAL),
    ])
    def test_examples(self, question, expected):
        assert classify_question(question) is expected

    def test_domain_overrides_off_topic(self):
        question = "tell me a joke about the traffic at the bridge"
        assert not is_off_topic(question)
        assert classify_question(question) is not QuestionType.OFF_TOPIC

    def test_structured_format_flags(self):
        assert QuestionType.GENERAL.wants_structured_format
        for question_type in (QuestionType.OFF_TOPIC, QuestionType.YES_NO,
                              QuestionType.VISUAL, QuestionType.TIMING):
            assert question_type.suppresses_structured_format
            assert not question_type.wants_structured_format

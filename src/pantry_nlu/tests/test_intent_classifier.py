"""
Unit tests for pantry_nlu.classification.

Covers keyword scoring, tie-breaking, the fallback intent and error handling.
"""
from unittest.mock import Mock

import pytest

from pantry_nlu.classification import IntentClassifier
from pantry_nlu.config import NLUConfig


@pytest.fixture
def classifier():
    return IntentClassifier()


class TestKeywordScoring:
    """Tests for match counting and confidence."""

    def test_inventory_consumption(self, classifier):
        result = classifier.classify("抽纸消耗1包")

        assert result.intent == "inventory_management"
        # 消耗 + 抽纸
        assert result.confidence == pytest.approx(0.7)
        assert result.entities.item_name == "抽纸"

    def test_single_match_confidence(self, classifier):
        result = classifier.classify("添加")

        assert result.intent == "inventory_management"
        assert result.confidence == pytest.approx(0.6)

    def test_confidence_is_capped(self, classifier):
        result = classifier.classify("库存消耗添加剩余物品抽纸牛奶")

        assert result.intent == "inventory_management"
        assert result.confidence == pytest.approx(0.9)

    def test_tie_keeps_first_label_in_table_order(self, classifier):
        # One inventory keyword and one procurement keyword
        result = classifier.classify("库存 采购")

        assert result.intent == "inventory_management"

    def test_procurement_in_english(self, classifier):
        result = classifier.classify("import orders")

        assert result.intent == "procurement_management"
        assert result.confidence == pytest.approx(0.7)

    def test_case_insensitive(self, classifier):
        result = classifier.classify("Send a Teams reminder")

        assert result.intent == "notification_management"

    def test_reasoning_lists_matches(self, classifier):
        result = classifier.classify("本月财务报告")

        assert result.intent == "financial_analysis"
        assert "财务" in result.reasoning
        assert "报告" in result.contextual_info["matched_keywords"]


class TestFallback:
    """Tests for the no-match and error paths."""

    def test_empty_input_returns_fallback(self, classifier):
        result = classifier.classify("")

        assert result.intent == "general_inquiry"
        assert result.confidence == pytest.approx(0.5)
        assert result.entities.is_empty()

    def test_no_keywords_returns_fallback(self, classifier):
        result = classifier.classify("随便聊聊")

        assert result.intent == "general_inquiry"
        assert result.confidence == pytest.approx(0.5)

    def test_configured_fallback_intent(self):
        classifier = IntentClassifier(config=NLUConfig(FALLBACK_INTENT="unknown"))

        assert classifier.classify("随便聊聊").intent == "unknown"
        assert "unknown" in classifier.labels

    def test_internal_error_never_raises(self):
        extractor = Mock()
        extractor.extract.side_effect = RuntimeError("boom")
        classifier = IntentClassifier(extractor=extractor)

        result = classifier.classify("抽纸消耗1包")

        assert result.intent == "general_inquiry"
        assert result.confidence == pytest.approx(0.3)
        assert "boom" in result.reasoning

    @pytest.mark.parametrize("utterance", [
        "", "   ", "抽纸消耗1包", "how do I import orders?", "？？？", "1688", "提醒我本月预算",
    ])
    def test_label_and_confidence_always_valid(self, classifier, utterance):
        result = classifier.classify(utterance)

        assert result.intent in classifier.labels
        assert 0.0 <= result.confidence <= 1.0


class TestCustomTable:
    """Tests for an injected keyword table."""

    def test_custom_table_order(self):
        classifier = IntentClassifier(keyword_table={
            "first": ["a"],
            "second": ["b"],
        })

        assert classifier.classify("b a").intent == "first"
        assert classifier.labels == ["first", "second", "general_inquiry"]

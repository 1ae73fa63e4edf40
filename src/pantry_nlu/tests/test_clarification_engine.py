"""
Unit tests for pantry_nlu.clarification.

Tests the decision order of the clarification engine and the localized
question/suggestion rendering.
"""
import pytest

from pantry_nlu.classification import IntentClassifier
from pantry_nlu.clarification import ClarificationEngine, build_question, suggest_responses
from pantry_nlu.config import NLUConfig
from pantry_nlu.data_types import (
    ClarificationAnalysis,
    EntityResult,
    GuidanceType,
    IntentResult,
)
from pantry_nlu.extraction import EntityExtractor


@pytest.fixture
def classifier():
    return IntentClassifier()


@pytest.fixture
def extractor():
    return EntityExtractor()


@pytest.fixture
def engine():
    return ClarificationEngine()


def analyze(engine, classifier, extractor, utterance, language=None):
    return engine.analyze(
        utterance,
        classifier.classify(utterance),
        extractor.extract(utterance),
        language=language,
    )


class TestDecisionOrder:
    """Tests for the first-match-wins decision order."""

    def test_complete_command_needs_no_clarification(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "抽纸消耗1包")

        assert analysis.needs_clarification is False
        assert analysis.suggested_questions == []

    def test_bare_command_is_incomplete(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "添加")

        assert analysis.needs_clarification is True
        assert analysis.guidance_type == GuidanceType.INCOMPLETE_COMMAND
        assert analysis.missing_entities == []
        assert analysis.suggested_questions == [
            "请告诉我您想对库存执行什么操作？比如：查询、添加、消耗、更新等。"
        ]

    def test_low_confidence_is_ambiguous_intent(self, engine, extractor):
        intent = IntentResult(intent="general_inquiry", confidence=0.3)

        analysis = engine.analyze("查看一下", intent, extractor.extract("查看一下"))

        assert analysis.guidance_type == GuidanceType.AMBIGUOUS_INTENT
        assert analysis.suggested_questions == ["您是想查询库存信息、订单状态、还是财务报告？"]

    def test_low_confidence_without_verbs_gets_generic_pair(self, engine):
        intent = IntentResult(intent="general_inquiry", confidence=0.3)

        analysis = engine.analyze("嗯嗯", intent, EntityResult())

        assert len(analysis.suggested_questions) == 2

    def test_missing_quantity(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "添加牛奶")

        assert analysis.guidance_type == GuidanceType.ENTITY_MISSING
        assert analysis.missing_entities == ["quantity"]
        assert analysis.suggested_questions == ["请告诉我具体的数量是多少？"]

    def test_import_needs_platform(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "导入订单")

        assert analysis.guidance_type == GuidanceType.ENTITY_MISSING
        assert analysis.missing_entities == ["platform"]

    def test_required_entities_come_before_ambiguity(self, engine, classifier, extractor):
        # 物品 is both an inventory keyword and an ambiguous term
        analysis = analyze(engine, classifier, extractor, "添加一些物品")

        assert analysis.guidance_type == GuidanceType.ENTITY_MISSING
        assert analysis.missing_entities == ["item_name", "quantity"]

    def test_ambiguous_pronoun_needs_context(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "这个库存怎么样")

        assert analysis.guidance_type == GuidanceType.CONTEXT_NEEDED
        assert analysis.ambiguous_terms == ["这个"]
        assert analysis.suggested_questions == ["请具体说明您指的是哪个物品或操作？"]

    def test_short_input_is_incomplete(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "ab")

        assert analysis.guidance_type == GuidanceType.INCOMPLETE_COMMAND
        assert analysis.suggested_questions == ["请提供更多详细信息以便我更好地帮助您。"]

    def test_empty_input_is_incomplete(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "")

        assert analysis.needs_clarification is True
        assert analysis.guidance_type == GuidanceType.INCOMPLETE_COMMAND

    def test_disabled_never_clarifies(self, classifier, extractor):
        engine = ClarificationEngine(config=NLUConfig(ENABLE_CLARIFICATION=False))

        analysis = analyze(engine, classifier, extractor, "添加")

        assert analysis.needs_clarification is False
        assert analysis.reason == "Clarification disabled"

    def test_english_questions(self, engine, classifier, extractor):
        analysis = analyze(engine, classifier, extractor, "add", language="en-US")

        assert analysis.guidance_type == GuidanceType.INCOMPLETE_COMMAND
        assert analysis.suggested_questions[0].startswith("What would you like to do with the inventory?")


class TestRendering:
    """Tests for question and suggestion rendering."""

    def test_build_question_joins_header_and_questions(self):
        analysis = ClarificationAnalysis(
            needs_clarification=True,
            guidance_type=GuidanceType.INCOMPLETE_COMMAND,
            suggested_questions=["Q1", "Q2"],
        )

        question = build_question(analysis, "zh-CN")

        assert question == "您的请求似乎不完整。\n\nQ1\nQ2"

    def test_build_question_in_english(self):
        analysis = ClarificationAnalysis(
            needs_clarification=True,
            guidance_type=GuidanceType.CONTEXT_NEEDED,
        )

        assert build_question(analysis, "en-US") == "There are some ambiguous expressions in your description."

    def test_unknown_language_falls_back_to_chinese(self):
        analysis = ClarificationAnalysis(guidance_type=GuidanceType.INCOMPLETE_COMMAND)

        assert build_question(analysis, "fr-FR") == "您的请求似乎不完整。"

    def test_suggestions_for_missing_entities(self):
        analysis = ClarificationAnalysis(
            needs_clarification=True,
            guidance_type=GuidanceType.ENTITY_MISSING,
            missing_entities=["quantity", "platform"],
        )

        assert suggest_responses(analysis, "zh-CN") == [
            "1个", "2包", "3瓶", "5盒", "淘宝", "京东", "1688", "拼多多",
        ]

    def test_suggestions_for_incomplete_command(self, engine):
        analysis = ClarificationAnalysis(
            needs_clarification=True,
            guidance_type=GuidanceType.INCOMPLETE_COMMAND,
        )

        assert engine.suggest_responses(analysis, "en-US")[0] == "query tissue inventory"

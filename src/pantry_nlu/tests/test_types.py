"""
Unit tests for pantry_nlu.data_types.
"""
import pytest

from pantry_nlu.data_types import (
    ClarificationAnalysis,
    Entities,
    EntityKind,
    GuidanceType,
    IntentResult,
)


class TestEntities:

    def test_to_dict_omits_absent_fields(self):
        entities = Entities(item_name="抽纸", quantity=1)

        assert entities.to_dict() == {"item_name": "抽纸", "quantity": 1}

    def test_unknown_keys_go_to_extra(self):
        entities = Entities.from_dict({"item_name": "牛奶", "brand": "蒙牛", "unit": None})

        assert entities.item_name == "牛奶"
        assert entities.unit is None
        assert entities.extra == {"brand": "蒙牛"}
        assert entities.to_dict() == {"item_name": "牛奶", "brand": "蒙牛"}

    def test_merge_is_last_known_good(self):
        older = Entities(item_name="抽纸", quantity=1, unit="包")
        newer = Entities(quantity=3, platform="淘宝")

        merged = older.merge(newer)

        assert merged.to_dict() == {
            "item_name": "抽纸",
            "quantity": 3,
            "platform": "淘宝",
            "unit": "包",
        }
        # Inputs are not mutated
        assert older.quantity == 1

    def test_get_and_has(self):
        entities = Entities(time_period="本月")

        assert entities.has(EntityKind.TIME_PERIOD)
        assert entities.get(EntityKind.TIME_PERIOD) == "本月"
        assert not entities.has(EntityKind.PLATFORM)


class TestResults:

    def test_intent_result_rejects_bad_confidence(self):
        with pytest.raises(ValueError):
            IntentResult(intent="help_request", confidence=1.5)

    def test_intent_result_round_trip(self):
        result = IntentResult(
            intent="inventory_management",
            confidence=0.7,
            entities=Entities(item_name="抽纸"),
            reasoning="matched",
        )

        assert IntentResult.from_dict(result.to_dict()) == result

    def test_analysis_to_dict_uses_enum_value(self):
        analysis = ClarificationAnalysis(
            needs_clarification=True,
            guidance_type=GuidanceType.CONTEXT_NEEDED,
        )

        assert analysis.to_dict()["guidance_type"] == "context_needed"

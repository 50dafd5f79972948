"""
Tests for bucket characteristics.

Covers parsing of stored characteristic JSON, applicability per bucket
category, the category presets and toggling.
"""

import pytest
from decimal import Decimal

from app.funding.characteristics import (
    BucketCategory,
    CapacityManagement,
    CharacteristicSet,
    LowBalanceWarning,
    ResetTimer,
    ThresholdAlerts,
    ThresholdAlertsConfig,
    ZeroBehavior,
    default_characteristics,
    is_applicable,
    parse_characteristics,
)
from app.funding.errors import InvalidCharacteristics


# =============================================================================
# Parsing
# =============================================================================

class TestParseCharacteristics:
    """Stored JSON parses into typed characteristics."""

    def test_discriminates_on_id(self):
        parsed = parse_characteristics([
            {"id": "low-balance-warning", "enabled": True, "config": {"threshold_percentage": 15}},
            {"id": "zero-behavior", "config": {"action": "allow_overdraft", "overdraft_limit": "500"}},
        ])

        low = parsed.get("low-balance-warning")
        zero = parsed.get("zero-behavior")
        assert isinstance(low, LowBalanceWarning)
        assert low.config.threshold_percentage == Decimal("15")
        assert isinstance(zero, ZeroBehavior)
        assert zero.config.overdraft_limit == Decimal("500")

    def test_missing_config_uses_defaults(self):
        parsed = parse_characteristics([{"id": "capacity-management"}])
        capacity = parsed.get("capacity-management")
        assert capacity.config.max_capacity_action == "stop_accumulation"
        assert capacity.config.auto_invoice_at_capacity is True

    def test_none_is_empty(self):
        assert len(parse_characteristics(None)) == 0

    def test_unknown_id_rejected(self):
        with pytest.raises(InvalidCharacteristics):
            parse_characteristics([{"id": "teleport", "enabled": True}])

    def test_malformed_config_rejected(self):
        with pytest.raises(InvalidCharacteristics) as exc_info:
            parse_characteristics([
                {"id": "low-balance-warning", "config": {"threshold_percentage": 140}},
            ])
        assert exc_info.value.details["errors"]

    def test_alert_levels_sorted_and_deduplicated(self):
        config = ThresholdAlertsConfig(alert_levels=[90, 25, 50, 25])
        assert config.alert_levels == [Decimal("25"), Decimal("50"), Decimal("90")]

    def test_round_trips_through_json(self):
        original = default_characteristics("fill_up")
        assert [c.id for c in parse_characteristics(original.to_json())] == [c.id for c in original]


# =============================================================================
# Lookup and toggling
# =============================================================================

class TestCharacteristicSet:
    """get() only returns enabled characteristics; find() returns any."""

    def test_get_ignores_disabled(self):
        characteristics = CharacteristicSet([ResetTimer(enabled=False)])
        assert characteristics.get("reset-timer") is None
        assert characteristics.find("reset-timer") is not None

    def test_toggled_returns_copy(self):
        original = CharacteristicSet([ResetTimer(enabled=False)])
        switched = original.toggled("reset-timer", True)

        assert switched.get("reset-timer") is not None
        assert original.get("reset-timer") is None

    def test_toggle_unknown_raises(self):
        with pytest.raises(InvalidCharacteristics):
            CharacteristicSet([ResetTimer()]).toggled("zero-behavior", True)


# =============================================================================
# Applicability
# =============================================================================

class TestApplicability:
    """Which kinds mean anything on which category."""

    @pytest.mark.parametrize("characteristic,category,expected", [
        (ZeroBehavior(), BucketCategory.DRAW_DOWN, True),
        (ZeroBehavior(), BucketCategory.FILL_UP, False),
        (ZeroBehavior(), BucketCategory.HYBRID, True),
        (LowBalanceWarning(), BucketCategory.HYBRID, False),
        (ThresholdAlerts(), BucketCategory.FILL_UP, True),
        (ThresholdAlerts(), BucketCategory.DRAW_DOWN, False),
        (CapacityManagement(), BucketCategory.HYBRID, False),
        (ResetTimer(), BucketCategory.FILL_UP, True),
        (ResetTimer(), BucketCategory.HYBRID, True),
    ])
    def test_is_applicable(self, characteristic, category, expected):
        assert is_applicable(characteristic, category) is expected

    def test_applicable_to_filters(self):
        mixed = CharacteristicSet([ZeroBehavior(), ThresholdAlerts(), ResetTimer()])
        assert [c.id for c in mixed.applicable_to("draw_down")] == ["zero-behavior", "reset-timer"]
        assert mixed.not_applicable_to("draw_down") == ["threshold-alerts"]


# =============================================================================
# Presets
# =============================================================================

class TestDefaultCharacteristics:
    """New templates start from the category presets."""

    def test_draw_down_presets(self):
        presets = default_characteristics("draw_down")
        assert presets.get("zero-behavior") is not None
        assert presets.get("low-balance-warning") is not None
        # Present but off until an admin opts in
        assert presets.find("allow-over-limit") is not None
        assert presets.get("allow-over-limit") is None

    def test_fill_up_presets(self):
        presets = default_characteristics("fill_up")
        assert presets.get("threshold-alerts") is not None
        assert presets.get("capacity-management") is not None
        assert presets.find("zero-behavior") is None

    def test_common_presets_disabled(self):
        for category in BucketCategory:
            presets = default_characteristics(category)
            for characteristic_id in ("reset-timer", "compliance-monitoring", "rollover-policy"):
                assert presets.find(characteristic_id) is not None
                assert presets.get(characteristic_id) is None

    def test_presets_are_applicable(self):
        for category in BucketCategory:
            assert default_characteristics(category).not_applicable_to(category) == []

"""
Tests for print pricing tiers and image credit cost.
"""
import pytest

from cardforge.errors import NoMatchingTier, ValidationError
from cardforge.services.pricing_service import (
    IMAGE_SIZE_PRESETS,
    ImageSize,
    PRINT_PRICING_TIERS,
    Tier,
    credit_cost,
    parse_image_size,
    price_for_quantity,
    unit_price_for_quantity,
    validate_tiers,
)

GAPPED_TIERS = [
    Tier(min_quantity=1, max_quantity=9, price_per_unit_cents=200),
    Tier(min_quantity=20, max_quantity=None, price_per_unit_cents=100),
]


class TestTierTable:
    """Tests for the tier table and unit price lookup."""

    def test_default_table_is_contiguous(self):
        assert validate_tiers(PRINT_PRICING_TIERS) == []

    @pytest.mark.parametrize("quantity,unit_price", [
        (1, 200),
        (9, 200),
        (10, 150),
        (49, 150),
        (50, 125),
        (99, 125),
        (100, 100),
        (5000, 100),
    ])
    def test_unit_price_boundaries(self, quantity, unit_price):
        assert unit_price_for_quantity(quantity) == unit_price

    def test_price_for_quantity(self):
        assert price_for_quantity(10) == 1500
        assert price_for_quantity(9) == 1800
        assert price_for_quantity(100) == 10000

    @pytest.mark.parametrize("quantity", [0, -1, -100])
    def test_quantity_below_one_rejected(self, quantity):
        with pytest.raises(ValidationError, match="at least 1"):
            unit_price_for_quantity(quantity)

    def test_non_integer_quantity_rejected(self):
        with pytest.raises(ValidationError):
            unit_price_for_quantity(2.5)

    def test_no_match_reject_policy(self):
        with pytest.raises(NoMatchingTier) as exc_info:
            unit_price_for_quantity(15, tiers=GAPPED_TIERS, on_no_match="reject")
        assert exc_info.value.quantity == 15
        assert exc_info.value.status_code == 400

    def test_no_match_fallback_policy(self):
        assert unit_price_for_quantity(
            15, tiers=GAPPED_TIERS, on_no_match="fallback", fallback_unit_cents=500
        ) == 500

    def test_no_match_uses_configured_policy(self):
        # Default configuration rejects
        with pytest.raises(NoMatchingTier):
            unit_price_for_quantity(15, tiers=GAPPED_TIERS)

    def test_first_matching_tier_wins(self):
        overlapping = [
            Tier(min_quantity=1, max_quantity=10, price_per_unit_cents=300),
            Tier(min_quantity=5, max_quantity=None, price_per_unit_cents=100),
        ]
        assert unit_price_for_quantity(7, tiers=overlapping) == 300

    def test_validate_tiers_reports_gap(self):
        problems = validate_tiers(GAPPED_TIERS)
        assert len(problems) == 1
        assert "gap" in problems[0]

    def test_validate_tiers_reports_overlap(self):
        problems = validate_tiers([
            Tier(min_quantity=1, max_quantity=10, price_per_unit_cents=300),
            Tier(min_quantity=5, max_quantity=None, price_per_unit_cents=100),
        ])
        assert any("overlaps" in problem for problem in problems)

    def test_validate_tiers_reports_unreachable(self):
        problems = validate_tiers([
            Tier(min_quantity=1, max_quantity=None, price_per_unit_cents=300),
            Tier(min_quantity=10, max_quantity=None, price_per_unit_cents=100),
        ])
        assert any("unreachable" in problem for problem in problems)


class TestCreditCost:
    """Tests for image credit cost."""

    def test_landscape_16_9_costs_six_credits(self):
        # 1024*576 = 589,824 px -> 5.89824 credits at rate 10 -> 6
        assert credit_cost(1024, 576, 10) == 6

    def test_square_hd_rounds_up(self):
        # 1,048,576 px -> 10.48576 -> 11
        assert credit_cost(1024, 1024, 10) == 11

    def test_exact_megapixel_not_rounded_up(self):
        assert credit_cost(1000, 1000, 10) == 10

    def test_tiny_image_costs_at_least_one_credit(self):
        assert credit_cost(64, 64, 10) == 1

    def test_zero_rate_is_free(self):
        assert credit_cost(1024, 1024, 0) == 0

    def test_default_rate_from_settings(self):
        assert credit_cost(1024, 576) == 6

    @pytest.mark.parametrize("width,height", [(0, 576), (1024, 0), (-1, 10)])
    def test_non_positive_dimensions_rejected(self, width, height):
        with pytest.raises(ValidationError):
            credit_cost(width, height, 10)


class TestParseImageSize:
    """Tests for imageSize parsing."""

    def test_width_by_height(self):
        assert parse_image_size("1024x576") == ImageSize(1024, 576)

    def test_uppercase_separator_and_spaces(self):
        assert parse_image_size(" 768 X 1024 ") == ImageSize(768, 1024)

    @pytest.mark.parametrize("name", sorted(IMAGE_SIZE_PRESETS))
    def test_presets(self, name):
        assert parse_image_size(name) == IMAGE_SIZE_PRESETS[name]

    def test_landscape_16_9_preset_dimensions(self):
        size = parse_image_size("landscape_16_9")
        assert (size.width, size.height) == (1024, 576)
        assert str(size) == "1024x576"

    @pytest.mark.parametrize("value", ["", "big", "1024", "1024x", "x576", "1024*576"])
    def test_malformed_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_image_size(value)

    @pytest.mark.parametrize("value", ["32x32", "4096x1024", "1024x4096"])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValidationError, match="between"):
            parse_image_size(value)

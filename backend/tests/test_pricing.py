"""
Tests for the pricing catalog

Tests cover:
- Price breakdown (line + tier surcharge + options)
- Free ICON on tiers that include it
- Duration, option and region validation
- Feature grants per product
- Loyalty grade thresholds
"""

import pytest

from jobboard.errors import ValidationFailed
from jobboard.services.grade import get_ad_grade
from jobboard.services.pricing import (
    AD_PRODUCTS,
    build_quote,
    get_product,
    validate_regions,
)


class TestBuildQuote:
    """Test price breakdown computation."""

    def test_line_has_no_surcharge(self):
        quote = build_quote("LINE", 30)
        assert quote.breakdown.line == 70_000
        assert quote.breakdown.upgrade == 0
        assert quote.breakdown.total == 70_000

    def test_tier_adds_surcharge_to_line_price(self):
        quote = build_quote("VIP", 60)
        assert quote.breakdown.line == 125_000
        assert quote.breakdown.upgrade == 415_000
        assert quote.breakdown.total == 540_000

    def test_options_are_priced_per_duration(self):
        quote = build_quote("VIP", 60, ["BOLD", "ICON"], {"ICON": "3"})
        assert quote.breakdown.options == 110_000
        assert quote.breakdown.total == 125_000 + 415_000 + 110_000
        icon = next(line for line in quote.options if line.id == "ICON")
        assert icon.value == "3"

    def test_icon_free_on_urgent(self):
        quote = build_quote("URGENT", 30, ["ICON"], {"ICON": "1"})
        assert quote.options[0].price == 0
        assert quote.breakdown.options == 0

    def test_icon_free_on_banner(self):
        quote = build_quote("BANNER", 90, ["ICON", "BOLD"])
        assert quote.breakdown.options == 70_000

    def test_free_product_costs_nothing(self):
        quote = build_quote("FREE", 0)
        assert quote.breakdown.total == 0
        assert quote.features.manual_jump_per_day == 0
        assert quote.features.auto_jump_per_day == 0

    def test_features_follow_product(self):
        quote = build_quote("PREMIUM", 30)
        assert quote.features.auto_jump_per_day == 36
        assert quote.features.manual_jump_per_day == 12
        assert quote.features.max_edits == 2


class TestQuoteValidation:
    """Test rejection of invalid orders."""

    def test_unknown_product(self):
        with pytest.raises(ValidationFailed):
            build_quote("GOLD", 30)

    @pytest.mark.parametrize("duration", [0, 15, 45, 120])
    def test_paid_durations_only(self, duration):
        with pytest.raises(ValidationFailed):
            build_quote("SPECIAL", duration)

    def test_free_requires_unlimited_duration(self):
        with pytest.raises(ValidationFailed):
            build_quote("FREE", 30)

    def test_free_rejects_options(self):
        with pytest.raises(ValidationFailed):
            build_quote("FREE", 0, ["BOLD"])

    def test_unknown_option(self):
        with pytest.raises(ValidationFailed):
            build_quote("VIP", 30, ["SPARKLE"])

    def test_duplicate_option(self):
        with pytest.raises(ValidationFailed):
            build_quote("VIP", 30, ["BOLD", "BOLD"])

    def test_choice_out_of_range(self):
        with pytest.raises(ValidationFailed):
            build_quote("VIP", 30, ["HIGHLIGHT"], {"HIGHLIGHT": "9"})

    def test_region_limit(self):
        with pytest.raises(ValidationFailed):
            validate_regions(get_product("LINE"), ["Seoul", "Busan"])

    def test_region_required(self):
        with pytest.raises(ValidationFailed):
            validate_regions(get_product("VIP"), [])

    def test_banner_ignores_regions(self):
        validate_regions(get_product("BANNER"), [])


class TestCatalog:
    """Test catalog invariants."""

    def test_ranks_are_unique(self):
        ranks = [product.rank for product in AD_PRODUCTS.values()]
        assert len(ranks) == len(set(ranks))

    def test_only_banner_is_capped(self):
        capped = [product.id for product in AD_PRODUCTS.values() if product.max_slots]
        assert capped == ["BANNER"]
        assert AD_PRODUCTS["BANNER"].max_slots == 12


class TestAdGrade:
    """Test loyalty grade thresholds."""

    @pytest.mark.parametrize(
        "days,grade",
        [(0, "none"), (29, "none"), (30, "bronze"), (89, "bronze"), (90, "silver"),
         (180, "gold"), (359, "gold"), (360, "diamond"), (1000, "diamond")],
    )
    def test_thresholds(self, days, grade):
        assert get_ad_grade(days).grade == grade

    def test_negative_days_clamped(self):
        assert get_ad_grade(-5).total_days == 0

"""Tests for catalog_import/pricing/calculator.py"""

from decimal import Decimal

import pytest

from catalog_import.common.errors import InvalidConfiguration
from catalog_import.models import CategoryPricingConfig
from catalog_import.pricing import PriceCalculator, round_to_price_point, round_up_to_price_point

NINETY_NINE = Decimal("0.99")


class TestRounding:
    def test_rounds_down_to_price_point(self):
        assert round_to_price_point(Decimal("29.40"), NINETY_NINE) == Decimal("28.99")

    def test_exact_price_point_unchanged(self):
        assert round_to_price_point(Decimal("29.99"), NINETY_NINE) == Decimal("29.99")

    def test_whole_amount_goes_to_previous_point(self):
        assert round_to_price_point(Decimal("30.00"), NINETY_NINE) == Decimal("29.99")

    def test_below_increment_lifted(self):
        assert round_to_price_point(Decimal("0.50"), NINETY_NINE) == Decimal("0.99")

    def test_zero_increment_floors_to_whole(self):
        assert round_to_price_point(Decimal("29.40"), Decimal("0")) == Decimal("29.00")

    def test_round_up(self):
        assert round_up_to_price_point(Decimal("34.788"), NINETY_NINE) == Decimal("34.99")
        assert round_up_to_price_point(Decimal("29.99"), NINETY_NINE) == Decimal("29.99")


class TestRetailPrice:
    def test_worked_example(self, calculator, pricing_config):
        breakdown = calculator.price_breakdown(Decimal("10.00"), pricing_config)
        assert breakdown.marked_up_price == Decimal("25.00")
        assert breakdown.with_shipping_buffer == Decimal("28.00")
        assert breakdown.with_platform_fees == Decimal("29.40")
        assert breakdown.rounded_price == Decimal("28.99")
        assert breakdown.final_price == Decimal("28.99")
        assert not breakdown.min_applied
        assert not breakdown.max_applied

    def test_retail_price_matches_breakdown(self, calculator, pricing_config):
        assert calculator.retail_price("10.00", pricing_config) == Decimal("28.99")

    def test_min_price_clamp(self, calculator):
        config = CategoryPricingConfig(category_id="cat-1", min_price="30")
        breakdown = calculator.price_breakdown(Decimal("10.00"), config)
        assert breakdown.final_price == Decimal("30.00")
        assert breakdown.min_applied

    def test_max_price_clamp(self, calculator):
        config = CategoryPricingConfig(category_id="cat-1", max_price="20")
        breakdown = calculator.price_breakdown(Decimal("10.00"), config)
        assert breakdown.final_price == Decimal("20.00")
        assert breakdown.max_applied

    def test_zero_cost_still_priced(self, calculator, pricing_config):
        # 3.00 * 1.05 = 3.15
        assert calculator.retail_price(0, pricing_config) == Decimal("2.99")

    @pytest.mark.parametrize("cost", ["1.00", "4.37", "10.00", "19.99", "57.10", "250.00"])
    def test_ends_in_increment_and_covers_cost(self, calculator, pricing_config, cost):
        price = calculator.retail_price(cost, pricing_config)
        assert price % 1 == NINETY_NINE
        assert price >= Decimal(cost)

    def test_negative_cost_rejected(self, calculator, pricing_config):
        with pytest.raises(InvalidConfiguration, match="negative"):
            calculator.retail_price("-1.00", pricing_config)


class TestCheckConfig:
    @pytest.mark.parametrize("overrides, message", [
        ({"markup_factor": "0.8"}, "Markup factor"),
        ({"shipping_buffer": "-1"}, "Shipping buffer"),
        ({"platform_fee": "1"}, "Platform fee"),
        ({"platform_fee": "-0.1"}, "Platform fee"),
        ({"rounding_increment": "1.5"}, "Rounding increment"),
        ({"min_price": "50", "max_price": "20"}, "exceeds maximum"),
    ])
    def test_rejects_bad_config(self, calculator, overrides, message):
        config = CategoryPricingConfig(category_id="cat-bad", **overrides)
        with pytest.raises(InvalidConfiguration, match=message) as excinfo:
            calculator.retail_price("10.00", config)
        assert excinfo.value.details["category_id"] == "cat-bad"

    def test_markup_of_one_allowed(self, calculator):
        config = CategoryPricingConfig(category_id="cat-1", markup_factor="1.0")
        calculator.check_config(config)


class TestVariantPrice:
    def test_uses_variant_cost(self, calculator, pricing_config):
        # 11 * 2.5 + 3 = 30.5 * 1.05 = 32.025
        assert calculator.variant_price("10.00", "11.00", pricing_config) == Decimal("31.99")

    def test_falls_back_to_base_cost(self, calculator, pricing_config):
        assert calculator.variant_price("10.00", "0", pricing_config) == Decimal("28.99")


class TestCompareAtPrice:
    def test_default_markup(self, calculator):
        # 28.99 * 1.2 = 34.788
        assert calculator.compare_at_price(Decimal("28.99")) == Decimal("34.99")

    def test_always_above_retail(self, calculator):
        for retail in ("0.99", "10.00", "28.99", "99.99"):
            assert calculator.compare_at_price(retail) > Decimal(retail)

    def test_custom_markup(self, calculator):
        assert calculator.compare_at_price("10.00", extra_markup_percent=50) == Decimal("15.99")

    @pytest.mark.parametrize("pct", [0, -10])
    def test_non_positive_markup_rejected(self, calculator, pct):
        with pytest.raises(InvalidConfiguration):
            calculator.compare_at_price("10.00", extra_markup_percent=pct)


class TestMargin:
    def test_margin(self, calculator):
        info = calculator.margin("25.00", "100.00")
        assert info.margin == Decimal("75.00")
        assert info.margin_percentage == Decimal("75.00")
        assert info.markup_factor == Decimal("4.0000")

    def test_zero_cost_has_no_markup(self, calculator):
        info = calculator.margin("0", "10.00")
        assert info.markup_factor is None
        assert info.margin_percentage == Decimal("100.00")

    def test_zero_retail(self, calculator):
        info = calculator.margin("5.00", "0")
        assert info.margin_percentage == Decimal("0.00")


class TestValidate:
    def test_valid_price(self, calculator, pricing_config):
        result = calculator.validate("28.99", pricing_config)
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_below_minimum(self, calculator):
        config = CategoryPricingConfig(category_id="cat-1", min_price="15")
        result = calculator.validate("10.00", config)
        assert not result.is_valid
        assert result.adjusted_price == Decimal("15.00")

    def test_above_maximum(self, calculator):
        config = CategoryPricingConfig(category_id="cat-1", max_price="20")
        result = calculator.validate("25.00", config)
        assert not result.is_valid
        assert result.adjusted_price == Decimal("20.00")

    def test_negative(self, calculator, pricing_config):
        result = calculator.validate("-1", pricing_config)
        assert not result.is_valid
        assert result.adjusted_price == Decimal("0.00")

    def test_warnings(self, calculator):
        config = CategoryPricingConfig(category_id="cat-1", markup_factor="1.5")
        low = calculator.validate("3.99", config)
        assert low.is_valid
        assert any("very low" in w for w in low.warnings)
        assert any("Markup factor" in w for w in low.warnings)

        high = calculator.validate("249.99", config)
        assert any("very high" in w for w in high.warnings)


class TestPriceChange:
    def test_significant(self, calculator):
        assert calculator.is_price_change_significant("10.00", "11.00")
        assert not calculator.is_price_change_significant("10.00", "10.50")

    def test_from_zero(self, calculator):
        assert calculator.is_price_change_significant("0", "5.00")
        assert not calculator.is_price_change_significant("0", "0")


class TestCents:
    def test_to_cents(self):
        assert PriceCalculator.to_cents(Decimal("28.99")) == 2899
        assert PriceCalculator.to_cents("0.005") == 1

    def test_from_cents(self):
        assert PriceCalculator.from_cents(2899) == Decimal("28.99")

    def test_round_trip(self):
        for price in ("0.99", "28.99", "1234.50"):
            assert PriceCalculator.from_cents(PriceCalculator.to_cents(price)) == Decimal(price)

    @pytest.mark.parametrize("value", [28.99, "2899", True])
    def test_from_cents_rejects_non_int(self, value):
        with pytest.raises(TypeError):
            PriceCalculator.from_cents(value)

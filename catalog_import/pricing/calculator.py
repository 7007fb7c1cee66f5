"""
Price Calculator

Turns marketplace cost prices into retail prices using per-category
pricing rules. All arithmetic is exact Decimal; no I/O.

Retail price steps:
    cost * markup_factor
    + shipping_buffer
    * (1 + platform_fee)
    -> price point (largest amount ending in the rounding increment
       that does not exceed the computed value)
    -> clamp to [min_price, max_price]
"""

from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import List, Optional

from ..common.errors import InvalidConfiguration
from ..models import CategoryPricingConfig, to_decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass
class PriceBreakdown:
    """Every intermediate step of a retail price calculation."""
    cost_price: Decimal
    marked_up_price: Decimal
    with_shipping_buffer: Decimal
    with_platform_fees: Decimal
    rounded_price: Decimal
    final_price: Decimal
    markup_factor: Decimal
    shipping_buffer: Decimal
    platform_fee: Decimal
    min_applied: bool = False
    max_applied: bool = False


@dataclass
class MarginInfo:
    """Profit margin for a cost/retail pair."""
    cost_price: Decimal
    retail_price: Decimal
    margin: Decimal
    margin_percentage: Decimal
    markup_factor: Optional[Decimal]    # None when cost is zero (undefined)


@dataclass
class PriceValidationResult:
    """Outcome of validate(): errors block, warnings inform."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    adjusted_price: Optional[Decimal] = None


def round_to_price_point(value: Decimal, increment: Decimal) -> Decimal:
    """
    Round down to the nearest price ending in `increment`.

    Values below the increment are lifted to the increment, so the
    result is never negative.

    Example:
        >>> round_to_price_point(Decimal("29.40"), Decimal("0.99"))
        Decimal('28.99')
    """
    if value < increment:
        return increment.quantize(CENT)
    whole = (value - increment).to_integral_value(rounding=ROUND_FLOOR)
    return (whole + increment).quantize(CENT)


def round_up_to_price_point(value: Decimal, increment: Decimal) -> Decimal:
    """Round up to the nearest price ending in `increment`."""
    whole = (value - increment).to_integral_value(rounding=ROUND_CEILING)
    return (max(whole, Decimal(0)) + increment).quantize(CENT)


class PriceCalculator:
    """
    Calculates retail, compare-at and margin figures.

    Usage:
        calculator = PriceCalculator()
        config = CategoryPricingConfig(category_id="cat-1", markup_factor="2.5")
        calculator.retail_price(Decimal("10.00"), config)
        # Returns: Decimal('28.99')
    """

    def __init__(
        self,
        compare_at_markup_percent=20,
        low_price_warning="5.00",
        high_price_warning="200.00",
        low_markup_warning="2.0",
    ):
        """
        Initialize the calculator.

        Args:
            compare_at_markup_percent: Default extra markup for compare-at prices
            low_price_warning: validate() warns below this price
            high_price_warning: validate() warns above this price
            low_markup_warning: validate() warns when markup is below this factor
        """
        self.compare_at_markup_percent = to_decimal(compare_at_markup_percent)
        self.low_price_warning = to_decimal(low_price_warning)
        self.high_price_warning = to_decimal(high_price_warning)
        self.low_markup_warning = to_decimal(low_markup_warning)

    def retail_price(self, cost_price, config: CategoryPricingConfig) -> Decimal:
        """
        Calculate the retail price for a cost price.

        Raises:
            InvalidConfiguration: negative cost or out-of-range pricing config
        """
        return self.price_breakdown(cost_price, config).final_price

    def price_breakdown(self, cost_price, config: CategoryPricingConfig) -> PriceBreakdown:
        """
        Calculate the retail price and keep every intermediate value.

        Raises:
            InvalidConfiguration: negative cost or out-of-range pricing config
        """
        cost = to_decimal(cost_price)
        if cost < 0:
            raise InvalidConfiguration(
                f"Cost price cannot be negative (got {cost})",
                {"cost_price": str(cost)},
            )
        self.check_config(config)

        marked_up = cost * config.markup_factor
        with_shipping = marked_up + config.shipping_buffer
        with_fees = with_shipping * (1 + config.platform_fee)
        rounded = round_to_price_point(with_fees, config.rounding_increment)

        final = rounded
        min_applied = max_applied = False
        if config.min_price is not None and final < config.min_price:
            final = config.min_price.quantize(CENT)
            min_applied = True
        if config.max_price is not None and final > config.max_price:
            final = config.max_price.quantize(CENT)
            max_applied = True

        return PriceBreakdown(
            cost_price=cost,
            marked_up_price=marked_up,
            with_shipping_buffer=with_shipping,
            with_platform_fees=with_fees,
            rounded_price=rounded,
            final_price=final,
            markup_factor=config.markup_factor,
            shipping_buffer=config.shipping_buffer,
            platform_fee=config.platform_fee,
            min_applied=min_applied,
            max_applied=max_applied,
        )

    def check_config(self, config: CategoryPricingConfig) -> None:
        """
        Reject pricing rules that would sell at a loss or make no sense.

        Raises:
            InvalidConfiguration: describing the first offending field
        """
        details = {"category_id": config.category_id}
        if config.markup_factor < 1:
            raise InvalidConfiguration(
                f"Markup factor must be at least 1.0 to avoid selling at a loss "
                f"(got {config.markup_factor})",
                details,
            )
        if config.shipping_buffer < 0:
            raise InvalidConfiguration(
                f"Shipping buffer cannot be negative (got {config.shipping_buffer})", details
            )
        if config.platform_fee < 0 or config.platform_fee >= 1:
            raise InvalidConfiguration(
                f"Platform fee must be a fraction in [0, 1) (got {config.platform_fee})", details
            )
        if config.rounding_increment < 0 or config.rounding_increment >= 1:
            raise InvalidConfiguration(
                f"Rounding increment must be in [0, 1) (got {config.rounding_increment})", details
            )
        if (config.min_price is not None and config.max_price is not None
                and config.min_price > config.max_price):
            raise InvalidConfiguration(
                f"Minimum price {config.min_price} exceeds maximum {config.max_price}", details
            )

    def variant_price(self, base_cost, variant_cost, config: CategoryPricingConfig) -> Decimal:
        """Price a variant from its own cost when positive, else the product cost."""
        variant_cost = to_decimal(variant_cost)
        effective = variant_cost if variant_cost > 0 else to_decimal(base_cost)
        return self.retail_price(effective, config)

    def compare_at_price(
        self,
        retail_price,
        extra_markup_percent=None,
        rounding_increment=Decimal("0.99"),
    ) -> Decimal:
        """
        Calculate the compare-at ("was") price shown next to retail.

        Always strictly above retail: the marked-up value is rounded up
        to the next price point.

        Raises:
            InvalidConfiguration: if extra_markup_percent is not positive
        """
        pct = self.compare_at_markup_percent if extra_markup_percent is None \
            else to_decimal(extra_markup_percent)
        if pct <= 0:
            raise InvalidConfiguration(
                f"Compare-at markup must be positive (got {pct}%)",
                {"extra_markup_percent": str(pct)},
            )
        value = to_decimal(retail_price) * (1 + pct / HUNDRED)
        return round_up_to_price_point(value, to_decimal(rounding_increment))

    def margin(self, cost_price, retail_price) -> MarginInfo:
        """
        Calculate absolute and relative margin.

        margin_percentage is 0 when retail is 0; markup_factor is None
        when cost is 0.
        """
        cost = to_decimal(cost_price)
        retail = to_decimal(retail_price)
        margin = retail - cost

        if retail == 0:
            percentage = Decimal("0.00")
        else:
            percentage = (margin / retail * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)

        markup = None if cost == 0 else (retail / cost).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)

        return MarginInfo(
            cost_price=cost,
            retail_price=retail,
            margin=margin,
            margin_percentage=percentage,
            markup_factor=markup,
        )

    def validate(self, price, config: CategoryPricingConfig) -> PriceValidationResult:
        """
        Check a retail price against category limits.

        Below-min / above-max are errors (with adjusted_price suggestion);
        very low / very high prices and low markup are warnings.
        """
        price = to_decimal(price)
        errors: List[str] = []
        warnings: List[str] = []
        adjusted = None

        if price < 0:
            errors.append(f"Price ${price:.2f} is negative")
            adjusted = Decimal("0.00")

        if config.min_price is not None and price < config.min_price:
            errors.append(f"Price ${price:.2f} is below minimum ${config.min_price:.2f}")
            adjusted = config.min_price.quantize(CENT)

        if config.max_price is not None and price > config.max_price:
            errors.append(f"Price ${price:.2f} is above maximum ${config.max_price:.2f}")
            adjusted = config.max_price.quantize(CENT)

        if price < self.low_price_warning:
            warnings.append("Price is very low. Consider if this covers costs and fees.")
        if price > self.high_price_warning:
            warnings.append("Price is very high. This may affect conversion rates.")
        if config.markup_factor < self.low_markup_warning:
            warnings.append(
                f"Markup factor of {config.markup_factor}x is low. "
                f"Consider higher markup for better margins."
            )

        return PriceValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            adjusted_price=adjusted,
        )

    def is_price_change_significant(self, old_price, new_price, threshold_percent=10) -> bool:
        """Return True if the relative change meets the threshold."""
        old = to_decimal(old_price)
        new = to_decimal(new_price)
        if old == 0:
            return new != 0
        change = abs((new - old) / old) * HUNDRED
        return change >= to_decimal(threshold_percent)

    @staticmethod
    def to_cents(price) -> int:
        """Convert a price to integer minor units (half-up)."""
        return int((to_decimal(price) * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))

    @staticmethod
    def from_cents(cents: int) -> Decimal:
        """Convert integer minor units back to a price."""
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise TypeError(f"cents must be an int, got {type(cents).__name__}")
        return (Decimal(cents) / HUNDRED).quantize(CENT)

"""
Pricing modules.

Modules:
    calculator - PriceCalculator (retail, compare-at, margin, cents)
"""

from .calculator import (
    MarginInfo,
    PriceBreakdown,
    PriceCalculator,
    PriceValidationResult,
    round_to_price_point,
    round_up_to_price_point,
)

__all__ = [
    'PriceCalculator',
    'PriceBreakdown',
    'MarginInfo',
    'PriceValidationResult',
    'round_to_price_point',
    'round_up_to_price_point',
]

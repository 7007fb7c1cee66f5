"""
Stock Validator

Classifies a listing's availability before it is imported: fully in
stock, partially in stock, or unavailable.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..models import SourceListing, SourceVariant

INVENTORY_AVAILABLE = 'AVAILABLE'
INVENTORY_LOW_STOCK = 'LOW_STOCK'
INVENTORY_OUT_OF_STOCK = 'OUT_OF_STOCK'


@dataclass
class StockValidationResult:
    """Outcome of StockValidator.validate()."""
    is_valid: bool
    available_variants: List[SourceVariant] = field(default_factory=list)
    out_of_stock_variants: List[str] = field(default_factory=list)   # sku ids
    message: str = ''
    total_available_stock: int = 0
    is_completely_out_of_stock: bool = False
    has_partial_stock: bool = False

    def to_dict(self) -> dict:
        return {
            'is_valid': self.is_valid,
            'available_variants': [v.sku_id for v in self.available_variants],
            'out_of_stock_variants': list(self.out_of_stock_variants),
            'message': self.message,
            'total_available_stock': self.total_available_stock,
            'is_completely_out_of_stock': self.is_completely_out_of_stock,
            'has_partial_stock': self.has_partial_stock,
        }


@dataclass
class StockAction:
    """Recommended stock-management action for a listing."""
    action: str       # NONE | UPDATE_STOCK | HIDE_VARIANTS | HIDE_PRODUCT
    priority: str     # LOW | MEDIUM | HIGH
    message: str


class StockValidator:
    """
    Validates listing stock.

    Variants with unknown stock are assumed available; a listing without
    variants uses its product-level stock, where unknown means unavailable.

    Usage:
        validator = StockValidator(min_stock_threshold=1)
        result = validator.validate(listing)
        if result.is_completely_out_of_stock:
            ...
    """

    def __init__(
        self,
        min_stock_threshold: int = 1,
        reject_on_partial_stock: bool = False,
        max_out_of_stock_variants: Optional[int] = None,
        min_in_stock_percentage: float = 0,
        low_stock_threshold: int = 10,
    ):
        """
        Initialize the validator.

        Args:
            min_stock_threshold: Units a variant needs to count as available
            reject_on_partial_stock: Invalid if any variant is out of stock
            max_out_of_stock_variants: Invalid above this many out-of-stock variants (None = no limit)
            min_in_stock_percentage: Invalid below this share of in-stock variants
            low_stock_threshold: inventory_status() reports LOW_STOCK below this many units
        """
        self.min_stock_threshold = min_stock_threshold
        self.reject_on_partial_stock = reject_on_partial_stock
        self.max_out_of_stock_variants = max_out_of_stock_variants
        self.min_in_stock_percentage = min_in_stock_percentage
        self.low_stock_threshold = low_stock_threshold

    def validate(self, listing: SourceListing) -> StockValidationResult:
        """Validate stock for every variant of a listing."""
        variants = list(listing.variants)
        if not variants:
            return self._validate_single(listing)

        available = []
        out_of_stock = []
        for variant in variants:
            if self.is_variant_in_stock(variant):
                available.append(variant)
            else:
                out_of_stock.append(variant.sku_id)

        total_stock = sum(v.stock or 0 for v in available)
        is_valid, reason = self._check_validity(len(available), len(out_of_stock), len(variants))

        if reason:
            message = reason
        elif not out_of_stock:
            message = f"All {len(variants)} variant(s) in stock (total: {total_stock} units)"
        else:
            message = (
                f"{len(available)} of {len(variants)} variant(s) in stock, "
                f"{len(out_of_stock)} out of stock (total available: {total_stock} units)"
            )

        return StockValidationResult(
            is_valid=is_valid,
            available_variants=available,
            out_of_stock_variants=out_of_stock,
            message=message,
            total_available_stock=total_stock,
            is_completely_out_of_stock=not available,
            has_partial_stock=bool(available) and bool(out_of_stock),
        )

    def is_variant_in_stock(self, variant: SourceVariant) -> bool:
        if variant.stock is None:
            return True
        return variant.stock > 0 and variant.stock >= self.min_stock_threshold

    def _validate_single(self, listing: SourceListing) -> StockValidationResult:
        stock = listing.stock
        has_stock = stock is not None and stock >= self.min_stock_threshold

        if has_stock:
            message = f"Product in stock ({stock} units available)"
        elif stock == 0:
            message = "Product is out of stock"
        elif stock is None:
            message = "Product stock status unknown - assumed unavailable"
        else:
            message = f"Product stock ({stock} units) is below the minimum of {self.min_stock_threshold}"

        return StockValidationResult(
            is_valid=has_stock,
            message=message,
            total_available_stock=stock if has_stock else 0,
            is_completely_out_of_stock=not has_stock,
            has_partial_stock=False,
        )

    def _check_validity(self, available: int, out_of_stock: int, total: int):
        """Return (is_valid, rejection_message_or_empty)."""
        if available == 0:
            return False, "Product is completely out of stock"

        if self.reject_on_partial_stock and out_of_stock > 0:
            return False, (
                f"Product rejected: {out_of_stock} variant(s) out of stock "
                f"(partial stock not allowed)"
            )

        if self.max_out_of_stock_variants is not None and out_of_stock > self.max_out_of_stock_variants:
            return False, (
                f"Product rejected: {out_of_stock} variant(s) out of stock exceeds "
                f"maximum allowed ({self.max_out_of_stock_variants})"
            )

        in_stock_pct = available / total * 100 if total else 100.0
        if in_stock_pct < self.min_in_stock_percentage:
            return False, (
                f"Product rejected: Only {in_stock_pct:.1f}% variants in stock "
                f"(minimum: {self.min_in_stock_percentage}%)"
            )

        return True, ''

    def inventory_status(self, result: StockValidationResult) -> str:
        """Map a validation result to AVAILABLE, LOW_STOCK or OUT_OF_STOCK."""
        if result.is_completely_out_of_stock:
            return INVENTORY_OUT_OF_STOCK
        if result.has_partial_stock:
            return INVENTORY_LOW_STOCK
        if 0 < result.total_available_stock < self.low_stock_threshold:
            return INVENTORY_LOW_STOCK
        return INVENTORY_AVAILABLE

    def health_score(self, result: StockValidationResult) -> int:
        """
        Inventory health from 0 to 100.

        70 % weight on the in-stock variant ratio, 30 % on stock depth
        (saturating at 100 units).
        """
        if result.is_completely_out_of_stock:
            return 0

        total_variants = len(result.available_variants) + len(result.out_of_stock_variants)
        if total_variants == 0:
            return 100

        in_stock_ratio = len(result.available_variants) / total_variants
        quantity_score = min(result.total_available_stock / 100, 1)
        return int(in_stock_ratio * 70 + quantity_score * 30 + 0.5)

    def recommended_action(self, result: StockValidationResult) -> StockAction:
        if result.is_completely_out_of_stock:
            return StockAction(
                action='HIDE_PRODUCT',
                priority='HIGH',
                message='Product is completely out of stock - consider hiding or marking as unavailable',
            )

        if result.has_partial_stock:
            if self.health_score(result) < 30:
                return StockAction(
                    action='HIDE_VARIANTS',
                    priority='MEDIUM',
                    message='Low inventory health - consider hiding out-of-stock variants',
                )
            return StockAction(
                action='UPDATE_STOCK',
                priority='LOW',
                message='Some variants out of stock - update inventory display',
            )

        return StockAction(action='NONE', priority='LOW', message='All variants in stock - no action needed')

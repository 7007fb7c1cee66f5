"""
Source listing models.

Pure data classes for raw marketplace listings and the per-category
pricing configuration they are priced with.
No business logic - only data structure definitions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Tuple


def to_decimal(value) -> Decimal:
    """Coerce a money value to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


@dataclass(frozen=True)
class SourceVariant:
    """Marketplace variant (one purchasable SKU of a listing)."""
    sku_id: str
    name: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    price: Decimal = Decimal("0")
    stock: Optional[int] = None     # None = marketplace did not report stock
    image: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price))
        object.__setattr__(self, "attributes", dict(self.attributes or {}))


@dataclass(frozen=True)
class SourceListing:
    """
    Raw listing as returned by a fetcher. Immutable once fetched.

    Field Groups:
    - Identity: product_id, source_url
    - Content: title, description, specifications
    - Pricing: price (cost), currency, original_price
    - Media: images
    - Variants: variants, stock (product level, for variant-less listings)
    - Seller: seller_id, seller_name, store_url, seller_rating
    """

    product_id: str
    title: str
    source_url: str
    price: Decimal = Decimal("0")
    description: str = ""
    currency: str = "USD"
    images: Tuple[str, ...] = ()
    variants: Tuple[SourceVariant, ...] = ()
    specifications: Dict[str, str] = field(default_factory=dict)
    seller_id: str = ""
    seller_name: str = ""
    store_url: str = ""
    seller_rating: Optional[float] = None
    original_price: Optional[Decimal] = None
    stock: Optional[int] = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Validate required fields and normalize containers."""
        if not self.product_id:
            raise ValueError("Listing product_id is required")
        if not self.source_url:
            raise ValueError("Listing source_url is required")

        object.__setattr__(self, "price", to_decimal(self.price))
        if self.original_price is not None:
            object.__setattr__(self, "original_price", to_decimal(self.original_price))
        object.__setattr__(self, "images", tuple(self.images or ()))
        object.__setattr__(self, "variants", tuple(self.variants or ()))
        object.__setattr__(self, "specifications", dict(self.specifications or {}))


@dataclass(frozen=True)
class CategoryPricingConfig:
    """
    Pricing rules for one category. Supplied per import, never mutated.

    Range checks (markup >= 1.0 etc.) are enforced by PriceCalculator,
    not here, so a bad row from the database surfaces as
    InvalidConfiguration at pricing time.
    """
    category_id: str
    category_name: str = ""
    markup_factor: Decimal = Decimal("2.5")
    shipping_buffer: Decimal = Decimal("3.00")
    platform_fee: Decimal = Decimal("0.05")
    rounding_increment: Decimal = Decimal("0.99")
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None

    def __post_init__(self):
        for name in ("markup_factor", "shipping_buffer", "platform_fee", "rounding_increment"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        for name in ("min_price", "max_price"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))

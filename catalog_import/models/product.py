"""
Catalog product models.

Pure data classes for transformed products, their variants and
processed images.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass
class DescriptionBlock:
    """One paragraph of structured description text."""
    key: str
    text: str
    style: str = "normal"


@dataclass
class VariantMapping:
    """Local SKU <-> marketplace SKU correspondence."""
    local_sku: str
    source_sku_id: str
    source_variant_name: str = ""


@dataclass
class TransformedVariant:
    """Catalog-ready variant."""
    sku: str
    name: str
    size: str
    price: Decimal
    source_sku_id: str = ""
    stock: int = 0
    color: Optional[str] = None
    color_code: Optional[str] = None    # "#RRGGBB"
    compare_at_price: Optional[Decimal] = None
    image_url: Optional[str] = None


@dataclass
class TransformedProduct:
    """
    Catalog-ready product produced by ProductTransformer.

    Field Groups:
    - Display: name, slug, description, short_description, tags
    - Pricing: base_price, compare_at_price, cost_price, currency
    - Identity: sku, category_id
    - SEO: seo_title, seo_description
    - Variants: variants, variant_mapping
    - Source tracking: original_image_urls, source_product_id, source_url,
      supplier_id, supplier_name
    """

    name: str
    slug: str
    sku: str
    category_id: str
    base_price: Decimal
    cost_price: Decimal
    description: List[DescriptionBlock] = field(default_factory=list)
    short_description: str = ""
    compare_at_price: Optional[Decimal] = None
    currency: str = "USD"
    tags: List[str] = field(default_factory=list)
    seo_title: str = ""
    seo_description: str = ""
    variants: List[TransformedVariant] = field(default_factory=list)
    variant_mapping: List[VariantMapping] = field(default_factory=list)
    original_image_urls: List[str] = field(default_factory=list)
    source_product_id: str = ""
    source_url: str = ""
    supplier_id: str = ""
    supplier_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-friendly representation (Decimals as strings)."""
        return to_jsonable(asdict(self))


@dataclass
class ProcessedImage:
    """Image that made it through download, re-encode and upload."""
    source_url: str
    asset_id: str
    url: str
    width: int
    height: int
    index: int = 0
    is_primary: bool = False


@dataclass
class UploadedAsset:
    """Reference returned by the asset store for an uploaded binary."""
    asset_id: str
    url: str


def to_jsonable(value):
    """Recursively convert Decimals to strings for JSON output."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value

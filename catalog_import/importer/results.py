"""
Import request and result records.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..models import CategoryPricingConfig, SourceListing, TransformedProduct, to_jsonable


class ImportStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    SUCCEEDED_WITH_WARNINGS = "SUCCEEDED_WITH_WARNINGS"
    FAILED = "FAILED"


@dataclass
class ImportRequest:
    """
    One listing to import.

    overrides replaces fields of the transformed product before anything
    is written (e.g. {"name": "...", "base_price": "24.99"}).
    """
    url: str
    category_id: str
    overrides: Optional[Dict[str, Any]] = None
    process_images: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "category_id": self.category_id,
            "overrides": to_jsonable(self.overrides) if self.overrides else None,
            "process_images": self.process_images,
        }


@dataclass
class ImportResult:
    """Terminal outcome of import_listing()."""
    success: bool
    status: ImportStatus
    content_doc_id: Optional[str] = None
    slug: Optional[str] = None
    source_record_id: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_details: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    orphaned_content_doc_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "content_doc_id": self.content_doc_id,
            "slug": self.slug,
            "source_record_id": self.source_record_id,
            "error": self.error,
            "error_code": self.error_code,
            "error_details": to_jsonable(self.error_details),
            "warnings": list(self.warnings),
            "orphaned_content_doc_id": self.orphaned_content_doc_id,
        }


@dataclass
class ImportPreview:
    """Everything an operator needs to decide on an import, with no side effects."""
    listing: SourceListing
    product: TransformedProduct
    pricing: CategoryPricingConfig
    stock_status: Dict[str, Any]
    price_breakdown: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)
    primary_image_dimensions: Optional[Tuple[int, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_product_id": self.listing.product_id,
            "source_url": self.listing.source_url,
            "category_id": self.pricing.category_id,
            "category_name": self.pricing.category_name,
            "product": self.product.to_dict(),
            "stock_status": to_jsonable(self.stock_status),
            "price_breakdown": to_jsonable(self.price_breakdown),
            "warnings": list(self.warnings),
            "primary_image_dimensions": (
                list(self.primary_image_dimensions) if self.primary_image_dimensions else None
            ),
        }



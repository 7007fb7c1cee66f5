"""
Content document builder.

Shapes a transformed product and its processed images into the product
document stored in the content store. Prices are stored in cents.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from ..models import ProcessedImage, TransformedProduct
from ..pricing import PriceCalculator
from .content_store import STATUS_PENDING


def _image_ref(image: ProcessedImage, alt: str, key: str = None) -> Dict[str, Any]:
    ref = {
        "_type": "image",
        "asset": {"_type": "reference", "_ref": image.asset_id},
        "alt": alt,
    }
    if key:
        ref["_key"] = key
    return ref


def build_product_document(
    product: TransformedProduct,
    images: List[ProcessedImage],
    status: str = STATUS_PENDING,
) -> Dict[str, Any]:
    """
    Build the content document for a product.

    Args:
        product: Transformed product
        images: Processed images, primary first
        status: Initial lifecycle status (pending until the relational write commits)

    Returns:
        Document dict ready for ContentStore.create_document()
    """
    to_cents = PriceCalculator.to_cents
    now = datetime.now(timezone.utc).isoformat()

    doc: Dict[str, Any] = {
        "_type": "product",
        "status": status,
        "name": product.name,
        "slug": {"_type": "slug", "current": product.slug},
        "description": [
            {
                "_type": "block",
                "_key": block.key,
                "style": block.style,
                "children": [{"_type": "span", "_key": f"{block.key}-0", "text": block.text}],
            }
            for block in product.description
        ],
        "shortDescription": product.short_description,
        "basePrice": to_cents(product.base_price),
        "compareAtPrice": to_cents(product.compare_at_price) if product.compare_at_price else None,
        "sku": product.sku,
        "category": {"_type": "reference", "_ref": product.category_id},
        "tags": list(product.tags),
        "metaTitle": product.seo_title,
        "metaDescription": product.seo_description,
        "isActive": True,
        "isNew": True,
        "sourceData": {
            "sourceProductId": product.source_product_id,
            "sourceUrl": product.source_url,
            "supplierId": product.supplier_id,
            "originalPrice": to_cents(product.cost_price),
            "originalCurrency": product.currency,
            "lastSynced": now,
            "sourceStatus": "active",
        },
        "variantMapping": [
            {
                "_key": m.local_sku,
                "localSku": m.local_sku,
                "sourceSkuId": m.source_sku_id,
                "sourceVariantName": m.source_variant_name,
            }
            for m in product.variant_mapping
        ],
    }

    if images:
        doc["featuredImage"] = _image_ref(images[0], product.name)
        doc["images"] = [
            _image_ref(image, product.name, key=f"image-{image.index}") for image in images
        ]

    return doc

"""
Data models for the import pipeline.

This module contains pure data classes with no business logic.
"""

from .listing import CategoryPricingConfig, SourceListing, SourceVariant, to_decimal
from .product import (
    DescriptionBlock,
    ProcessedImage,
    TransformedProduct,
    TransformedVariant,
    UploadedAsset,
    VariantMapping,
    to_jsonable,
)

__all__ = [
    'SourceVariant',
    'SourceListing',
    'CategoryPricingConfig',
    'DescriptionBlock',
    'VariantMapping',
    'TransformedVariant',
    'TransformedProduct',
    'ProcessedImage',
    'UploadedAsset',
    'to_decimal',
    'to_jsonable',
]

"""
Listing sources.

Modules:
    base            - ListingFetcher interface
    jsonld_fetcher  - schema.org JSON-LD fetcher (requests + BeautifulSoup)
    stock_validator - StockValidator (availability classification)
    url_utils       - product id extraction, URL allow-listing
"""

from .base import ListingFetcher
from .jsonld_fetcher import JsonLdListingFetcher, parse_price
from .stock_validator import (
    INVENTORY_AVAILABLE,
    INVENTORY_LOW_STOCK,
    INVENTORY_OUT_OF_STOCK,
    StockAction,
    StockValidationResult,
    StockValidator,
)
from .url_utils import extract_product_id, is_valid_listing_url, normalize_listing_url

__all__ = [
    'ListingFetcher',
    'JsonLdListingFetcher',
    'parse_price',
    'StockValidator',
    'StockValidationResult',
    'StockAction',
    'INVENTORY_AVAILABLE',
    'INVENTORY_LOW_STOCK',
    'INVENTORY_OUT_OF_STOCK',
    'extract_product_id',
    'is_valid_listing_url',
    'normalize_listing_url',
]

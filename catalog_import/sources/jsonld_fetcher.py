"""
JSON-LD Listing Fetcher

Fetches a listing page and builds a SourceListing from its schema.org
Product (or ProductGroup) JSON-LD block.

Supported shapes:
- Product with a single Offer, a list of Offers, or an AggregateOffer
- ProductGroup / Product with hasVariant entries (one Product per variant)
"""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from ..common.errors import FetchError
from ..common.text_utils import collapse_whitespace
from ..models import SourceListing, SourceVariant
from .base import ListingFetcher
from .url_utils import extract_product_id, is_blocked_host

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ('Product', 'ProductGroup')

_OUT_OF_STOCK = ('outofstock', 'soldout', 'discontinued')

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Variant-level fields promoted to attributes when present
_VARIANT_ATTRIBUTE_FIELDS = ('color', 'size', 'material', 'pattern')


def parse_price(value: Any) -> Decimal:
    """
    Parse a price from a number or a display string.

    Example:
        >>> parse_price("US $1,234.50")
        Decimal('1234.50')
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    text = re.sub(r'US\s*\$|USD|EUR|GBP|CNY|[$€£¥\s]', '', str(value), flags=re.IGNORECASE)
    match = re.search(r'[\d,]+(?:\.\d+)?', text)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0).replace(',', ''))
    except InvalidOperation:
        return Decimal("0")


class JsonLdListingFetcher(ListingFetcher):
    """
    Listing fetcher backed by schema.org JSON-LD.

    Usage:
        fetcher = JsonLdListingFetcher()
        listing = fetcher.fetch("https://www.aliexpress.com/item/1005001.html")
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        allowed_domains: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            session: Shared requests session (created if omitted)
            timeout: Request timeout in seconds
            allowed_domains: If given, only these hosts may be fetched
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.allowed_domains = {d.lower() for d in allowed_domains} if allowed_domains else None

    def fetch(self, url: str) -> SourceListing:
        """Fetch a listing page and parse it."""
        self._check_url(url)

        try:
            response = self.session.get(url, headers=_DEFAULT_HEADERS, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch listing: {e}", {"url": url}) from e

        return self.parse_html(response.text, url)

    def parse_html(self, html: str, url: str) -> SourceListing:
        """
        Build a SourceListing from pre-fetched HTML.

        Raises:
            FetchError: If the page has no usable Product JSON-LD
        """
        soup = BeautifulSoup(html or '', 'lxml')
        data = self.find_product_data(soup)
        if not data:
            raise FetchError("No Product JSON-LD found on listing page", {"url": url})

        try:
            return self._build_listing(data, url)
        except (ValueError, TypeError, KeyError) as e:
            raise FetchError(f"Malformed listing data: {e}", {"url": url}) from e

    def find_product_data(self, soup: BeautifulSoup) -> Dict[str, Any]:
        """
        Extract the first Product/ProductGroup JSON-LD object.

        Returns:
            Parsed JSON-LD dict, or empty dict if not found
        """
        for script in soup.find_all('script', type='application/ld+json'):
            try:
                data = json.loads(script.string or '')
            except (json.JSONDecodeError, TypeError):
                continue

            candidates = data if isinstance(data, list) else [data]
            for item in candidates:
                if not isinstance(item, dict):
                    continue
                if isinstance(item.get('@graph'), list):
                    candidates.extend(i for i in item['@graph'] if isinstance(i, dict))
                    continue
                if _type_of(item) in SUPPORTED_TYPES:
                    return item
        return {}

    def _check_url(self, url: str) -> None:
        parsed = urlparse(url or '')
        host = (parsed.hostname or '').lower()
        if parsed.scheme not in ('http', 'https') or not host or is_blocked_host(host):
            raise FetchError("Listing URL is not fetchable", {"url": url})
        if self.allowed_domains is not None and host not in self.allowed_domains:
            raise FetchError(f"Listing host {host} is not allowed", {"url": url})

    def _build_listing(self, data: Dict[str, Any], url: str) -> SourceListing:
        product_id = extract_product_id(url) or str(data.get('productID') or data.get('sku') or '')
        if not product_id:
            raise ValueError("listing has no product id")

        offers = _offers(data)
        first_offer = offers[0] if offers else {}
        price = parse_price(first_offer.get('price', first_offer.get('lowPrice')))

        original_price = None
        high = first_offer.get('highPrice')
        if high is not None and parse_price(high) > price:
            original_price = parse_price(high)

        seller = first_offer.get('seller') if isinstance(first_offer.get('seller'), dict) else {}
        brand = data.get('brand')
        brand_name = brand.get('name', '') if isinstance(brand, dict) else str(brand or '')
        seller_name = collapse_whitespace(seller.get('name') or brand_name)
        seller_id = str(seller.get('@id') or seller.get('identifier') or seller_name)

        rating = None
        aggregate = data.get('aggregateRating')
        if isinstance(aggregate, dict) and aggregate.get('ratingValue') is not None:
            rating = float(aggregate['ratingValue'])

        variants = self._variants(data, offers)

        listing = SourceListing(
            product_id=product_id,
            title=collapse_whitespace(data.get('name', '')),
            source_url=url,
            price=price,
            description=data.get('description', '') or '',
            currency=first_offer.get('priceCurrency') or 'USD',
            images=_images(data),
            variants=variants,
            specifications=_specifications(data),
            seller_id=seller_id,
            seller_name=seller_name,
            store_url=seller.get('url', '') or '',
            seller_rating=rating,
            original_price=original_price,
            stock=None if variants else _offer_stock(first_offer),
        )
        logger.debug("Parsed listing %s: %d variants, %d images",
                     product_id, len(listing.variants), len(listing.images))
        return listing

    def _variants(self, data: Dict[str, Any], offers: List[Dict[str, Any]]) -> List[SourceVariant]:
        variants: List[SourceVariant] = []

        has_variant = data.get('hasVariant')
        if isinstance(has_variant, list) and has_variant:
            for index, item in enumerate(has_variant):
                if not isinstance(item, dict):
                    continue
                item_offers = _offers(item)
                offer = item_offers[0] if item_offers else {}
                attributes = {
                    name.capitalize(): str(item[name])
                    for name in _VARIANT_ATTRIBUTE_FIELDS if item.get(name)
                }
                attributes.update(_specifications(item))
                images = _images(item)
                variants.append(SourceVariant(
                    sku_id=str(item.get('sku') or offer.get('sku') or f"{index}"),
                    name=collapse_whitespace(item.get('name', '')),
                    attributes=attributes,
                    price=parse_price(offer.get('price')),
                    stock=_offer_stock(offer),
                    image=images[0] if images else None,
                ))
            return variants

        # Several offers with their own SKUs are variants of one listing
        if len(offers) > 1 and all(o.get('sku') for o in offers):
            for offer in offers:
                variants.append(SourceVariant(
                    sku_id=str(offer['sku']),
                    name=collapse_whitespace(offer.get('name', '')),
                    price=parse_price(offer.get('price')),
                    stock=_offer_stock(offer),
                ))
        return variants


def _type_of(item: Dict[str, Any]) -> str:
    item_type = item.get('@type')
    if isinstance(item_type, list):
        for t in item_type:
            if t in SUPPORTED_TYPES:
                return t
        return ''
    return item_type or ''


def _offers(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    offers = data.get('offers') or []
    if isinstance(offers, dict):
        nested = offers.get('offers')
        if isinstance(nested, list) and nested:
            # AggregateOffer: keep low/high on the first entry for price ranges
            first = dict(nested[0])
            first.setdefault('highPrice', offers.get('highPrice'))
            return [first] + [o for o in nested[1:] if isinstance(o, dict)]
        return [offers]
    return [o for o in offers if isinstance(o, dict)]


def _offer_stock(offer: Dict[str, Any]) -> Optional[int]:
    """Stock units of an offer; None when the page does not say."""
    level = offer.get('inventoryLevel')
    if isinstance(level, dict):
        level = level.get('value')
    if level is not None:
        try:
            return max(int(float(level)), 0)
        except (TypeError, ValueError):
            pass

    availability = str(offer.get('availability', '')).rsplit('/', 1)[-1].lower()
    if availability in _OUT_OF_STOCK:
        return 0
    return None


def _images(data: Dict[str, Any]) -> List[str]:
    image = data.get('image')
    items = image if isinstance(image, list) else [image]

    urls = []
    for item in items:
        if isinstance(item, dict):
            item = item.get('contentUrl') or item.get('url')
        if isinstance(item, str) and item.strip():
            url = item.strip()
            if url.startswith('//'):
                url = 'https:' + url
            if url not in urls:
                urls.append(url)
    return urls


def _specifications(data: Dict[str, Any]) -> Dict[str, str]:
    specs: Dict[str, str] = {}
    properties = data.get('additionalProperty') or []
    if isinstance(properties, dict):
        properties = [properties]
    for prop in properties:
        if isinstance(prop, dict) and prop.get('name') and prop.get('value') is not None:
            specs[collapse_whitespace(str(prop['name']))] = collapse_whitespace(str(prop['value']))
    return specs

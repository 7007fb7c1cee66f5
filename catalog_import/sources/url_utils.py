"""
Listing URL helpers.

Product id extraction, allow-listing with SSRF protection, and
canonical URL normalization.
"""

import ipaddress
import re
from typing import Iterable, Optional
from urllib.parse import parse_qs, urlparse

DEFAULT_ALLOWED_DOMAINS = (
    'aliexpress.com',
    'www.aliexpress.com',
    'm.aliexpress.com',
    'aliexpress.us',
    'www.aliexpress.us',
)

CANONICAL_LISTING_URL = 'https://www.aliexpress.com/item/{product_id}.html'

_BLOCKED_HOSTNAMES = frozenset({'localhost', 'localhost.localdomain', 'ip6-localhost'})

_PATH_PATTERNS = (
    re.compile(r'/item/(\d+)\.html'),
    re.compile(r'/item/(\d+)'),
    re.compile(r'/product/(\d+)\.html'),
    re.compile(r'/product/(\d+)'),
)


def extract_product_id(url: str) -> Optional[str]:
    """
    Extract the marketplace product id from a listing URL.

    Recognized forms: /item/<id>.html, /item/<id>, ?productId=<id>,
    /product/<id>.html, /product/<id>.

    Returns:
        Product id string, or None if the URL has none
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    for pattern in _PATH_PATTERNS[:2]:
        match = pattern.search(parsed.path)
        if match:
            return match.group(1)

    product_id = parse_qs(parsed.query).get('productId')
    if product_id and product_id[0]:
        return product_id[0]

    for pattern in _PATH_PATTERNS[2:]:
        match = pattern.search(parsed.path)
        if match:
            return match.group(1)

    return None


def is_blocked_host(hostname: str) -> bool:
    """
    True for hosts a server-side fetch must never reach.

    Raw IP addresses are always blocked, as are localhost names.
    """
    host = (hostname or '').strip('[]').lower()
    if not host or host in _BLOCKED_HOSTNAMES or host.endswith('.localhost'):
        return True
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_valid_listing_url(url: str, allowed_domains: Optional[Iterable[str]] = None) -> bool:
    """
    Check that a URL is an importable listing URL.

    The host must be on the allow-list, must not be an IP address or a
    local name, and the URL must carry a product id.
    """
    if not url:
        return False
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return False

    if parsed.scheme not in ('http', 'https') or not hostname:
        return False
    if is_blocked_host(hostname):
        return False

    domains = {d.lower() for d in (allowed_domains or DEFAULT_ALLOWED_DOMAINS)}
    if hostname.lower() not in domains:
        return False

    return extract_product_id(url) is not None


def normalize_listing_url(url: str) -> Optional[str]:
    """Canonical listing URL for the product id in url, or None."""
    product_id = extract_product_id(url)
    if not product_id:
        return None
    return CANONICAL_LISTING_URL.format(product_id=product_id)

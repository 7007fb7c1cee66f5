"""
Identifier generation: URL slugs and SKUs.

Both are deterministic functions of their inputs so re-running an import
of the same listing produces the same identifiers.
"""

import re
import unicodedata
from typing import List, Optional, Sequence

from ..common.text_utils import short_hash
from ..models import SourceVariant

SKU_PREFIX = 'KP'
ROOT_VARIANT_CODE = '00'
VARIANT_CODE_LENGTH = 2
SLUG_MAX_PREFIX = 80
SLUG_SUFFIX_LENGTH = 8
SLUG_FALLBACK = 'product'


def slugify(text: str, max_length: int = SLUG_MAX_PREFIX) -> str:
    """
    Reduce text to lowercase ASCII letters, digits and single hyphens.

    Example:
        >>> slugify("Bébé Romper: Pink & White!")
        'bebe-romper-pink-white'
    """
    ascii_text = unicodedata.normalize('NFKD', text or '').encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^a-z0-9]+', '-', ascii_text.lower())
    slug = re.sub(r'-{2,}', '-', slug).strip('-')
    if len(slug) > max_length:
        slug = slug[:max_length].rstrip('-')
    return slug


def generate_slug(name: str, source_product_id: str) -> str:
    """
    Generate a URL slug with a suffix derived from the source product id.

    Two listings with the same cleaned name still get distinct slugs.

    Example:
        >>> generate_slug("Baby Romper", "1005001")
        'baby-romper-3f1c...'
    """
    prefix = slugify(name) or SLUG_FALLBACK
    suffix = short_hash(str(source_product_id), SLUG_SUFFIX_LENGTH)
    return f"{prefix}-{suffix}"


def variant_basis(variant: SourceVariant) -> str:
    """
    Order-independent identity of a variant's attributes.

    Sorted key=value pairs, lower-cased; attribute-less variants fall back
    to their sku_id.
    """
    if variant.attributes:
        return '|'.join(
            f"{str(k).strip().lower()}={str(v).strip().lower()}"
            for k, v in sorted(variant.attributes.items(), key=lambda kv: str(kv[0]).lower())
        )
    return str(variant.sku_id)


def variant_code(variant: SourceVariant, attempt: int = 0, length: int = VARIANT_CODE_LENGTH) -> str:
    """
    Upper-case hex characters identifying a variant within a product.

    attempt > 0 re-hashes with a counter; used to step past collisions.
    """
    basis = variant_basis(variant)
    if attempt:
        basis = f"{basis}#{attempt}"
    return short_hash(basis, length).upper()


def assign_variant_codes(variants: Sequence[SourceVariant]) -> List[str]:
    """
    Give every variant of a product a distinct code, never the root code.

    Variants are visited in (basis, sku_id) order and a colliding variant
    is re-hashed with an increasing counter, so the same set of variants
    always receives the same codes regardless of listing order. Products
    with more variants than two hex characters can hold get four.

    Returns:
        Codes aligned with `variants`
    """
    length = VARIANT_CODE_LENGTH if len(variants) < 16 ** VARIANT_CODE_LENGTH else 4
    order = sorted(
        range(len(variants)),
        key=lambda i: (variant_basis(variants[i]), str(variants[i].sku_id)),
    )

    used = {ROOT_VARIANT_CODE}
    codes: List[Optional[str]] = [None] * len(variants)
    for i in order:
        attempt = 0
        code = variant_code(variants[i], attempt, length)
        while code in used:
            attempt += 1
            code = variant_code(variants[i], attempt, length)
        used.add(code)
        codes[i] = code
    return codes


def generate_sku(source_product_id: str, variant: Optional[SourceVariant] = None,
                 code: Optional[str] = None) -> str:
    """
    Generate a SKU of the form KP-{HASH6}-{CODE}.

    CODE is 00 for the product itself. Pass `code` from
    assign_variant_codes() when mapping all variants of a product.
    """
    product_hash = short_hash(str(source_product_id), 6).upper()
    if code is None:
        code = variant_code(variant) if variant is not None else ROOT_VARIANT_CODE
    return f"{SKU_PREFIX}-{product_hash}-{code}"

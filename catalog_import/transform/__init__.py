"""
Listing to catalog product transformation.

Modules:
    transformer - ProductTransformer (title, description, variants, tags, SEO)
    identifiers - deterministic slugs and SKUs
    variants    - size and color normalization
"""

from .identifiers import assign_variant_codes, generate_sku, generate_slug, slugify, variant_code
from .transformer import ProductTransformer
from .variants import normalize_size, split_color

__all__ = [
    'ProductTransformer',
    'assign_variant_codes',
    'generate_sku',
    'generate_slug',
    'slugify',
    'variant_code',
    'normalize_size',
    'split_color',
]

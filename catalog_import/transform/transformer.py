"""
Product Transformer

Turns a raw marketplace listing into a catalog-ready product:
clean title, slug, structured description, SKUs, priced variants,
tags and SEO copy.

Every step degrades to a fallback value instead of raising; only
programmer errors (no listing) and bad pricing configuration escape.
"""

from __future__ import annotations

import logging
import re
import textwrap
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from ..common.config_loader import (
    load_brand_suffix_patterns,
    load_promotional_terms,
    load_seo_settings,
    load_size_map,
)
from ..common.text_utils import (
    collapse_whitespace,
    remove_source_references,
    short_hash,
    split_sentences,
    strip_markup,
    to_title_case,
    truncate_at_word,
)
from ..models import (
    CategoryPricingConfig,
    DescriptionBlock,
    SourceListing,
    SourceVariant,
    TransformedProduct,
    TransformedVariant,
    VariantMapping,
)
from ..pricing import PriceCalculator
from .identifiers import assign_variant_codes, generate_sku, generate_slug
from .variants import extract_attributes, variant_display_name

logger = logging.getLogger(__name__)

MAX_PARAGRAPH_LENGTH = 500
DEFAULT_VARIANT_STOCK = 999
MIN_SHORT_SENTENCE_LENGTH = 20

_DISALLOWED_TITLE_CHARS = re.compile(r"[^\w\s\-',.&+]")
_TAG_KEYS = ('material', 'style', 'pattern', 'season')


class ProductTransformer:
    """
    Transforms SourceListing records into TransformedProduct records.

    Usage:
        transformer = ProductTransformer(PriceCalculator())
        product = transformer.transform(listing, pricing_config, "cat-onesies")
    """

    def __init__(
        self,
        price_calculator: Optional[PriceCalculator] = None,
        promotional_terms: Optional[List[str]] = None,
        brand_suffix_patterns: Optional[List[str]] = None,
        size_map: Optional[Dict[str, str]] = None,
        seo_settings: Optional[Dict] = None,
    ):
        """
        Initialize the transformer.

        Args:
            price_calculator: Calculator used for variant and compare-at prices
            promotional_terms: Terms stripped from titles (default: config file)
            brand_suffix_patterns: Regexes stripped from titles (default: config file)
            size_map: Size normalization table (default: config file)
            seo_settings: Store name, limits and copy (default: config file)
        """
        self.price_calculator = price_calculator or PriceCalculator()

        terms = promotional_terms if promotional_terms is not None else load_promotional_terms()
        self.promotional_terms = sorted({t.lower() for t in terms if t}, key=len, reverse=True)
        self._promo_patterns = [
            re.compile(rf'\b{re.escape(term)}\b', re.IGNORECASE) for term in self.promotional_terms
        ]
        self._promo_words = [t for t in self.promotional_terms if ' ' not in t]

        patterns = brand_suffix_patterns if brand_suffix_patterns is not None \
            else load_brand_suffix_patterns()
        self._brand_patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

        self.size_map = size_map if size_map is not None else load_size_map()

        settings = seo_settings if seo_settings is not None else load_seo_settings()
        self.store_name = settings.get('store_name', 'Baby Petite')
        self.title_max_length = int(settings.get('title_max_length', 100))
        self.seo_title_max_length = int(settings.get('seo_title_max_length', 60))
        self.seo_description_max_length = int(settings.get('seo_description_max_length', 160))
        self.short_description_max_length = int(settings.get('short_description_max_length', 150))
        self.call_to_action = settings.get('call_to_action', 'Shop now at {store_name}.')
        self.short_description_fallback = settings.get(
            'short_description_fallback', 'Discover our {name}, perfect for your little one.'
        )
        self.description_placeholder = settings.get(
            'description_placeholder', 'No description available.'
        )
        self.title_placeholder = settings.get('title_placeholder', 'Untitled Product')
        self.tag_keys = tuple(settings.get('tag_specification_keys', _TAG_KEYS))
        self.max_tags = int(settings.get('max_tags', 10))
        self.min_keyword_length = int(settings.get('min_keyword_length', 4))

    # ------------------------------------------------------------------
    # Whole-listing transform
    # ------------------------------------------------------------------

    def transform(
        self,
        listing: SourceListing,
        pricing_config: CategoryPricingConfig,
        category_id: str,
    ) -> TransformedProduct:
        """
        Transform a listing into a catalog product.

        Args:
            listing: Raw marketplace listing
            pricing_config: Pricing rules of the target category
            category_id: Target category

        Returns:
            TransformedProduct

        Raises:
            TypeError: If listing is None
            InvalidConfiguration: If the pricing configuration is out of range
        """
        if listing is None:
            raise TypeError("transform() requires a SourceListing, got None")

        name = self.transform_title(listing.title, self.title_max_length)
        slug = self.generate_slug(name, listing.product_id)

        source_domain = _source_domain(listing.source_url)
        description_text = listing.description
        if source_domain:
            description_text = remove_source_references(strip_markup(description_text), source_domain)
        description = self.transform_description(description_text)
        short_description = self.generate_short_description(description, name)

        base_price = self.price_calculator.retail_price(listing.price, pricing_config)
        compare_at = self.price_calculator.compare_at_price(
            base_price, rounding_increment=pricing_config.rounding_increment
        )

        variants, mapping = self.map_variants(
            listing.variants, listing.product_id, listing.price, pricing_config
        )

        product = TransformedProduct(
            name=name,
            slug=slug,
            sku=self.generate_sku(listing.product_id),
            category_id=category_id,
            base_price=base_price,
            cost_price=listing.price,
            description=description,
            short_description=short_description,
            compare_at_price=compare_at,
            currency=listing.currency,
            tags=self.generate_tags(listing.specifications, name),
            seo_title=self.generate_seo_title(name),
            seo_description=self.generate_seo_description(short_description),
            variants=variants,
            variant_mapping=mapping,
            original_image_urls=list(listing.images),
            source_product_id=listing.product_id,
            source_url=listing.source_url,
            supplier_id=listing.seller_id,
            supplier_name=listing.seller_name,
        )

        logger.debug(
            "Transformed %s -> %s (%d variants, base %s)",
            listing.product_id, slug, len(variants), base_price,
        )
        return product

    # ------------------------------------------------------------------
    # Title
    # ------------------------------------------------------------------

    def transform_title(self, title: str, max_length: int = 100) -> str:
        """
        Clean a marketplace title for display.

        Example:
            >>> transformer.transform_title("HOT SALE baby romper FREE SHIPPING")
            'Baby Romper'
        """
        text = title or ''

        for pattern in self._promo_patterns:
            text = pattern.sub(' ', text)
        for pattern in self._brand_patterns:
            text = pattern.sub(' ', text)

        text = _DISALLOWED_TITLE_CHARS.sub(' ', text)
        text = collapse_whitespace(text)
        # Leftover separators from removed fragments
        text = text.strip(" -,.&+'")

        if not re.search(r'[^\W_]', text):
            return self.title_placeholder

        text = to_title_case(text)
        return truncate_at_word(text, max_length)

    def generate_slug(self, name: str, source_product_id: str) -> str:
        return generate_slug(name, source_product_id)

    def generate_sku(self, source_product_id: str, variant: Optional[SourceVariant] = None) -> str:
        return generate_sku(source_product_id, variant)

    # ------------------------------------------------------------------
    # Description
    # ------------------------------------------------------------------

    def transform_description(self, text: str) -> List[DescriptionBlock]:
        """
        Convert HTML or plain text into description blocks.

        Paragraphs come from blank lines (or closing </p> tags). A paragraph
        longer than 500 characters is regrouped on sentence boundaries.
        """
        plain = strip_markup(text or '')
        raw_paragraphs = re.split(r'\n\s*\n', plain)

        paragraphs: List[str] = []
        for raw in raw_paragraphs:
            paragraph = collapse_whitespace(raw)
            if paragraph:
                paragraphs.extend(_split_long_paragraph(paragraph, MAX_PARAGRAPH_LENGTH))

        if not paragraphs:
            paragraphs = [self.description_placeholder]

        return [
            DescriptionBlock(key=short_hash(f"{index}:{paragraph}", 12), text=paragraph)
            for index, paragraph in enumerate(paragraphs)
        ]

    def generate_short_description(self, description, name: str) -> str:
        """
        First sentence longer than 20 characters, capped for listing cards.

        Args:
            description: Description blocks or plain text
            name: Product name used in the fallback copy
        """
        if isinstance(description, str):
            text = collapse_whitespace(strip_markup(description))
        else:
            text = ' '.join(
                block.text for block in (description or [])
                if block.text != self.description_placeholder
            )

        for sentence in split_sentences(text):
            sentence = sentence.strip()
            if len(sentence) > MIN_SHORT_SENTENCE_LENGTH:
                return truncate_at_word(sentence, self.short_description_max_length)

        fallback = self.short_description_fallback.format(name=name)
        return truncate_at_word(fallback, self.short_description_max_length)

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    def map_variants(
        self,
        variants: Iterable[SourceVariant],
        product_id: str,
        base_cost,
        pricing_config: CategoryPricingConfig,
    ) -> Tuple[List[TransformedVariant], List[VariantMapping]]:
        """
        Map marketplace variants to catalog variants.

        Returns:
            Tuple of (variants, variant_mapping). A listing without variants
            gets a single "Default" variant and no mapping.
        """
        variants = list(variants or [])
        calculator = self.price_calculator
        increment = pricing_config.rounding_increment

        if not variants:
            price = calculator.retail_price(base_cost, pricing_config)
            default = TransformedVariant(
                sku=generate_sku(product_id),
                name='Default',
                size='One Size',
                price=price,
                stock=DEFAULT_VARIANT_STOCK,
                compare_at_price=calculator.compare_at_price(price, rounding_increment=increment),
            )
            return [default], []

        transformed: List[TransformedVariant] = []
        mapping: List[VariantMapping] = []

        codes = assign_variant_codes(variants)
        for variant, code in zip(variants, codes):
            sku = generate_sku(product_id, code=code)
            attributes = extract_attributes(variant, self.size_map)
            price = calculator.variant_price(base_cost, variant.price, pricing_config)

            transformed.append(TransformedVariant(
                sku=sku,
                name=variant_display_name(variant, self.size_map),
                size=attributes['size'],
                color=attributes['color'],
                color_code=attributes['color_code'],
                price=price,
                compare_at_price=calculator.compare_at_price(price, rounding_increment=increment),
                source_sku_id=variant.sku_id,
                stock=variant.stock if variant.stock is not None else 0,
                image_url=variant.image,
            ))
            mapping.append(VariantMapping(
                local_sku=sku,
                source_sku_id=variant.sku_id,
                source_variant_name=variant.name,
            ))

        return transformed, mapping

    # ------------------------------------------------------------------
    # Tags and SEO
    # ------------------------------------------------------------------

    def generate_tags(self, specifications: Dict[str, str], title: str) -> List[str]:
        """
        Tags from material/style/pattern/season specifications plus title keywords.

        Deduplicated, insertion-ordered, capped at max_tags.
        """
        tags: Dict[str, None] = {}

        for key, value in (specifications or {}).items():
            lower_key = str(key).lower()
            value = collapse_whitespace(str(value)).lower()
            if value and any(tag_key in lower_key for tag_key in self.tag_keys):
                tags[value] = None

        title = title or ''
        for pattern in self._promo_patterns:
            title = pattern.sub(' ', title)

        for word in title.lower().split():
            word = word.strip(".,;:!?()[]{}\"'")
            if len(word) < self.min_keyword_length:
                continue
            if any(promo in word for promo in self._promo_words):
                continue
            tags[word] = None

        return list(tags)[:self.max_tags]

    def generate_seo_title(self, name: str) -> str:
        suffix = f" | {self.store_name}"
        limit = self.seo_title_max_length - len(suffix)
        return truncate_at_word(name, limit) + suffix

    def generate_seo_description(self, short_description: str) -> str:
        suffix = ' ' + self.call_to_action.format(store_name=self.store_name)
        limit = self.seo_description_max_length - len(suffix)
        return truncate_at_word(short_description.strip(), limit) + suffix


def _split_long_paragraph(paragraph: str, limit: int) -> List[str]:
    """Regroup a paragraph into chunks of at most `limit` characters."""
    if len(paragraph) <= limit:
        return [paragraph]

    chunks: List[str] = []
    current = ''
    for sentence in split_sentences(paragraph):
        sentence = sentence.strip()
        if len(sentence) > limit:
            if current:
                chunks.append(current)
                current = ''
            chunks.extend(textwrap.wrap(sentence, width=limit, break_long_words=True))
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > limit:
            chunks.append(current)
            current = sentence
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def _source_domain(url: str) -> str:
    """Registered-looking host of a URL without the www. prefix."""
    host = (urlparse(url or '').hostname or '').lower()
    if host.startswith('www.'):
        host = host[4:]
    return host

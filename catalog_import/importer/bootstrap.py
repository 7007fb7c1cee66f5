"""
Orchestrator wiring.

Builds a fully wired ImportOrchestrator from environment variables and
the YAML settings under config/.

Environment:
    CONTENT_STORE_URL      Content store API root
    CONTENT_STORE_TOKEN    Content store write token
    CONTENT_STORE_DATASET  Dataset name (default: production)
    DATABASE_URL           SQLAlchemy database URL
"""

import logging
import os
from typing import Mapping, Optional

from ..common.config_loader import load_image_settings, load_pricing_defaults
from ..images import ImageProcessingOptions, ImageProcessor
from ..pricing import PriceCalculator
from ..sources import JsonLdListingFetcher, StockValidator
from ..stores import ContentStoreClient
from ..stores.relational import CatalogRepository
from ..transform import ProductTransformer
from .orchestrator import ImportOrchestrator

logger = logging.getLogger(__name__)

REQUIRED_ENV = ("CONTENT_STORE_URL", "CONTENT_STORE_TOKEN", "DATABASE_URL")


def build_orchestrator(env: Optional[Mapping[str, str]] = None) -> ImportOrchestrator:
    """
    Wire an orchestrator with the HTTP content store and SQL repository.

    Args:
        env: Environment mapping (default: os.environ)

    Raises:
        ValueError: If a required variable is missing
    """
    env = os.environ if env is None else env
    missing = [name for name in REQUIRED_ENV if not env.get(name)]
    if missing:
        raise ValueError(f"Missing environment variables: {', '.join(missing)}")

    pricing_defaults = load_pricing_defaults()
    image_settings = load_image_settings()

    calculator = PriceCalculator(
        compare_at_markup_percent=pricing_defaults.get("compare_at_markup_percent", 20),
        low_price_warning=pricing_defaults.get("low_price_warning", "5.00"),
        high_price_warning=pricing_defaults.get("high_price_warning", "200.00"),
        low_markup_warning=pricing_defaults.get("low_markup_warning", "2.0"),
    )

    content_store = ContentStoreClient(
        base_url=env["CONTENT_STORE_URL"],
        token=env["CONTENT_STORE_TOKEN"],
        dataset=env.get("CONTENT_STORE_DATASET") or "production",
    )
    repository = CatalogRepository.from_url(env["DATABASE_URL"], pricing_defaults=pricing_defaults)

    options = ImageProcessingOptions.from_settings(image_settings)
    image_processor = ImageProcessor(content_store, options)

    logger.debug("Orchestrator wired (dataset %s, image concurrency %d)",
                 content_store.dataset, options.concurrency)

    return ImportOrchestrator(
        fetcher=JsonLdListingFetcher(timeout=options.request_timeout),
        stock_validator=StockValidator(),
        transformer=ProductTransformer(calculator),
        price_calculator=calculator,
        image_processor=image_processor,
        content_store=content_store,
        repository=repository,
        thin_margin_percentage=pricing_defaults.get("thin_margin_percentage", 30),
        min_images_warning=int(image_settings.get("min_images_warning", 1)),
    )

"""Shared test fixtures."""

import threading
import time
from io import BytesIO
from pathlib import Path

import pytest
import requests
from PIL import Image

from catalog_import.common.errors import ContentStoreWriteError
from catalog_import.images import ImageProcessingOptions, ImageProcessor
from catalog_import.importer import ImportOrchestrator
from catalog_import.models import (
    CategoryPricingConfig,
    SourceListing,
    SourceVariant,
    UploadedAsset,
)
from catalog_import.pricing import PriceCalculator
from catalog_import.sources import ListingFetcher, StockValidator
from catalog_import.stores import STATUS_PUBLISHED, ContentStore
from catalog_import.stores.relational import CatalogRepository
from catalog_import.transform import ProductTransformer

FIXTURES_DIR = Path(__file__).parent / "fixtures"

LISTING_URL = "https://www.aliexpress.com/item/1005001234567890.html"

PRICING_DEFAULTS = {
    "markup_factor": "2.5",
    "shipping_buffer": "3.00",
    "platform_fee": "0.05",
    "rounding_increment": "0.99",
}


def make_image_bytes(width=800, height=600, mode="RGB", fmt="PNG"):
    """Encode a solid-color image of the given size."""
    color = (200, 120, 90, 128) if mode == "RGBA" else (200, 120, 90)
    img = Image.new(mode, (width, height), color)
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


class FakeResponse:
    """Just enough of requests.Response for the image and fetch paths."""

    def __init__(self, content=b"", status_code=200, text="", headers=None):
        self.content = content
        self.status_code = status_code
        self.text = text
        self.headers = dict(headers or {})
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def close(self):
        self.closed = True


class FakeImageSession:
    """
    Thread-safe stand-in for requests.Session serving image bytes.

    failures maps a URL to an HTTP status code or an exception instance.
    Tracks the highest number of concurrent get() calls.
    """

    def __init__(self, payload, delay=0.0):
        self.headers = {}
        self.payload = payload
        self.delay = delay
        self.failures = {}
        self.response_headers = {}
        self.requested = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def get(self, url, timeout=None, headers=None, stream=False):
        with self._lock:
            self.requested.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            failure = self.failures.get(url)
            if isinstance(failure, Exception):
                raise failure
            if isinstance(failure, int):
                return FakeResponse(b"", status_code=failure)
            return FakeResponse(self.payload, status_code=206 if headers else 200,
                                headers=self.response_headers)
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self):
        pass


class FakeContentStore(ContentStore):
    """In-memory content store that can be told to fail each write."""

    def __init__(self):
        self.documents = {}
        self.assets = {}
        self.deleted = []
        self.status_calls = []
        self.fail_create = False
        self.fail_delete = False
        self.fail_publish = False
        self.fail_status = False
        self._counter = 0
        self._lock = threading.Lock()

    def create_document(self, document):
        if self.fail_create:
            raise ContentStoreWriteError("Content store rejected document create")
        with self._lock:
            self._counter += 1
            doc_id = document.get("_id") or f"product-{self._counter}"
        self.documents[doc_id] = dict(document)
        return doc_id

    def set_status(self, document_id, status):
        self.status_calls.append((document_id, status))
        if status == STATUS_PUBLISHED and self.fail_publish:
            raise ContentStoreWriteError("Could not set document status to published")
        if status != STATUS_PUBLISHED and self.fail_status:
            raise ContentStoreWriteError(f"Could not set document status to {status}")
        self.documents[document_id]["status"] = status

    def delete_document(self, document_id):
        if self.fail_delete:
            raise ContentStoreWriteError("Could not delete content document")
        del self.documents[document_id]
        self.deleted.append(document_id)

    def upload_asset(self, data, filename, content_type):
        with self._lock:
            self._counter += 1
            asset_id = f"image-{self._counter}"
        self.assets[asset_id] = {"filename": filename, "content_type": content_type, "size": len(data)}
        return UploadedAsset(asset_id=asset_id, url=f"https://cdn.example.test/{filename}")


class FakeFetcher(ListingFetcher):
    """Returns a fixed listing, or raises a fixed error."""

    def __init__(self, listing=None, error=None):
        self.listing = listing
        self.error = error
        self.fetched = []

    def fetch(self, url):
        self.fetched.append(url)
        if self.error is not None:
            raise self.error
        return self.listing


@pytest.fixture
def fixtures_dir():
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def listing_page_html():
    """Load the listing page HTML fixture."""
    return (FIXTURES_DIR / "listing_page.html").read_text(encoding="utf-8")


@pytest.fixture
def pricing_config():
    """Category pricing: 2.5x markup, $3 buffer, 5% fee, .99 endings."""
    return CategoryPricingConfig(
        category_id="cat-onesies",
        category_name="Onesies",
        markup_factor="2.5",
        shipping_buffer="3.00",
        platform_fee="0.05",
        rounding_increment="0.99",
    )


@pytest.fixture
def calculator():
    return PriceCalculator()


@pytest.fixture
def transformer(calculator):
    """Transformer backed by the repo's config files."""
    return ProductTransformer(calculator)


@pytest.fixture
def sample_variants():
    """Two in-stock variants with color and size attributes."""
    return (
        SourceVariant(
            sku_id="12000001",
            name="Pink 3-6 months",
            attributes={"Color": "Pink #ffc0cb", "Size": "3-6 months"},
            price="10.00",
            stock=50,
            image="https://ae01.alicdn.com/kf/pink.jpg",
        ),
        SourceVariant(
            sku_id="12000002",
            name="White 6-12 months",
            attributes={"Color": "White", "Size": "6-12 months"},
            price="11.00",
            stock=30,
        ),
    )


@pytest.fixture
def sample_listing(sample_variants):
    """A fully populated listing that imports without warnings."""
    return SourceListing(
        product_id="1005001234567890",
        title="HOT SALE Baby Girl Romper Cotton Summer Jumpsuit FREE SHIPPING",
        source_url=LISTING_URL,
        price="10.00",
        description=(
            "<p>Soft cotton romper for babies, breathable and gentle on skin.</p>"
            "<p>Machine washable. Visit aliexpress.com for more.</p>"
        ),
        images=(
            "https://ae01.alicdn.com/kf/main.jpg",
            "https://ae01.alicdn.com/kf/side.jpg",
            "https://ae01.alicdn.com/kf/back.jpg",
        ),
        variants=sample_variants,
        specifications={"Material": "Cotton", "Season": "Summer", "Closure Type": "Button"},
        seller_id="store-1101",
        seller_name="Happy Baby Store",
        store_url="https://www.aliexpress.com/store/1101",
        seller_rating=4.8,
    )


@pytest.fixture
def image_bytes():
    return make_image_bytes()


@pytest.fixture
def image_session(image_bytes):
    return FakeImageSession(image_bytes)


@pytest.fixture
def content_store():
    return FakeContentStore()


@pytest.fixture
def image_processor(content_store, image_session):
    return ImageProcessor(content_store, ImageProcessingOptions(concurrency=3), session=image_session)


@pytest.fixture
def repository():
    """In-memory relational store with the cat-onesies category."""
    repo = CatalogRepository.from_url("sqlite:///:memory:", pricing_defaults=PRICING_DEFAULTS)
    repo.create_tables()
    repo.upsert_category("cat-onesies", "Onesies")
    yield repo
    repo.close()


@pytest.fixture
def fetcher(sample_listing):
    return FakeFetcher(sample_listing)


@pytest.fixture
def orchestrator(fetcher, transformer, calculator, image_processor, content_store, repository):
    """Orchestrator wired to in-memory fakes and an in-memory database."""
    return ImportOrchestrator(
        fetcher=fetcher,
        stock_validator=StockValidator(),
        transformer=transformer,
        price_calculator=calculator,
        image_processor=image_processor,
        content_store=content_store,
        repository=repository,
    )


@pytest.fixture
def make_session():
    """Factory for FakeImageSession(payload, delay=...)."""
    return FakeImageSession


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    return make_image_bytes

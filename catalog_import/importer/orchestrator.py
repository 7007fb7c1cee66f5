"""
Import Orchestrator

Runs one listing import through its stages:

1. Fetch the listing
2. Validate stock
3. Price and transform (category pricing from the relational store)
4. Process images
5. Create the content document (status: pending)
6. Record supplier, source and product rows (one relational transaction)
7. Publish the content document

The content store and relational store share no transaction. If the
relational write fails after the document exists, the document is
deleted again; if that delete fails too, it is marked orphaned and
reported in the result.
"""

import dataclasses
import logging
from decimal import InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from ..common.errors import (
    CatalogImportError,
    ContentStoreWriteError,
    InvalidConfiguration,
    OutOfStockError,
)
from ..images import ImageProcessor
from ..models import (
    CategoryPricingConfig,
    ProcessedImage,
    SourceListing,
    TransformedProduct,
    to_decimal,
)
from ..pricing import PriceCalculator
from ..sources import ListingFetcher, StockValidationResult, StockValidator
from ..stores import STATUS_ORPHANED, STATUS_PENDING, ContentStore, build_product_document
from ..stores.relational import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PROCESSING,
    CatalogRepository,
    SupplierInfo,
)
from ..transform import ProductTransformer
from .results import ImportPreview, ImportRequest, ImportResult, ImportStatus

logger = logging.getLogger(__name__)

StepCallback = Callable[[str, int], None]

# Stage name -> job progress (percent) once the stage has started
STAGES = {
    "fetch": 10,
    "stock": 20,
    "transform": 35,
    "images": 50,
    "content": 75,
    "relational": 85,
    "publish": 95,
}

# Fields an operator may override on the transformed product
OVERRIDABLE_FIELDS = frozenset({
    "name", "slug", "short_description", "base_price", "compare_at_price",
    "tags", "seo_title", "seo_description", "category_id",
})
_MONEY_FIELDS = ("base_price", "compare_at_price")

UNKNOWN_SUPPLIER = "unknown-supplier"


class ImportOrchestrator:
    """
    Imports marketplace listings into the catalog.

    All collaborators are passed in; nothing is looked up globally.

    Usage:
        orchestrator = ImportOrchestrator(
            fetcher, StockValidator(), transformer, calculator,
            image_processor, content_store, repository,
        )
        result = orchestrator.import_listing(ImportRequest(url, "cat-onesies"))
    """

    def __init__(
        self,
        fetcher: ListingFetcher,
        stock_validator: StockValidator,
        transformer: ProductTransformer,
        price_calculator: PriceCalculator,
        image_processor: Optional[ImageProcessor],
        content_store: ContentStore,
        repository: CatalogRepository,
        thin_margin_percentage=30,
        min_images_warning: int = 1,
    ):
        """
        Initialize the orchestrator.

        Args:
            fetcher: Listing fetcher
            stock_validator: Availability checks
            transformer: Listing -> product transformation
            price_calculator: Margin and price validation
            image_processor: Image pipeline (None disables images)
            content_store: Document and asset store
            repository: Relational store
            thin_margin_percentage: Margins below this finish with a warning
            min_images_warning: Fewer processed images than this finish with a warning
        """
        self.fetcher = fetcher
        self.stock_validator = stock_validator
        self.transformer = transformer
        self.price_calculator = price_calculator
        self.image_processor = image_processor
        self.content_store = content_store
        self.repository = repository
        self.thin_margin_percentage = to_decimal(thin_margin_percentage)
        self.min_images_warning = min_images_warning

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    def import_listing(self, request: ImportRequest,
                       on_step: Optional[StepCallback] = None) -> ImportResult:
        """
        Import one listing.

        Never raises for pipeline failures: every typed error becomes a
        FAILED result with its code and details.

        Args:
            request: What to import
            on_step: Called as on_step(stage_name, progress_percent) at each stage

        Returns:
            ImportResult
        """
        warnings: List[str] = []
        content_doc_id = None
        slug = None

        def step(name: str) -> None:
            logger.info("[%s] %s", name, request.url)
            if on_step:
                on_step(name, STAGES[name])

        try:
            step("fetch")
            listing = self.fetcher.fetch(request.url)

            step("stock")
            stock = self._check_stock(listing)
            if stock.has_partial_stock:
                warnings.append(f"Partial stock: {stock.message}")

            step("transform")
            pricing = self.repository.get_category_pricing(request.category_id)
            product = self.transformer.transform(listing, pricing, request.category_id)
            product = self._apply_overrides(product, request.overrides)
            slug = product.slug
            warnings.extend(self._check_prices(product, pricing))

            step("images")
            images = self._process_images(listing, request.process_images, warnings)

            step("content")
            document = build_product_document(product, images, status=STATUS_PENDING)
            content_doc_id = self.content_store.create_document(document)

            step("relational")
            record = self._record(product, listing, content_doc_id, stock)
            if not record.product_created:
                warnings.append(
                    f"Product with slug '{product.slug}' already exists; "
                    f"product, variant and inventory rows were skipped"
                )

            step("publish")
            try:
                self.content_store.publish(content_doc_id)
            except ContentStoreWriteError as e:
                logger.error("Could not publish %s: %s", content_doc_id, e)
                warnings.append(f"Content document {content_doc_id} left pending: {e.message}")

        except _CompensatedFailure as failure:
            return self._failed(failure.error, slug, warnings,
                                orphaned_content_doc_id=failure.orphaned_doc_id)
        except CatalogImportError as e:
            return self._failed(e, slug, warnings)

        status = ImportStatus.SUCCEEDED_WITH_WARNINGS if warnings else ImportStatus.SUCCEEDED
        logger.info("Imported %s as %s (%s, %d warnings)",
                    listing.product_id, slug, status.value, len(warnings))
        return ImportResult(
            success=True,
            status=status,
            content_doc_id=content_doc_id,
            slug=slug,
            source_record_id=record.source_record_id,
            warnings=warnings,
        )

    def _check_stock(self, listing: SourceListing) -> StockValidationResult:
        stock = self.stock_validator.validate(listing)
        if not stock.is_valid:
            raise OutOfStockError(stock.message, {
                "source_product_id": listing.product_id,
                "out_of_stock_variants": list(stock.out_of_stock_variants),
            })
        return stock

    def _apply_overrides(self, product: TransformedProduct,
                         overrides: Optional[Dict[str, Any]]) -> TransformedProduct:
        if not overrides:
            return product

        unknown = set(overrides) - OVERRIDABLE_FIELDS
        if unknown:
            raise InvalidConfiguration(
                f"Fields cannot be overridden: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        values = dict(overrides)
        for name in _MONEY_FIELDS:
            if values.get(name) is None:
                continue
            try:
                values[name] = to_decimal(values[name])
            except (InvalidOperation, TypeError, ValueError):
                raise InvalidConfiguration(
                    f"Override {name} is not a valid amount: {values[name]!r}",
                    {"field": name, "value": str(values[name])},
                ) from None
            if not values[name].is_finite():
                raise InvalidConfiguration(
                    f"Override {name} is not a finite amount: {values[name]}",
                    {"field": name, "value": str(values[name])},
                )

        for name in ("name", "slug", "category_id"):
            if name in values and not (isinstance(values[name], str) and values[name].strip()):
                raise InvalidConfiguration(
                    f"Override {name} must be a non-empty string", {"field": name}
                )
        if "tags" in values:
            if not isinstance(values["tags"], (list, tuple)):
                raise InvalidConfiguration("Override tags must be a list", {"field": "tags"})
            values["tags"] = [str(tag) for tag in values["tags"]]
        return dataclasses.replace(product, **values)

    def _check_prices(self, product: TransformedProduct,
                      pricing: CategoryPricingConfig) -> List[str]:
        """
        Validate product and variant prices; return warnings.

        Raises:
            InvalidConfiguration: If any price is negative or outside category limits
        """
        prices = [("base price", product.base_price)]
        prices.extend((f"variant {v.sku}", v.price) for v in product.variants)

        warnings: List[str] = []
        for label, price in prices:
            check = self.price_calculator.validate(price, pricing)
            if not check.is_valid:
                raise InvalidConfiguration(
                    f"Invalid {label}: {'; '.join(check.errors)}",
                    {
                        "price": str(price),
                        "adjusted_price": str(check.adjusted_price) if check.adjusted_price is not None else None,
                    },
                )
            if label == "base price":
                warnings.extend(check.warnings)

        margin = self.price_calculator.margin(product.cost_price, product.base_price)
        if margin.margin_percentage < self.thin_margin_percentage:
            warnings.append(
                f"Thin margin: {margin.margin_percentage}% "
                f"(below {self.thin_margin_percentage}%) - consider adjusting category markup"
            )
        return warnings

    def _process_images(self, listing: SourceListing, enabled: bool,
                        warnings: List[str]) -> List[ProcessedImage]:
        if not enabled or self.image_processor is None:
            logger.info("Image processing disabled for %s", listing.product_id)
            return []

        if not listing.images:
            warnings.append("No images found for this product")
            return []

        batch = self.image_processor.process_batch(listing.images, listing.product_id)
        for failure in batch.failures:
            warnings.append(failure.to_error().message)
        if len(batch.images) < self.min_images_warning:
            warnings.append(
                f"Only {len(batch.images)} of {batch.requested} images could be processed"
            )
        return batch.images

    def _record(self, product: TransformedProduct, listing: SourceListing,
                content_doc_id: str, stock: StockValidationResult):
        supplier = SupplierInfo(
            external_id=listing.seller_id or UNKNOWN_SUPPLIER,
            name=listing.seller_name or listing.seller_id or UNKNOWN_SUPPLIER,
            store_url=listing.store_url or None,
            rating=listing.seller_rating,
        )
        try:
            return self.repository.record_import(
                product,
                content_doc_id,
                supplier,
                inventory_status=self.stock_validator.inventory_status(stock),
            )
        except CatalogImportError as e:
            orphaned = self._compensate(content_doc_id)
            raise _CompensatedFailure(e, orphaned) from e

    def _compensate(self, content_doc_id: str) -> Optional[str]:
        """
        Undo the content document after a failed relational write.

        Returns:
            The document id if it could not be deleted (left orphaned), else None
        """
        try:
            self.content_store.delete_document(content_doc_id)
            logger.info("Rolled back content document %s", content_doc_id)
            return None
        except ContentStoreWriteError as e:
            logger.error("Compensating delete of %s failed: %s", content_doc_id, e)

        try:
            self.content_store.set_status(content_doc_id, STATUS_ORPHANED)
        except ContentStoreWriteError as e:
            logger.error("Could not mark %s orphaned: %s", content_doc_id, e)
        return content_doc_id

    def _failed(self, error: CatalogImportError, slug: Optional[str], warnings: List[str],
                orphaned_content_doc_id: Optional[str] = None) -> ImportResult:
        details = dict(error.details)
        if orphaned_content_doc_id:
            details["orphaned_content_doc_id"] = orphaned_content_doc_id
        logger.warning("Import failed (%s): %s", error.code, error.message)
        return ImportResult(
            success=False,
            status=ImportStatus.FAILED,
            slug=slug,
            error=error.message,
            error_code=error.code,
            error_details=details,
            warnings=warnings,
            orphaned_content_doc_id=orphaned_content_doc_id,
        )

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview_listing(self, url: str, category_id: str,
                        check_images: bool = False) -> ImportPreview:
        """
        Run fetch, stock and transform without writing anything.

        Args:
            url: Listing URL
            category_id: Target category
            check_images: Look up the primary image's dimensions

        Returns:
            ImportPreview

        Raises:
            FetchError: If the listing cannot be fetched
            InvalidConfiguration: If the category or its pricing is invalid
        """
        listing = self.fetcher.fetch(url)
        stock = self.stock_validator.validate(listing)
        pricing = self.repository.get_category_pricing(category_id)
        product = self.transformer.transform(listing, pricing, category_id)
        margin = self.price_calculator.margin(product.cost_price, product.base_price)

        warnings: List[str] = []
        if stock.is_completely_out_of_stock:
            warnings.append("Product is completely out of stock and cannot be imported")
        elif not stock.is_valid:
            warnings.append(f"Stock check would reject this product: {stock.message}")
        elif stock.has_partial_stock:
            warnings.append("Some variants are out of stock")
        if not listing.images:
            warnings.append("No images found for this product")
        if not listing.variants:
            warnings.append("No variants found - a default variant will be created")
        if margin.margin_percentage < self.thin_margin_percentage:
            warnings.append("Low profit margin - consider adjusting category markup")
        warnings.extend(self.price_calculator.validate(product.base_price, pricing).warnings)

        dimensions = None
        if check_images and listing.images and self.image_processor is not None:
            dimensions = self.image_processor.get_dimensions(listing.images[0])
            if dimensions is None:
                warnings.append("Primary image could not be read")

        return ImportPreview(
            listing=listing,
            product=product,
            pricing=pricing,
            stock_status={
                "is_available": not stock.is_completely_out_of_stock,
                "is_valid": stock.is_valid,
                "total_stock": stock.total_available_stock,
                "has_variants": bool(listing.variants),
                "out_of_stock_variants": len(stock.out_of_stock_variants),
                "inventory_status": self.stock_validator.inventory_status(stock),
                "health_score": self.stock_validator.health_score(stock),
                "message": stock.message,
            },
            price_breakdown={
                "cost_price": product.cost_price,
                "retail_price": product.base_price,
                "compare_at_price": product.compare_at_price or product.base_price,
                "margin": margin.margin,
                "margin_percentage": margin.margin_percentage,
            },
            warnings=warnings,
            primary_image_dimensions=dimensions,
        )

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def run_job(self, job_id: str, request: ImportRequest) -> ImportResult:
        """
        Run an import while recording progress on an ImportJob row.

        Status goes processing -> completed (result stored) or failed
        (error stored).
        """
        self.repository.update_job(job_id, status=JOB_PROCESSING, progress=0,
                                   current_step="starting")

        def on_step(name: str, progress: int) -> None:
            self.repository.update_job(job_id, progress=progress, current_step=name)

        result = self.import_listing(request, on_step=on_step)

        if result.success:
            self.repository.update_job(job_id, status=JOB_COMPLETED, progress=100,
                                       current_step="done", result=result.to_dict())
        else:
            self.repository.update_job(job_id, status=JOB_FAILED, current_step="failed",
                                       result=result.to_dict(), error=result.error)
        return result

    def submit_job(self, request: ImportRequest) -> str:
        """Create a pending job for a request and return its id."""
        return self.repository.create_job(request.to_dict())


class _CompensatedFailure(Exception):
    """Relational failure after which the content document was rolled back."""

    def __init__(self, error: CatalogImportError, orphaned_doc_id: Optional[str]):
        super().__init__(error.message)
        self.error = error
        self.orphaned_doc_id = orphaned_doc_id

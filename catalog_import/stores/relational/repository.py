"""
Catalog Repository

Relational store access for the import pipeline: category pricing,
the transactional import write, and import job records.

Handles:
- Session management (one transaction per unit of work)
- Duplicate import detection (unique source product id)
- Mapping database errors to RelationalWriteError
"""

import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ...common.config_loader import load_pricing_defaults
from ...common.errors import DuplicateImportError, InvalidConfiguration, RelationalWriteError
from ...models import CategoryPricingConfig, TransformedProduct
from .models import (
    Base,
    Category,
    ImportJob,
    Inventory,
    Product,
    ProductSource,
    Supplier,
    Variant,
    utcnow,
)

logger = logging.getLogger(__name__)

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

_PRICING_FIELDS = ("markup_factor", "shipping_buffer", "platform_fee", "rounding_increment")


@dataclass
class SupplierInfo:
    """Supplier fields taken from a listing."""
    external_id: str
    name: str
    store_url: Optional[str] = None
    rating: Optional[float] = None


@dataclass
class ImportRecord:
    """What the import transaction wrote."""
    source_record_id: int
    supplier_id: int
    product_id: Optional[int] = None
    product_created: bool = False
    variants_created: int = 0


class CatalogRepository:
    """
    Relational store for imported catalog entries.

    Usage:
        repo = CatalogRepository.from_url("postgresql+psycopg://...")
        config = repo.get_category_pricing("cat-onesies")
        record = repo.record_import(product, content_doc_id, supplier, "AVAILABLE")
    """

    def __init__(self, engine: Engine, pricing_defaults: Optional[Dict[str, Any]] = None):
        """
        Initialize the repository.

        Args:
            engine: SQLAlchemy engine
            pricing_defaults: Fallbacks for unset category pricing columns
                (default: config/pricing_defaults.yaml)
        """
        self.engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        self.pricing_defaults = pricing_defaults if pricing_defaults is not None \
            else load_pricing_defaults()

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False, **kwargs) -> "CatalogRepository":
        """Create a repository for a database URL (in-memory SQLite supported)."""
        engine_kwargs: Dict[str, Any] = {"echo": echo}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection so every session sees the same in-memory database
            engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
        elif not database_url.startswith("sqlite"):
            engine_kwargs.update(pool_pre_ping=True)
        return cls(create_engine(database_url, **engine_kwargs), **kwargs)

    def create_tables(self) -> None:
        """Create all tables (development and tests)."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        Base.metadata.drop_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Transactional session: commit on success, rollback on any error.

        Usage:
            with repo.session_scope() as session:
                session.add(row)
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def upsert_category(self, category_id: str, name: str, **pricing) -> None:
        """Create or update a category and its pricing columns."""
        with self.session_scope() as session:
            category = session.get(Category, category_id)
            if category is None:
                category = Category(id=category_id, name=name)
                session.add(category)
            category.name = name
            for key, value in pricing.items():
                if not hasattr(Category, key):
                    raise ValueError(f"Unknown category column: {key}")
                setattr(category, key, Decimal(str(value)) if value is not None else None)

    def get_category_pricing(self, category_id: str) -> CategoryPricingConfig:
        """
        Load the pricing rules of a category.

        Unset pricing columns fall back to pricing defaults.

        Raises:
            InvalidConfiguration: If the category does not exist
        """
        with self.session_scope() as session:
            category = session.get(Category, category_id)
            if category is None:
                raise InvalidConfiguration(
                    f"Category not found: {category_id}",
                    {"category_id": category_id},
                )

            values = {}
            for name in _PRICING_FIELDS:
                value = getattr(category, name)
                if value is None:
                    value = self.pricing_defaults.get(name)
                if value is not None:
                    values[name] = value

            return CategoryPricingConfig(
                category_id=category.id,
                category_name=category.name,
                min_price=category.min_price,
                max_price=category.max_price,
                **values,
            )

    # ------------------------------------------------------------------
    # Import write
    # ------------------------------------------------------------------

    def product_exists_by_slug(self, slug: str) -> bool:
        with self.session_scope() as session:
            return session.scalar(select(Product.id).where(Product.slug == slug)) is not None

    def source_exists(self, source_product_id: str) -> bool:
        with self.session_scope() as session:
            row = session.scalar(
                select(ProductSource.id).where(ProductSource.source_product_id == source_product_id)
            )
            return row is not None

    def get_source(self, source_product_id: str) -> Optional[ProductSource]:
        with self.session_scope() as session:
            return session.scalar(
                select(ProductSource).where(ProductSource.source_product_id == source_product_id)
            )

    def get_product(self, slug: str) -> Optional[Product]:
        """Product with its variants and inventory loaded, or None."""
        with self.session_scope() as session:
            product = session.scalar(select(Product).where(Product.slug == slug))
            if product is not None:
                for variant in product.variants:
                    _ = variant.inventory
            return product

    def record_import(
        self,
        product: TransformedProduct,
        content_doc_id: str,
        supplier: SupplierInfo,
        inventory_status: str = "AVAILABLE",
    ) -> ImportRecord:
        """
        Write supplier, source record and product rows in one transaction.

        The product (with variants and inventory) is only created when no
        product with the same slug exists; product_created reports which.

        Raises:
            DuplicateImportError: If the listing was already imported
            RelationalWriteError: On any other database failure
        """
        try:
            with self.session_scope() as session:
                if session.scalar(
                    select(ProductSource.id).where(
                        ProductSource.source_product_id == product.source_product_id
                    )
                ) is not None:
                    raise DuplicateImportError(
                        f"Listing {product.source_product_id} was already imported",
                        {"source_product_id": product.source_product_id},
                    )

                supplier_row = self._upsert_supplier(session, supplier)

                source = ProductSource(
                    content_doc_id=content_doc_id,
                    product_slug=product.slug,
                    source_product_id=product.source_product_id,
                    source_url=product.source_url,
                    supplier_id=supplier_row.id,
                    original_price=product.cost_price,
                    original_currency=product.currency,
                    category_id=product.category_id,
                    original_image_urls=list(product.original_image_urls),
                    variant_mapping=[asdict(m) for m in product.variant_mapping],
                    last_synced_at=utcnow(),
                    source_status="ACTIVE",
                    inventory_status=inventory_status,
                )
                session.add(source)
                session.flush()

                record = ImportRecord(source_record_id=source.id, supplier_id=supplier_row.id)

                existing = session.scalar(select(Product.id).where(Product.slug == product.slug))
                if existing is None:
                    row = self._create_product(session, product, content_doc_id)
                    session.flush()
                    record.product_id = row.id
                    record.product_created = True
                    record.variants_created = len(row.variants)
                else:
                    record.product_id = existing
                    logger.warning("Product with slug %s already exists; rows not recreated",
                                   product.slug)

            logger.info("Recorded import of %s (source record %d)",
                        product.source_product_id, record.source_record_id)
            return record

        except IntegrityError as e:
            # Lost a race with a concurrent import of the same listing
            if self.source_exists(product.source_product_id):
                raise DuplicateImportError(
                    f"Listing {product.source_product_id} was already imported",
                    {"source_product_id": product.source_product_id},
                ) from e
            raise RelationalWriteError(
                f"Integrity error while recording import: {e.orig}",
                {"source_product_id": product.source_product_id},
            ) from e
        except SQLAlchemyError as e:
            raise RelationalWriteError(
                f"Database error while recording import: {e}",
                {"source_product_id": product.source_product_id},
            ) from e

    def _upsert_supplier(self, session: Session, info: SupplierInfo) -> Supplier:
        supplier = session.scalar(select(Supplier).where(Supplier.external_id == info.external_id))
        if supplier is None:
            supplier = Supplier(
                external_id=info.external_id,
                name=info.name or info.external_id,
                store_url=info.store_url,
                rating=info.rating,
                total_orders=0,
                status="ACTIVE",
            )
            session.add(supplier)
        else:
            supplier.name = info.name or supplier.name
            supplier.store_url = info.store_url or supplier.store_url
            if info.rating is not None:
                supplier.rating = info.rating
        session.flush()
        return supplier

    def _create_product(self, session: Session, product: TransformedProduct,
                        content_doc_id: str) -> Product:
        row = Product(
            name=product.name,
            slug=product.slug,
            description=product.short_description,
            base_price=product.base_price,
            compare_at_price=product.compare_at_price,
            cost_price=product.cost_price,
            sku=product.sku,
            category_id=product.category_id,
            tags=list(product.tags),
            source_product_id=product.source_product_id,
            content_doc_id=content_doc_id,
            is_active=True,
            is_new=True,
        )
        for variant in product.variants:
            v = Variant(
                name=variant.name,
                size=variant.size,
                color=variant.color,
                color_code=variant.color_code,
                price=variant.price,
                compare_at_price=variant.compare_at_price,
                sku=variant.sku,
                source_sku_id=variant.source_sku_id or None,
                is_active=True,
            )
            v.inventory = Inventory(
                quantity=variant.stock,
                reserved_quantity=0,
                available=variant.stock,
            )
            row.variants.append(v)
        session.add(row)
        return row

    # ------------------------------------------------------------------
    # Import jobs
    # ------------------------------------------------------------------

    def create_job(self, request: Optional[Dict[str, Any]] = None) -> str:
        with self.session_scope() as session:
            job = ImportJob(status=JOB_PENDING, progress=0, request=request)
            session.add(job)
            session.flush()
            return job.job_id

    def update_job(self, job_id: str, **fields) -> None:
        """
        Update job fields (status, progress, current_step, result, error).

        Raises:
            KeyError: If the job does not exist
        """
        with self.session_scope() as session:
            job = session.get(ImportJob, job_id)
            if job is None:
                raise KeyError(f"Import job not found: {job_id}")
            for key, value in fields.items():
                if key not in ("status", "progress", "current_step", "result", "error"):
                    raise ValueError(f"Unknown job field: {key}")
                setattr(job, key, value)
            if "progress" in fields:
                job.progress = max(0, min(100, int(fields["progress"])))

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self.session_scope() as session:
            job = session.get(ImportJob, job_id)
            return job.to_dict() if job else None

    def cleanup_old_jobs(self, max_age: timedelta = timedelta(hours=24)) -> int:
        """Delete finished jobs older than max_age. Returns the number deleted."""
        cutoff = utcnow() - max_age
        with self.session_scope() as session:
            result = session.execute(
                delete(ImportJob).where(
                    ImportJob.created_at < cutoff,
                    ImportJob.status.in_((JOB_COMPLETED, JOB_FAILED)),
                )
            )
            deleted = result.rowcount or 0
        if deleted:
            logger.info("Cleaned up %d old import jobs", deleted)
        return deleted

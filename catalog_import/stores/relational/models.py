"""SQLAlchemy ORM models.

Models represent database tables:
- categories: category pricing rules
- suppliers: marketplace sellers, keyed by their external id
- products / variants / inventory: sellable catalog rows
- product_sources: link from a content document to its marketplace listing
- import_jobs: progress records for background imports
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

Money = Numeric(10, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class Category(Base):
    """Category with optional pricing overrides (unset columns use defaults)."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))

    markup_factor: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 3))
    shipping_buffer: Mapped[Optional[Decimal]] = mapped_column(Money)
    platform_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 4))
    rounding_increment: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 2))
    min_price: Mapped[Optional[Decimal]] = mapped_column(Money)
    max_price: Mapped[Optional[Decimal]] = mapped_column(Money)

    def __repr__(self) -> str:
        return f"<Category {self.id} ({self.name})>"


class Supplier(Base):
    """Marketplace seller."""

    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    store_url: Mapped[Optional[str]] = mapped_column(Text)
    rating: Mapped[Optional[float]] = mapped_column()
    total_orders: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE")  # ACTIVE|INACTIVE|SUSPENDED

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Supplier {self.external_id} ({self.status})>"


class Product(Base):
    """Sellable product row mirrored from the content document."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    base_price: Mapped[Decimal] = mapped_column(Money)
    compare_at_price: Mapped[Optional[Decimal]] = mapped_column(Money)
    cost_price: Mapped[Decimal] = mapped_column(Money)
    sku: Mapped[str] = mapped_column(String(50), unique=True)
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id"), index=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)

    # Duplicate guard alongside product_sources.source_product_id
    source_product_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    content_doc_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)

    is_active: Mapped[bool] = mapped_column(default=True)
    is_new: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    variants: Mapped[List["Variant"]] = relationship(
        back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product {self.slug}>"


class Variant(Base):
    __tablename__ = "variants"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    size: Mapped[str] = mapped_column(String(50))
    color: Mapped[Optional[str]] = mapped_column(String(100))
    color_code: Mapped[Optional[str]] = mapped_column(String(7))
    price: Mapped[Decimal] = mapped_column(Money)
    compare_at_price: Mapped[Optional[Decimal]] = mapped_column(Money)
    sku: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    source_sku_id: Mapped[Optional[str]] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(default=True)

    product: Mapped[Product] = relationship(back_populates="variants")
    inventory: Mapped[Optional["Inventory"]] = relationship(
        back_populates="variant", cascade="all, delete-orphan", uselist=False
    )


class Inventory(Base):
    __tablename__ = "inventory"

    id: Mapped[int] = mapped_column(primary_key=True)
    variant_id: Mapped[int] = mapped_column(ForeignKey("variants.id"), unique=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, default=0)
    available: Mapped[int] = mapped_column(Integer, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=10)
    reorder_point: Mapped[int] = mapped_column(Integer, default=20)
    reorder_quantity: Mapped[int] = mapped_column(Integer, default=50)

    variant: Mapped[Variant] = relationship(back_populates="inventory")


class ProductSource(Base):
    """Where an imported product came from, and the content document it backs."""

    __tablename__ = "product_sources"

    id: Mapped[int] = mapped_column(primary_key=True)
    content_doc_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    product_slug: Mapped[str] = mapped_column(String(200), index=True)

    # Unique: two concurrent imports of one listing cannot both commit
    source_product_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    source_url: Mapped[str] = mapped_column(Text)

    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), index=True)
    original_price: Mapped[Decimal] = mapped_column(Money)
    original_currency: Mapped[str] = mapped_column(String(3), default="USD")
    category_id: Mapped[str] = mapped_column(String(64))
    original_image_urls: Mapped[List[str]] = mapped_column(JSON, default=list)
    variant_mapping: Mapped[List[dict]] = mapped_column(JSON, default=list)

    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    source_status: Mapped[str] = mapped_column(String(20), default="ACTIVE")
    inventory_status: Mapped[str] = mapped_column(String(20), default="AVAILABLE")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    supplier: Mapped[Supplier] = relationship()

    def __repr__(self) -> str:
        return f"<ProductSource {self.source_product_id} -> {self.content_doc_id}>"


class ImportJob(Base):
    """Background import progress record."""

    __tablename__ = "import_jobs"

    job_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    current_step: Mapped[Optional[str]] = mapped_column(String(100))
    request: Mapped[Optional[dict]] = mapped_column(JSON)
    result: Mapped[Optional[dict]] = mapped_column(JSON)
    error: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "progress": self.progress,
            "current_step": self.current_step,
            "request": self.request,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

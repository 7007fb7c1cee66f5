"""
Relational store (SQLAlchemy).

Modules:
    models     - ORM tables
    repository - CatalogRepository (pricing lookup, import write, jobs)
"""

from .models import (
    Base,
    Category,
    ImportJob,
    Inventory,
    Product,
    ProductSource,
    Supplier,
    Variant,
)
from .repository import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    CatalogRepository,
    ImportRecord,
    SupplierInfo,
)

__all__ = [
    'Base',
    'Category',
    'ImportJob',
    'Inventory',
    'Product',
    'ProductSource',
    'Supplier',
    'Variant',
    'CatalogRepository',
    'ImportRecord',
    'SupplierInfo',
    'JOB_PENDING',
    'JOB_PROCESSING',
    'JOB_COMPLETED',
    'JOB_FAILED',
]

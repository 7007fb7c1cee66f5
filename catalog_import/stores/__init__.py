"""
Persistence: content store (documents + assets) and relational store.

Modules:
    content_store - ContentStore interface and HTTP ContentStoreClient
    documents     - product document builder
    relational    - SQLAlchemy models and CatalogRepository
"""

from .content_store import (
    STATUS_ORPHANED,
    STATUS_PENDING,
    STATUS_PUBLISHED,
    ContentStore,
    ContentStoreClient,
)
from .documents import build_product_document

__all__ = [
    'ContentStore',
    'ContentStoreClient',
    'STATUS_PENDING',
    'STATUS_PUBLISHED',
    'STATUS_ORPHANED',
    'build_product_document',
]

"""
Import Errors

Exception hierarchy for the import pipeline. Every error carries a stable
``code`` and optional ``details`` so commit results can report an
operator-actionable reason instead of a stack trace.
"""

from typing import Any, Dict, Optional


class CatalogImportError(Exception):
    """Base class for all pipeline errors."""

    code = "IMPORT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": dict(self.details),
        }


class FetchError(CatalogImportError):
    """Listing could not be fetched or parsed (network or marketplace side)."""

    code = "FETCH_FAILED"


class OutOfStockError(CatalogImportError):
    """Listing has no sellable stock. An expected outcome, not a fault."""

    code = "OUT_OF_STOCK"


class InvalidConfiguration(CatalogImportError):
    """Pricing configuration (or a pricing argument) would produce bad data."""

    code = "INVALID_CONFIGURATION"


class ImagePartialFailure(CatalogImportError):
    """
    One image in a batch failed.

    Never raised out of a batch; collected per item and surfaced as warnings.
    """

    code = "IMAGE_FAILED"


class AssetUploadError(CatalogImportError):
    """Image asset store rejected an upload."""

    code = "ASSET_UPLOAD_FAILED"


class ContentStoreWriteError(CatalogImportError):
    """Content store document write failed."""

    code = "CONTENT_STORE_WRITE_FAILED"


class RelationalWriteError(CatalogImportError):
    """Relational store write failed after the content document was created."""

    code = "RELATIONAL_WRITE_FAILED"


class DuplicateImportError(RelationalWriteError):
    """The source listing is already linked to a catalog product."""

    code = "DUPLICATE_IMPORT"

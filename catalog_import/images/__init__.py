"""
Image download, re-encode and upload.

Modules:
    processor - ImageProcessor (bounded thread pool over Pillow)
"""

from .processor import (
    AssetStore,
    ImageBatchResult,
    ImageFailure,
    ImageProcessingOptions,
    ImageProcessor,
    asset_filename,
)

__all__ = [
    'AssetStore',
    'ImageBatchResult',
    'ImageFailure',
    'ImageProcessingOptions',
    'ImageProcessor',
    'asset_filename',
]

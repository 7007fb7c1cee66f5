# Common utilities
from .config_loader import (
    load_brand_suffix_patterns,
    load_config,
    load_image_settings,
    load_pricing_defaults,
    load_promotional_terms,
    load_seo_settings,
    load_size_map,
)
from .errors import (
    AssetUploadError,
    CatalogImportError,
    ContentStoreWriteError,
    DuplicateImportError,
    FetchError,
    ImagePartialFailure,
    InvalidConfiguration,
    OutOfStockError,
    RelationalWriteError,
)
from .log_config import setup_logging
from .text_utils import (
    collapse_whitespace,
    remove_source_references,
    short_hash,
    split_sentences,
    strip_markup,
    to_title_case,
    truncate_at_word,
)

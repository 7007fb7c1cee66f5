"""
Catalog Import Pipeline

Turns third-party marketplace listings into priced, media-complete
catalog entries.

Modules:
    models    - Data models (SourceListing, TransformedProduct, ProcessedImage)
    common    - Shared utilities (config loader, logging, text helpers, errors)
    pricing   - Retail price, margin and compare-at calculation
    transform - Listing to catalog product transformation
    images    - Concurrent image download / re-encode / upload
    sources   - Listing fetchers, URL helpers, stock validation
    stores    - Content store client and relational repository
    importer  - Import orchestration (commit, preview, jobs)
"""

#!/usr/bin/env python3
"""
Import a marketplace listing into the catalog.

Reads content store and database settings from .env (or the
environment), then imports or previews one listing.

Usage:
    python3 scripts/import_listing.py --url https://www.aliexpress.com/item/1005001.html --category cat-onesies
    python3 scripts/import_listing.py --url ... --category cat-onesies --preview --check-images
    python3 scripts/import_listing.py --url ... --category cat-onesies --override name="Cozy Romper" --json
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from catalog_import.common.errors import CatalogImportError
from catalog_import.common.log_config import setup_logging
from catalog_import.importer import ImportRequest, build_orchestrator
from catalog_import.sources import is_valid_listing_url, normalize_listing_url

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger("catalog_import.scripts.import_listing")


def parse_overrides(pairs):
    """Parse KEY=VALUE pairs; tags take a comma-separated list."""
    overrides = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"Override must be KEY=VALUE, got: {pair}")
        key, value = pair.split("=", 1)
        key = key.strip()
        if key == "tags":
            overrides[key] = [t.strip() for t in value.split(",") if t.strip()]
        else:
            overrides[key] = value.strip()
    return overrides


def print_preview(preview) -> None:
    product = preview.product
    prices = preview.price_breakdown
    stock = preview.stock_status

    print("\n" + "=" * 60)
    print("IMPORT PREVIEW")
    print("=" * 60)
    print(f"  Name:           {product.name}")
    print(f"  Slug:           {product.slug}")
    print(f"  SKU:            {product.sku}")
    print(f"  Category:       {preview.pricing.category_name or preview.pricing.category_id}")
    print(f"  Variants:       {len(product.variants)}")
    print(f"  Images:         {len(product.original_image_urls)}")
    if preview.primary_image_dimensions:
        width, height = preview.primary_image_dimensions
        print(f"  Primary image:  {width}x{height}")
    print("\n  Pricing:")
    print(f"     Cost:        ${prices['cost_price']}")
    print(f"     Retail:      ${prices['retail_price']}")
    print(f"     Compare-at:  ${prices['compare_at_price']}")
    print(f"     Margin:      ${prices['margin']} ({prices['margin_percentage']}%)")
    print("\n  Stock:")
    print(f"     {stock['message']}")
    print(f"     Status: {stock['inventory_status']}, health {stock['health_score']}/100")
    if preview.warnings:
        print("\n  Warnings:")
        for warning in preview.warnings:
            print(f"     - {warning}")
    print("=" * 60)


def print_result(result) -> None:
    print("\n" + "=" * 60)
    print(f"IMPORT {result.status.value}")
    print("=" * 60)
    if result.success:
        print(f"  Content doc:    {result.content_doc_id}")
        print(f"  Slug:           {result.slug}")
        print(f"  Source record:  {result.source_record_id}")
    else:
        print(f"  Error:          {result.error}")
        print(f"  Code:           {result.error_code}")
        if result.orphaned_content_doc_id:
            print(f"  Orphaned doc:   {result.orphaned_content_doc_id} (clean up manually)")
    if result.warnings:
        print("\n  Warnings:")
        for warning in result.warnings:
            print(f"     - {warning}")
    print("=" * 60)


def main():
    parser = argparse.ArgumentParser(
        description="Import a marketplace listing into the catalog"
    )
    parser.add_argument(
        "--url", "-u",
        required=True,
        help="Listing URL"
    )
    parser.add_argument(
        "--category", "-c",
        required=True,
        help="Target category id"
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Show the transformed product and pricing without writing anything"
    )
    parser.add_argument(
        "--check-images",
        action="store_true",
        help="In preview mode, check the primary image dimensions"
    )
    parser.add_argument(
        "--no-images",
        action="store_true",
        help="Skip image processing"
    )
    parser.add_argument(
        "--override",
        action="append",
        metavar="KEY=VALUE",
        help="Override a product field (repeatable), e.g. --override name=\"Cozy Romper\""
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create database tables before importing (development)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress info messages, show only warnings and errors"
    )
    parser.add_argument(
        "--sql-echo",
        action="store_true",
        help="Log SQL statements sent to the database"
    )

    args = parser.parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet, sql_echo=args.sql_echo)

    url = args.url
    if is_valid_listing_url(url):
        url = normalize_listing_url(url)
    else:
        logger.warning("URL is not a recognized listing URL, fetching as-is: %s", url)

    try:
        overrides = parse_overrides(args.override)
        orchestrator = build_orchestrator()
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(1)

    if args.create_tables:
        orchestrator.repository.create_tables()

    if args.preview:
        try:
            preview = orchestrator.preview_listing(url, args.category, check_images=args.check_images)
        except CatalogImportError as e:
            logger.error("Preview failed (%s): %s", e.code, e.message)
            if args.json:
                print(json.dumps(e.to_dict(), indent=2))
            sys.exit(1)

        if args.json:
            print(json.dumps(preview.to_dict(), indent=2, ensure_ascii=False))
        else:
            print_preview(preview)
        return

    request = ImportRequest(
        url=url,
        category_id=args.category,
        overrides=overrides or None,
        process_images=not args.no_images,
    )
    result = orchestrator.import_listing(request)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_result(result)

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()

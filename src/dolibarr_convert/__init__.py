"""
Catalog → Dolibarr conversion library.

This package provides modular building blocks for:
- Reading spreadsheets (xlsx, xls, csv) and vendor XML feeds
- Matching source headers to Dolibarr import fields
- Normalizing prices and texts, reconciling HT / TTC prices
- Emitting Dolibarr import workbooks, split into zipped pages when large
- Bulk reference / price edits and spreadsheet merges

Public API:
- io.read_table, io.write_workbook, io.parse_sheet_file
- mapping.auto_detect_mappings, mapping.update_mapping, mapping.get_missing_required_columns
- transform.transform_rows, transform.convert_to_dolibarr
- feed.parse_feed_xml, feed.convert_feed
- merge.merge_sheets, merge.generate_merge_output
- bulk_refs.*, bulk_prices.*
- registry.CONVERSIONS, registry.get_conversion
"""

from . import (  # re-export modules
    bulk_prices,
    bulk_refs,
    catalog,
    chunker,
    config,
    errors,
    feed,
    io,
    mapping,
    merge,
    normalize,
    operations,
    options,
    pricing,
    quality,
    registry,
    transform,
)

__all__ = [
    "bulk_prices",
    "bulk_refs",
    "catalog",
    "chunker",
    "config",
    "errors",
    "feed",
    "io",
    "mapping",
    "merge",
    "normalize",
    "operations",
    "options",
    "pricing",
    "quality",
    "registry",
    "transform",
]

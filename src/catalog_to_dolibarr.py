#!/usr/bin/env python3
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from dolibarr_convert.bulk_prices import (
    generate_prices_workbook,
    parse_prices_from_text,
    parse_prices_from_workbook,
    parse_prices_from_zip,
    text_pairs_to_rows,
)
from dolibarr_convert.bulk_refs import (
    generate_refs_workbook,
    modify_refs,
    parse_refs_from_text,
    parse_refs_from_workbook,
    parse_refs_from_zip,
)
from dolibarr_convert.catalog import find_field
from dolibarr_convert.config import Settings, load_settings
from dolibarr_convert.errors import ConversionError, InputError
from dolibarr_convert.feed import convert_feed, parse_feed_xml
from dolibarr_convert.io import parse_sheet_file, read_table
from dolibarr_convert.mapping import auto_detect_mappings, get_missing_required_columns, update_mapping
from dolibarr_convert.merge import ColumnPair, MergeOptions, generate_merge_output, merge_sheets
from dolibarr_convert.operations import TextOperationKind, build_text_operation
from dolibarr_convert.options import ConversionOptions, ConversionResult
from dolibarr_convert.pricing import PriceOperationKind, apply_to_prices, build_price_operation
from dolibarr_convert.registry import CONVERSIONS
from dolibarr_convert.transform import convert_to_dolibarr


log = logging.getLogger("catalog_to_dolibarr")


def load_env(dotenv_path: Optional[str]) -> None:
    if not dotenv_path:
        default_env = Path.cwd() / ".env"
        if default_env.exists():
            load_dotenv(default_env)
        return
    p = Path(dotenv_path)
    if p.exists():
        load_dotenv(p)


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")


# --------------------------------------------
# Shared argument groups
# --------------------------------------------

def add_ref_operation_args(p: argparse.ArgumentParser, required: bool = False) -> None:
    p.add_argument(
        "--ref-op",
        choices=[k.value for k in TextOperationKind],
        required=required,
        help="Operation applied to every reference",
    )
    p.add_argument("--ref-value", default="", help="Prefix, suffix, search text or regex pattern")
    p.add_argument("--ref-replace", default="", help="Replacement for find-replace / regex-replace ($1 for groups)")
    p.add_argument("--ref-flags", default="", help="Regex flags: any of i, m, s")


def add_price_operation_args(p: argparse.ArgumentParser, required: bool = False) -> None:
    p.add_argument(
        "--price-op",
        choices=[k.value for k in PriceOperationKind],
        required=required,
        help="Operation applied to the targeted price",
    )
    p.add_argument("--price-value", default="", help="Amount or percentage of the price operation")
    p.add_argument("--price-target", choices=["HT", "TTC"], default=os.getenv("PRICE_TARGET", "HT"), help="Price leg the operation applies to")


def add_product_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--tva-rate", type=float, default=None, help="VAT rate in percent (default from settings, 21.0)")
    p.add_argument("--price-base-type", choices=["HT", "TTC"], default=os.getenv("PRICE_BASE_TYPE", "HT"), help="Prices entered tax excluded (HT) or included (TTC)")
    p.add_argument("--product-type", type=int, choices=[0, 1], default=int(os.getenv("PRODUCT_TYPE", "0")), help="0 product, 1 service")
    p.add_argument("--not-for-sale", action="store_true", help="Mark products as not for sale")
    p.add_argument("--not-for-purchase", action="store_true", help="Mark products as not for purchase")


def build_ref_operation(parser: argparse.ArgumentParser, args: argparse.Namespace):
    if not args.ref_op:
        return None
    op = build_text_operation(args.ref_op, args.ref_value, args.ref_replace, args.ref_flags)
    if op is None:
        parser.error("invalid reference operation: check --ref-value and the regex")
    return op


def build_price_op(parser: argparse.ArgumentParser, args: argparse.Namespace):
    if not args.price_op:
        return None
    op = build_price_operation(args.price_op, args.price_value)
    if op is None:
        parser.error("invalid price operation: --price-value must be a non-negative number")
    return op


def build_options(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings, **extra) -> ConversionOptions:
    return ConversionOptions(
        tva_rate=args.tva_rate if args.tva_rate is not None else settings.default_tva_rate,
        price_base_type=args.price_base_type,
        product_type=args.product_type,
        to_sell=not args.not_for_sale,
        to_buy=not args.not_for_purchase,
        ref_operation=build_ref_operation(parser, args),
        price_operation=build_price_op(parser, args),
        price_target=args.price_target,
        **extra,
    )


def output_path(path: Path, is_archive: bool) -> Path:
    if is_archive and path.suffix.lower() != ".zip":
        return path.with_suffix(".zip")
    return path


def write_output(path: Path, data: bytes, is_archive: bool = False) -> Path:
    target = output_path(path, is_archive)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return target


def report(result: ConversionResult, target: Path) -> None:
    for w in result.warnings:
        log.info(w.message)
    pages = f" in {result.file_count} files" if result.is_archive else ""
    print(f"Wrote {result.total_rows} Dolibarr rows{pages} to {target} ({len(result.warnings)} warnings)")


# --------------------------------------------
# Subcommands
# --------------------------------------------

def cmd_feed(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    text = Path(args.input).read_bytes()
    products = parse_feed_xml(text)
    options = build_options(
        parser,
        args,
        settings,
        description_lang=args.lang,
        weight_source=args.weight_source,
        dimension_source_unit=args.dimension_unit,
        include_barcode=not args.no_barcode,
        include_weight=not args.no_weight,
        include_dimensions=args.dimensions,
        include_url=not args.no_url,
        include_price_min=not args.no_price_min,
    )
    result = convert_feed(products, options, settings)
    report(result, write_output(Path(args.output), result.data, result.is_archive))
    return 0


def parse_mapping_overrides(values: Sequence[str]) -> List[tuple]:
    out = []
    for raw in values:
        if "=" not in raw:
            raise InputError(f"Invalid --map value (expected 'Header=field'): {raw}")
        header, target = raw.rsplit("=", 1)
        out.append((header.strip(), target.strip() or None))
    return out


def cmd_excel(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    sheet = int(args.sheet) if args.sheet and args.sheet.isdigit() else (args.sheet or None)
    table = read_table(
        Path(args.input),
        sheet=sheet,
        header_row=args.header_row,
        scan_rows=settings.header_scan_rows,
    )
    mappings = auto_detect_mappings(table.headers)
    for header, target in parse_mapping_overrides(args.map or []):
        idx = table.column_index(header)
        if idx is None:
            raise InputError(f'Column "{header}" not found in sheet "{table.sheet_name}"')
        if target is not None and find_field(target) is None:
            raise InputError(f"Unknown Dolibarr field: {target}")
        mappings = update_mapping(mappings, idx, target)

    if args.show_mapping:
        for m in mappings:
            print(f"{m.source_index:>3}  {m.source_header:<40} -> {m.target_id or '-'}")
        return 0

    missing = get_missing_required_columns(mappings)
    if missing:
        raise InputError("Required columns are not mapped: " + ", ".join(f.label for f in missing))

    options = build_options(parser, args, settings)
    result = convert_to_dolibarr(table, mappings, options, settings)
    report(result, write_output(Path(args.output), result.data, result.is_archive))
    return 0


def cmd_refs(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    if args.text:
        refs = parse_refs_from_text(Path(args.text).read_text(encoding="utf-8"))
    elif args.input.lower().endswith(".zip"):
        refs = parse_refs_from_zip(Path(args.input).read_bytes())
    else:
        refs = parse_refs_from_workbook(Path(args.input))
    if not refs:
        raise InputError("No reference found in the input")
    results = modify_refs(refs, build_ref_operation(parser, args))
    target = write_output(Path(args.output), generate_refs_workbook(results, settings))
    changed = sum(1 for r in results if r.changed)
    print(f"Wrote {len(results)} references ({changed} modified) to {target}")
    return 0


def cmd_prices(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    if args.text:
        pairs = parse_prices_from_text(Path(args.text).read_text(encoding="utf-8"))
        rate = args.tva_rate if args.tva_rate is not None else settings.default_tva_rate
        rows = text_pairs_to_rows(pairs, args.price_target, rate)
    elif args.input.lower().endswith(".zip"):
        rows = parse_prices_from_zip(Path(args.input).read_bytes())
    else:
        rows = parse_prices_from_workbook(Path(args.input))
    if not rows:
        raise InputError("No price found in the input")
    results = apply_to_prices(rows, build_price_op(parser, args), args.price_target)
    target = write_output(Path(args.output), generate_prices_workbook(results, settings))
    changed = sum(1 for r in results if r.changed)
    print(f"Wrote {len(results)} prices ({changed} modified) to {target}")
    return 0


def resolve_column(headers: Sequence[str], column: str, what: str) -> int:
    if column.isdigit():
        idx = int(column)
        if idx < len(headers):
            return idx
    lower = column.strip().lower()
    for i, h in enumerate(headers):
        if h.strip().lower() == lower:
            return i
    raise InputError(f'{what} column "{column}" not found')


def cmd_merge(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    base = parse_sheet_file(Path(args.base))
    source = parse_sheet_file(Path(args.source))
    pairs = []
    for raw in args.pair or []:
        if "=" not in raw:
            raise InputError(f"Invalid --pair value (expected 'BaseColumn=SourceColumn'): {raw}")
        b, s = raw.split("=", 1)
        pairs.append(ColumnPair(resolve_column(base.headers, b, "Base"), resolve_column(source.headers, s, "Source")))
    if not pairs:
        parser.error("at least one --pair is required")
    options = MergeOptions(
        base_key_col=resolve_column(base.headers, args.base_key, "Base key"),
        source_key_col=resolve_column(source.headers, args.source_key, "Source key"),
        mappings=pairs,
    )
    result = merge_sheets(base, source, options)
    bundle = generate_merge_output(result, settings)
    target = write_output(Path(args.output), bundle.data, bundle.is_archive)
    for ref in result.unmatched_refs:
        log.info(f"Not found in source: {ref}")
    print(
        f"Wrote {result.total_rows} rows to {target} "
        f"(matched={result.matched_count} unmatched={result.unmatched_count})"
    )
    return 0


def cmd_list(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    for c in CONVERSIONS:
        print(f"{c.slug:<22} {c.source} -> {c.target}  {c.title}: {c.description}")
    return 0


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(description="Convert product catalogs into Dolibarr import workbooks.")
    p.add_argument("--env-file", default="", help="Path to .env file (optional)")
    p.add_argument("--settings", default=os.getenv("DOLIBARR_SETTINGS", ""), help="Path to a JSON settings file")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v for INFO, -vv for DEBUG)")
    sub = p.add_subparsers(dest="command", required=True)

    f = sub.add_parser("feed", help="Vendor XML feed (Valkenpower) -> Dolibarr")
    f.add_argument("--input", required=True, help="Path to the XML feed")
    f.add_argument("--output", required=True, help="Output .xlsx (becomes .zip when split)")
    f.add_argument("--lang", choices=["FR", "EN", "NL", "DE"], default=os.getenv("FEED_LANG", "FR"), help="Language of titles and descriptions")
    f.add_argument("--weight-source", choices=["product", "package"], default=os.getenv("FEED_WEIGHT_SOURCE", "package"))
    f.add_argument("--dimension-unit", choices=["mm", "cm", "m"], default=os.getenv("FEED_DIMENSION_UNIT", "mm"))
    f.add_argument("--no-barcode", action="store_true", default=not env_flag("FEED_INCLUDE_BARCODE", True))
    f.add_argument("--no-weight", action="store_true", default=not env_flag("FEED_INCLUDE_WEIGHT", True))
    f.add_argument("--dimensions", action="store_true", default=env_flag("FEED_INCLUDE_DIMENSIONS", False))
    f.add_argument("--no-url", action="store_true", default=not env_flag("FEED_INCLUDE_URL", True))
    f.add_argument("--no-price-min", action="store_true", default=not env_flag("FEED_INCLUDE_PRICE_MIN", True))
    add_product_args(f)
    add_ref_operation_args(f)
    add_price_operation_args(f)
    f.set_defaults(handler=cmd_feed)

    e = sub.add_parser("excel", help="Any spreadsheet -> Dolibarr")
    e.add_argument("--input", required=True, help="Path to .xlsx, .xls or .csv")
    e.add_argument("--output", default="produits.xlsx", help="Output .xlsx (becomes .zip when split)")
    e.add_argument("--sheet", default="", help="Sheet name or index (default: first sheet)")
    e.add_argument("--header-row", type=int, default=None, help="0-based header row (default: auto-detect)")
    e.add_argument("--map", action="append", help="Override a mapping: 'Source header=field_id' (empty field to unmap)")
    e.add_argument("--show-mapping", action="store_true", help="Print the detected mapping and exit")
    add_product_args(e)
    add_ref_operation_args(e)
    add_price_operation_args(e)
    e.set_defaults(handler=cmd_excel)

    r = sub.add_parser("refs", help="Bulk edit references")
    src = r.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="Workbook or zip of workbooks holding a reference column")
    src.add_argument("--text", help="Text file, one reference per line")
    r.add_argument("--output", default="modifications_refs.xlsx")
    add_ref_operation_args(r, required=True)
    r.set_defaults(handler=cmd_refs)

    pr = sub.add_parser("prices", help="Bulk edit prices")
    src = pr.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="Dolibarr workbook or zip of workbooks")
    src.add_argument("--text", help="Text file of 'REF<TAB>PRICE' lines")
    pr.add_argument("--output", default="modifications_prix.xlsx")
    pr.add_argument("--tva-rate", type=float, default=None, help="VAT rate for text input")
    add_price_operation_args(pr, required=True)
    pr.set_defaults(handler=cmd_prices)

    m = sub.add_parser("merge", help="Update a spreadsheet from another one, by reference")
    m.add_argument("--base", required=True, help="Workbook to update (.xlsx or .zip)")
    m.add_argument("--source", required=True, help="Workbook holding the new values")
    m.add_argument("--base-key", required=True, help="Reference column of the base (header or 0-based index)")
    m.add_argument("--source-key", required=True, help="Reference column of the source")
    m.add_argument("--pair", action="append", help="'BaseColumn=SourceColumn' to copy; repeatable")
    m.add_argument("--output", default="fusion.xlsx")
    m.set_defaults(handler=cmd_merge)

    ls = sub.add_parser("list", help="List the available conversions")
    ls.set_defaults(handler=cmd_list)
    return p, p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    # Load .env first so env-populated defaults see it
    env_only = argparse.ArgumentParser(add_help=False)
    env_only.add_argument("--env-file", default="")
    early_args, _ = env_only.parse_known_args(argv)
    load_env(early_args.env_file or None)

    parser, args = parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    try:
        settings = load_settings(Path(args.settings) if args.settings else None)
        return args.handler(parser, args, settings)
    except (ConversionError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

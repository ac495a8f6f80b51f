from __future__ import annotations
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .catalog import find_field
from .chunker import build_output
from .config import Settings
from .errors import FeedParseError
from .normalize import format_number, html_to_plain_text, parse_number
from .operations import apply_operation
from .options import ConversionOptions, ConversionResult
from .quality import DuplicateTracker, WarningCollector, WarningKind
from .transform import reconcile_prices


log = logging.getLogger(__name__)

WEIGHT_UNIT = "kg"


@dataclass(frozen=True)
class FeedProduct:
    model: str = ""
    barcode: str = ""
    title_nl: str = ""
    title_en: str = ""
    title_de: str = ""
    title_fr: str = ""
    price_ex_vat: str = ""
    price_in_vat: str = ""
    special_price_ex_vat: str = ""
    description_nl: str = ""
    description_en: str = ""
    description_de: str = ""
    description_fr: str = ""
    stock: str = ""
    main_image: str = ""
    prod_weight: float = 0.0
    prod_length: float = 0.0
    prod_width: float = 0.0
    prod_height: float = 0.0
    pack_weight: float = 0.0
    pack_length: float = 0.0
    pack_width: float = 0.0
    pack_height: float = 0.0


# XML tag -> FeedProduct attribute
_TEXT_TAGS = {
    "model": "model",
    "barcode": "barcode",
    "titleNL": "title_nl",
    "titleEN": "title_en",
    "titleDE": "title_de",
    "titleFR": "title_fr",
    "priceEXVAT": "price_ex_vat",
    "priceINVAT": "price_in_vat",
    "specialpriceEXVAT": "special_price_ex_vat",
    "descriptionNL": "description_nl",
    "descriptionEN": "description_en",
    "descriptionDE": "description_de",
    "descriptionFR": "description_fr",
    "stock": "stock",
    "mainimage": "main_image",
}

_NUMBER_TAGS = {
    "ProdWeight": "prod_weight",
    "ProdLength": "prod_length",
    "ProdWidth": "prod_width",
    "ProdHeight": "prod_height",
    "PackWeight": "pack_weight",
    "PackLength": "pack_length",
    "PackWidth": "pack_width",
    "PackHeight": "pack_height",
}


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _first_text(element: ET.Element, tag: str) -> str:
    for child in element.iter():
        if child is element:
            continue
        if _local(child.tag) == tag:
            return "".join(child.itertext()).strip()
    return ""


def parse_feed_xml(text: Union[str, bytes]) -> List[FeedProduct]:
    """Read every <product> of a vendor XML feed, whatever its nesting or namespace."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise FeedParseError(f"XML parse error: {e}") from e

    products: List[FeedProduct] = []
    for el in root.iter():
        if _local(el.tag) != "product":
            continue
        values = {attr: _first_text(el, tag) for tag, attr in _TEXT_TAGS.items()}
        values.update({attr: parse_number(_first_text(el, tag)) for tag, attr in _NUMBER_TAGS.items()})
        products.append(FeedProduct(**values))
    log.info(f"Parsed {len(products)} products from XML feed")
    return products


def _first_filled(*values: str) -> str:
    for v in values:
        if v:
            return v
    return ""


def title_for(p: FeedProduct, lang: str) -> str:
    if lang == "FR":
        return _first_filled(p.title_fr, p.title_en, p.title_nl)
    if lang == "EN":
        return _first_filled(p.title_en, p.title_nl)
    if lang == "DE":
        return _first_filled(p.title_de, p.title_en, p.title_nl)
    return p.title_nl


def description_for(p: FeedProduct, lang: str) -> str:
    if lang == "FR":
        raw = _first_filled(p.description_fr, p.description_en, p.description_nl)
    elif lang == "EN":
        raw = _first_filled(p.description_en, p.description_nl)
    elif lang == "DE":
        raw = _first_filled(p.description_de, p.description_en, p.description_nl)
    else:
        raw = p.description_nl
    return html_to_plain_text(raw)


def weight_for(p: FeedProduct, source: str) -> float:
    if source == "product" and p.prod_weight > 0:
        return p.prod_weight
    return p.pack_weight


def _dimension(product_value: float, package_value: float) -> str:
    value = product_value if product_value > 0 else package_value
    return format_number(value) if value > 0 else ""


@dataclass(frozen=True)
class FeedColumn:
    id: str
    header: str
    value: Callable[[FeedProduct], str]


def _header(field_id: str) -> str:
    f = find_field(field_id)
    return f.header if f is not None else field_id


def build_feed_columns(options: ConversionOptions) -> List[FeedColumn]:
    """Export columns for a vendor feed, honouring the include_* switches."""
    lang = options.description_lang
    unit = options.dimension_source_unit
    type_value = str(options.product_type)
    sell = "1" if options.to_sell else "0"
    buy = "1" if options.to_buy else "0"

    columns = [
        FeedColumn("ref", _header("ref"), lambda p: p.model),
        FeedColumn("label", _header("label"), lambda p: title_for(p, lang)),
        FeedColumn("fk_product_type", _header("fk_product_type"), lambda p: type_value),
        FeedColumn("tosell", _header("tosell"), lambda p: sell),
        FeedColumn("tobuy", _header("tobuy"), lambda p: buy),
        FeedColumn("description", _header("description"), lambda p: description_for(p, lang)),
    ]
    if options.include_url:
        columns.append(FeedColumn("url", _header("url"), lambda p: p.main_image))
    if options.include_weight:
        source = options.weight_source

        def weight(p: FeedProduct) -> str:
            w = weight_for(p, source)
            return format_number(w) if w > 0 else ""

        def weight_units(p: FeedProduct) -> str:
            return WEIGHT_UNIT if weight_for(p, source) > 0 else ""

        columns.append(FeedColumn("weight", _header("weight"), weight))
        columns.append(FeedColumn("weight_units", _header("weight_units"), weight_units))
    if options.include_dimensions:
        columns.extend(
            [
                FeedColumn("length", "Longueur (p.length)", lambda p: _dimension(p.prod_length, p.pack_length)),
                FeedColumn(
                    "length_units",
                    "Unité de longueur (p.length_units)",
                    lambda p: unit if _dimension(p.prod_length, p.pack_length) else "",
                ),
                FeedColumn("width", "Largeur (p.width)", lambda p: _dimension(p.prod_width, p.pack_width)),
                FeedColumn(
                    "width_units",
                    "Unité de largeur (p.width_units)",
                    lambda p: unit if _dimension(p.prod_width, p.pack_width) else "",
                ),
                FeedColumn("height", "Hauteur (p.height)", lambda p: _dimension(p.prod_height, p.pack_height)),
                FeedColumn(
                    "height_units",
                    "Unité de hauteur (p.height_units)",
                    lambda p: unit if _dimension(p.prod_height, p.pack_height) else "",
                ),
            ]
        )
    columns.append(FeedColumn("price", _header("price"), lambda p: p.price_ex_vat))
    if options.include_price_min:
        columns.append(FeedColumn("price_min", _header("price_min"), lambda p: p.special_price_ex_vat))
    columns.append(FeedColumn("price_ttc", _header("price_ttc"), lambda p: p.price_in_vat))
    rate = options.tva_rate_label
    base = options.price_base_type
    columns.append(FeedColumn("tva_tx", _header("tva_tx"), lambda p: rate))
    columns.append(FeedColumn("price_base_type", _header("price_base_type"), lambda p: base))
    if options.include_barcode:
        columns.append(FeedColumn("barcode", _header("barcode"), lambda p: p.barcode))
    return columns


def _index_of(columns: Sequence[FeedColumn], column_id: str) -> Optional[int]:
    for i, c in enumerate(columns):
        if c.id == column_id:
            return i
    return None


def feed_rows(
    products: Sequence[FeedProduct],
    options: ConversionOptions,
    warnings: WarningCollector,
) -> Tuple[List[str], List[List[str]]]:
    columns = build_feed_columns(options)
    ref_idx = _index_of(columns, "ref")
    ht_idx = _index_of(columns, "price")
    ttc_idx = _index_of(columns, "price_ttc")

    refs = DuplicateTracker()
    barcode_owner: Dict[str, str] = {}
    rows: List[List[str]] = []
    for i, p in enumerate(products):
        row_no = i + 1
        values = [c.value(p) for c in columns]
        if options.ref_operation is not None and values[ref_idx]:
            values[ref_idx] = apply_operation(values[ref_idx], options.ref_operation)
        ref = values[ref_idx]
        if options.price_operation is not None:
            reconcile_prices(values, ht_idx, ttc_idx, options)

        if options.include_barcode:
            if not p.barcode:
                warnings.add(WarningKind.MISSING_BARCODE, row_no, f"Row {row_no}: {p.model} has no barcode", ref=ref)
            elif p.barcode in barcode_owner:
                warnings.add(
                    WarningKind.DUPLICATE_BARCODE,
                    row_no,
                    f"Row {row_no}: barcode {p.barcode} already used by {barcode_owner[p.barcode]}",
                    ref=ref,
                )
            else:
                barcode_owner[p.barcode] = p.model
        if ref:
            n = refs.see(ref)
            if n > 1:
                warnings.add(
                    WarningKind.DUPLICATE_REF,
                    row_no,
                    f'Row {row_no}: reference "{ref}" is duplicated (occurrence #{n})',
                    ref=ref,
                )
        if not title_for(p, options.description_lang):
            warnings.add(WarningKind.MISSING_TITLE, row_no, f"Row {row_no}: {p.model} has no title", ref=ref)
        if not p.price_ex_vat and not p.price_in_vat:
            warnings.add(WarningKind.MISSING_PRICE, row_no, f"Row {row_no}: {p.model} has no price", ref=ref)
        rows.append(values)
    return [c.header for c in columns], rows


def convert_feed(
    products: Sequence[FeedProduct],
    options: Optional[ConversionOptions] = None,
    settings: Optional[Settings] = None,
) -> ConversionResult:
    """Convert parsed feed products into Dolibarr product import workbook(s)."""
    options = options or ConversionOptions()
    settings = settings or Settings()
    warnings = WarningCollector()
    headers, rows = feed_rows(products, options, warnings)
    log.info(f"Converted {len(rows)} feed products ({len(warnings)} warnings: {warnings.by_kind()})")

    bundle = build_output(
        headers,
        rows,
        sheet_name=settings.product_sheet_name,
        prefix=settings.output_prefix,
        max_rows=settings.max_rows_per_file,
    )
    return ConversionResult(
        data=bundle.data,
        is_archive=bundle.is_archive,
        file_count=bundle.file_count,
        headers=headers,
        rows=rows,
        warnings=warnings.as_list(),
    )

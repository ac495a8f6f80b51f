from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .config import Settings
from .io import Source, read_grids, unzip_files, write_workbook
from .normalize import cell_to_str, parse_price
from .pricing import PriceModificationResult, PriceRow, PriceTarget
from .bulk_refs import REF_HEADER_PATTERNS


log = logging.getLogger(__name__)

HT_PATTERNS = (
    re.compile(r"\(p\.price\)$", re.IGNORECASE),
    re.compile(r"prix.*vente.*ht", re.IGNORECASE),
    re.compile(r"^prix.*ht", re.IGNORECASE),
)
TTC_PATTERNS = (
    re.compile(r"\(p\.price_ttc\)", re.IGNORECASE),
    re.compile(r"prix.*vente.*ttc", re.IGNORECASE),
    re.compile(r"^prix.*ttc", re.IGNORECASE),
)
MIN_PATTERNS = (
    re.compile(r"\(p\.price_min\)", re.IGNORECASE),
    re.compile(r"prix.*vente.*min", re.IGNORECASE),
    re.compile(r"^prix.*min", re.IGNORECASE),
)
TVA_PATTERNS = (
    re.compile(r"\(p\.tva_tx\)", re.IGNORECASE),
    re.compile(r"taux.*tva", re.IGNORECASE),
    re.compile(r"^tva", re.IGNORECASE),
)
BASE_TYPE_PATTERNS = (
    re.compile(r"\(p\.price_base_type\)", re.IGNORECASE),
    re.compile(r"pricebasetype", re.IGNORECASE),
)
GENERIC_PRICE_PATTERNS = (
    re.compile(r"^prix$", re.IGNORECASE),
    re.compile(r"^price$", re.IGNORECASE),
    re.compile(r"^montant$", re.IGNORECASE),
)

OUTPUT_HEADERS = [
    "Réf.* (p.ref)",
    "Prix de vente HT (p.price)",
    "Prix de vente min. (p.price_min)",
    "Prix de vente TTC (p.price_ttc)",
    "Taux TVA (p.tva_tx)",
    "PriceBaseType (p.price_base_type)",
]


@dataclass(frozen=True)
class PriceColumns:
    ref: int
    ht: Optional[int] = None
    ttc: Optional[int] = None
    price_min: Optional[int] = None
    tva: Optional[int] = None
    base_type: Optional[int] = None


def _find(headers: Sequence[str], patterns, exclude: Sequence[Optional[int]] = ()) -> Optional[int]:
    # Patterns are tried in priority order across all headers
    for pattern in patterns:
        for i, h in enumerate(headers):
            if i in exclude:
                continue
            if pattern.search(h.strip()):
                return i
    return None


def detect_price_columns(headers: Sequence[str]) -> Optional[PriceColumns]:
    """Locate the reference and price columns, or None without a ref and at least one price."""
    ref = _find(headers, REF_HEADER_PATTERNS)
    if ref is None:
        return None
    ttc = _find(headers, TTC_PATTERNS, exclude=(ref,))
    price_min = _find(headers, MIN_PATTERNS, exclude=(ref, ttc))
    ht = _find(headers, HT_PATTERNS, exclude=(ref, ttc, price_min))
    if ht is None and ttc is None:
        ht = _find(headers, GENERIC_PRICE_PATTERNS, exclude=(ref, ttc, price_min))
    if ht is None and ttc is None:
        return None
    tva = _find(headers, TVA_PATTERNS, exclude=(ref, ht, ttc, price_min))
    base_type = _find(headers, BASE_TYPE_PATTERNS, exclude=(ref,))
    return PriceColumns(ref=ref, ht=ht, ttc=ttc, price_min=price_min, tva=tva, base_type=base_type)


def parse_prices_from_text(text: str) -> List[Tuple[str, float]]:
    """Parse 'REF<TAB>PRICE' lines; lines without a numeric price are skipped."""
    pairs: List[Tuple[str, float]] = []
    for line in text.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        ref = parts[0].strip()
        price = parse_price(parts[1])
        if not ref or not price:
            continue
        pairs.append((ref, float(price)))
    return pairs


def text_pairs_to_rows(
    pairs: Sequence[Tuple[str, float]],
    target: Union[PriceTarget, str] = PriceTarget.HT,
    tva_rate: float = 21.0,
) -> List[PriceRow]:
    target = PriceTarget(target)
    rate = f"{tva_rate:.1f}"
    rows: List[PriceRow] = []
    for ref, price in pairs:
        text = f"{price:.2f}"
        rows.append(
            PriceRow(
                ref=ref,
                price_ht=text if target is PriceTarget.HT else "",
                price_ttc=text if target is PriceTarget.TTC else "",
                tva_rate=rate,
                price_base_type=target.value,
            )
        )
    return rows


def _value(row, idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ""
    return cell_to_str(row[idx])


def parse_prices_from_workbook(source: Source, name: str = "") -> List[PriceRow]:
    rows: List[PriceRow] = []
    for sheet_name, grid in read_grids(source, name):
        if not grid:
            continue
        cols = detect_price_columns([cell_to_str(v) for v in grid[0]])
        if cols is None:
            log.debug(f"sheet '{sheet_name}': no reference and price columns")
            continue
        for raw in grid[1:]:
            ref = _value(raw, cols.ref)
            ht = parse_price(_value(raw, cols.ht))
            ttc = parse_price(_value(raw, cols.ttc))
            if not ref or not (ht or ttc):
                continue
            rows.append(
                PriceRow(
                    ref=ref,
                    price_ht=ht,
                    price_ttc=ttc,
                    price_min=parse_price(_value(raw, cols.price_min)),
                    tva_rate=_value(raw, cols.tva),
                    price_base_type=_value(raw, cols.base_type),
                )
            )
    log.info(f"Read {len(rows)} price rows")
    return rows


def parse_prices_from_zip(data: bytes) -> List[PriceRow]:
    rows: List[PriceRow] = []
    for entry_name, payload in unzip_files(data, ".xlsx"):
        rows.extend(parse_prices_from_workbook(payload, entry_name))
    return rows


def generate_prices_workbook(results: Sequence[PriceModificationResult], settings: Optional[Settings] = None) -> bytes:
    settings = settings or Settings()
    rows = [
        [r.ref, r.price_ht, r.price_min, r.price_ttc, r.tva_rate, r.price_base_type]
        for r in results
    ]
    return write_workbook(OUTPUT_HEADERS, rows, settings.modifications_sheet_name)

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .chunker import build_output, is_dolibarr_format, OutputBundle
from .config import Settings
from .io import ParsedSheet


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnPair:
    base_col: int
    source_col: int


@dataclass(frozen=True)
class MergeOptions:
    base_key_col: int
    source_key_col: int
    mappings: List[ColumnPair] = field(default_factory=list)


@dataclass
class MergeResult:
    headers: List[str]
    rows: List[List[str]]
    matched_count: int = 0
    unmatched_count: int = 0
    unmatched_refs: List[str] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def _key(value: str) -> str:
    return (value or "").strip().lower()


def _cell(row: List[str], idx: int) -> str:
    return row[idx] if 0 <= idx < len(row) else ""


def merge_sheets(base: ParsedSheet, source: ParsedSheet, options: MergeOptions) -> MergeResult:
    """Update `base` rows with values looked up in `source` by reference.

    Keys compare trimmed and case-insensitively; the first source row of a key
    wins. Only non-empty source values overwrite, unmatched rows stay as is.
    """
    lookup: Dict[str, List[str]] = {}
    for row in source.rows:
        key = _key(_cell(row, options.source_key_col))
        if key and key not in lookup:
            lookup[key] = row

    matched = 0
    unmatched_refs: List[str] = []
    rows: List[List[str]] = []
    for row in base.rows:
        raw_key = _cell(row, options.base_key_col)
        src = lookup.get(_key(raw_key))
        if src is None:
            if raw_key.strip():
                unmatched_refs.append(raw_key)
            rows.append(list(row))
            continue
        matched += 1
        merged = list(row)
        for pair in options.mappings:
            value = _cell(src, pair.source_col)
            if not value:
                continue
            if pair.base_col >= len(merged):
                merged.extend([""] * (pair.base_col + 1 - len(merged)))
            merged[pair.base_col] = value
        rows.append(merged)

    log.info(f"Merged {matched} of {len(base.rows)} rows ({len(unmatched_refs)} references not found)")
    return MergeResult(
        headers=list(base.headers),
        rows=rows,
        matched_count=matched,
        unmatched_count=len(base.rows) - matched,
        unmatched_refs=unmatched_refs,
    )


def generate_merge_output(result: MergeResult, settings: Optional[Settings] = None) -> OutputBundle:
    """Dolibarr-shaped tables are split like product exports; anything else stays whole."""
    settings = settings or Settings()
    return build_output(
        result.headers,
        result.rows,
        sheet_name=settings.merge_sheet_name,
        prefix=settings.merge_prefix,
        split=is_dolibarr_format(result.headers),
        max_rows=settings.max_rows_per_file,
    )

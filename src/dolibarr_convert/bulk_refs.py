from __future__ import annotations
import logging
import re
from typing import List, Optional, Sequence

from .config import Settings
from .io import Source, read_grids, unzip_files, write_workbook
from .normalize import cell_to_str
from .operations import RefModification, TextOperation, apply_to_refs


log = logging.getLogger(__name__)

REF_HEADER_PATTERNS = (
    re.compile(r"^réf", re.IGNORECASE),
    re.compile(r"^ref", re.IGNORECASE),
    re.compile(r"\(p\.ref\)", re.IGNORECASE),
    re.compile(r"^référence", re.IGNORECASE),
    re.compile(r"^reference", re.IGNORECASE),
)

OUTPUT_HEADERS = ["Ref", "Nouvelle Ref"]


def find_ref_column(headers: Sequence[str]) -> Optional[int]:
    for i, h in enumerate(headers):
        text = (h or "").strip()
        if any(p.search(text) for p in REF_HEADER_PATTERNS):
            return i
    return None


def parse_refs_from_text(text: str) -> List[str]:
    """One reference per line; blank lines dropped."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_refs_from_workbook(source: Source, name: str = "") -> List[str]:
    refs: List[str] = []
    for sheet_name, grid in read_grids(source, name):
        if not grid:
            continue
        col = find_ref_column([cell_to_str(v) for v in grid[0]])
        if col is None:
            log.debug(f"sheet '{sheet_name}': no reference column")
            continue
        for row in grid[1:]:
            value = cell_to_str(row[col]) if col < len(row) else ""
            if value:
                refs.append(value)
    return refs


def parse_refs_from_zip(data: bytes) -> List[str]:
    refs: List[str] = []
    for entry_name, payload in unzip_files(data, ".xlsx"):
        refs.extend(parse_refs_from_workbook(payload, entry_name))
    return refs


def modify_refs(refs: Sequence[str], op: TextOperation) -> List[RefModification]:
    results = apply_to_refs(refs, op)
    changed = sum(1 for r in results if r.changed)
    log.info(f"Modified {changed} of {len(results)} references")
    return results


def generate_refs_workbook(results: Sequence[RefModification], settings: Optional[Settings] = None) -> bytes:
    settings = settings or Settings()
    rows = [[r.original, r.modified] for r in results]
    return write_workbook(OUTPUT_HEADERS, rows, settings.modifications_sheet_name)

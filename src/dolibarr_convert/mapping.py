from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .catalog import DOLIBARR_COLUMNS, TargetField
from .normalize import normalize_header


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnMapping:
    source_index: int
    source_header: str
    target_id: Optional[str] = None


def normalize(header: str) -> str:
    return normalize_header(header)


def _matches(normalized_header: str, alias: str) -> bool:
    key = normalize_header(alias)
    if not key:
        return False
    return key == normalized_header or key in normalized_header


def auto_detect_mappings(
    source_headers: Sequence[str],
    catalog: Sequence[TargetField] = DOLIBARR_COLUMNS,
) -> List[ColumnMapping]:
    """Guess the target field of every source column.

    Headers are scanned left to right and each one claims the first catalog
    field (in catalog order) having an alias equal to, or contained in, the
    normalized header. A claimed field is never offered to a later header.
    """
    claimed: set[str] = set()
    mappings: List[ColumnMapping] = []
    for idx, header in enumerate(source_headers):
        norm = normalize_header(header)
        target: Optional[str] = None
        if norm:
            for f in catalog:
                if f.id in claimed:
                    continue
                if any(_matches(norm, a) for a in f.aliases):
                    target = f.id
                    break
        if target:
            claimed.add(target)
            log.debug(f"auto-mapped column {idx} '{header}' -> {target}")
        mappings.append(ColumnMapping(source_index=idx, source_header=header, target_id=target))
    return mappings


def update_mapping(
    mappings: Sequence[ColumnMapping],
    source_index: int,
    new_target_id: Optional[str],
) -> List[ColumnMapping]:
    out: List[ColumnMapping] = []
    for m in mappings:
        if m.source_index == source_index:
            out.append(replace(m, target_id=new_target_id))
        elif new_target_id and m.target_id == new_target_id:
            out.append(replace(m, target_id=None))
        else:
            out.append(m)
    return out


def _mapped_ids(mappings: Sequence[ColumnMapping]) -> set[str]:
    return {m.target_id for m in mappings if m.target_id}


def get_missing_required_columns(
    mappings: Sequence[ColumnMapping],
    catalog: Sequence[TargetField] = DOLIBARR_COLUMNS,
) -> List[TargetField]:
    mapped = _mapped_ids(mappings)
    return [f for f in catalog if f.required and f.id not in mapped and not f.has_default]


def get_available_target_columns(
    mappings: Sequence[ColumnMapping],
    catalog: Sequence[TargetField] = DOLIBARR_COLUMNS,
) -> List[TargetField]:
    mapped = _mapped_ids(mappings)
    return [f for f in catalog if f.id not in mapped]


def get_mapped_columns(
    mappings: Sequence[ColumnMapping],
    catalog: Sequence[TargetField] = DOLIBARR_COLUMNS,
) -> List[Tuple[ColumnMapping, TargetField]]:
    by_id = {f.id: f for f in catalog}
    return [(m, by_id[m.target_id]) for m in mappings if m.target_id in by_id]


def get_unmapped_source_columns(mappings: Sequence[ColumnMapping]) -> List[ColumnMapping]:
    return [m for m in mappings if m.target_id is None]

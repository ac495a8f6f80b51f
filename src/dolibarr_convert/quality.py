from __future__ import annotations
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List


log = logging.getLogger(__name__)


class WarningKind(str, Enum):
    MISSING_REF = "missing_ref"
    MISSING_LABEL = "missing_label"
    MISSING_TITLE = "missing_title"
    MISSING_PRICE = "missing_price"
    MISSING_BARCODE = "missing_barcode"
    DUPLICATE_REF = "duplicate_ref"
    DUPLICATE_BARCODE = "duplicate_barcode"


@dataclass(frozen=True)
class ConversionWarning:
    kind: WarningKind
    row: int
    message: str
    ref: str = ""


class WarningCollector:
    """Append-only list of data-quality observations for one conversion.

    Rows are numbered from 1, as shown to users.
    """

    def __init__(self) -> None:
        self._items: List[ConversionWarning] = []

    def add(self, kind: WarningKind, row: int, message: str, ref: str = "") -> None:
        w = ConversionWarning(kind=WarningKind(kind), row=row, message=message, ref=ref)
        log.debug(f"row {row}: {w.kind.value}: {message}")
        self._items.append(w)

    def __iter__(self) -> Iterator[ConversionWarning]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def by_kind(self) -> Dict[str, int]:
        return dict(Counter(w.kind.value for w in self._items))

    def as_list(self) -> List[ConversionWarning]:
        return list(self._items)


class DuplicateTracker:
    """Counts occurrences of a key; the first occurrence is number 1."""

    def __init__(self) -> None:
        self._seen: Counter = Counter()

    def see(self, key: str) -> int:
        self._seen[key] += 1
        return self._seen[key]

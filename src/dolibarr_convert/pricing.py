"""HT / TTC price reconciliation and bulk price operations.

All arithmetic runs on Decimal and rounds half-up on the cent, so that
recomputing TTC from a modified HT (or the reverse) stays consistent with the
tax formula to within one cent.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional, Sequence, Union


CENT = Decimal("0.01")
HUNDRED = Decimal(100)


class Direction(str, Enum):
    TO_TTC = "toTTC"
    TO_HT = "toHT"


class PriceTarget(str, Enum):
    HT = "HT"
    TTC = "TTC"


class PriceOperationKind(str, Enum):
    INCREASE_FIXED = "increase-fixed"
    DECREASE_FIXED = "decrease-fixed"
    INCREASE_PERCENT = "increase-percent"
    DECREASE_PERCENT = "decrease-percent"


@dataclass(frozen=True)
class PriceOperation:
    kind: PriceOperationKind
    value: float


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    return d


def _round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def recompute_price(price, tva_rate, direction: Union[Direction, str]) -> str:
    """Derive the other leg of a price pair: HT -> TTC or TTC -> HT.

    Returns '' when the price or the rate is missing or not a number.
    """
    p = _to_decimal(price)
    rate = _to_decimal(tva_rate)
    if p is None or rate is None:
        return ""
    factor = 1 + rate / HUNDRED
    if Direction(direction) is Direction.TO_TTC:
        result = p * factor
    else:
        result = p / factor
    return f"{_round_cents(result):.2f}"


def _apply(price: Decimal, op: PriceOperation) -> Decimal:
    value = Decimal(str(op.value))
    kind = op.kind
    if kind is PriceOperationKind.INCREASE_FIXED:
        result = price + value
    elif kind is PriceOperationKind.DECREASE_FIXED:
        result = price - value
    elif kind is PriceOperationKind.INCREASE_PERCENT:
        result = price * (1 + value / HUNDRED)
    elif kind is PriceOperationKind.DECREASE_PERCENT:
        result = price * (1 - value / HUNDRED)
    else:
        raise ValueError(f"Unknown price operation: {kind}")
    return _round_cents(max(Decimal(0), result))


def apply_price_operation(price: float, op: PriceOperation) -> float:
    return float(_apply(Decimal(str(price)), op))


def apply_price_operation_to_string(price: str, op: PriceOperation) -> str:
    if not price:
        return ""
    d = _to_decimal(price)
    if d is None:
        return price
    return f"{_apply(d, op):.2f}"


def build_price_operation(kind: str, value) -> Optional[PriceOperation]:
    try:
        k = PriceOperationKind(kind)
    except ValueError:
        return None
    d = _to_decimal(value)
    if d is None or d < 0:
        return None
    return PriceOperation(kind=k, value=float(d))


@dataclass(frozen=True)
class PriceRow:
    ref: str
    price_ht: str = ""
    price_ttc: str = ""
    price_min: str = ""
    tva_rate: str = ""
    price_base_type: str = ""


@dataclass(frozen=True)
class PriceModificationResult:
    ref: str
    price_ht: str
    price_ttc: str
    price_min: str
    original_price_ht: str
    original_price_ttc: str
    original_price_min: str
    tva_rate: str
    price_base_type: str

    @property
    def changed(self) -> bool:
        return (
            self.price_ht != self.original_price_ht
            or self.price_ttc != self.original_price_ttc
            or self.price_min != self.original_price_min
        )


def apply_to_prices(
    rows: Sequence[PriceRow],
    op: PriceOperation,
    target: Union[PriceTarget, str] = PriceTarget.HT,
) -> List[PriceModificationResult]:
    """Apply `op` to one leg of every row and re-derive the other leg from it.

    Targeting HT also moves the minimum price; TTC is then recomputed from the
    new HT, keeping the previous TTC when no rate is known.
    """
    target = PriceTarget(target)
    results: List[PriceModificationResult] = []
    for row in rows:
        if target is PriceTarget.HT:
            new_ht = apply_price_operation_to_string(row.price_ht, op)
            new_min = apply_price_operation_to_string(row.price_min, op)
            new_ttc = recompute_price(new_ht, row.tva_rate, Direction.TO_TTC) or row.price_ttc
        else:
            new_ttc = apply_price_operation_to_string(row.price_ttc, op)
            new_ht = recompute_price(new_ttc, row.tva_rate, Direction.TO_HT) or row.price_ht
            new_min = row.price_min
        results.append(
            PriceModificationResult(
                ref=row.ref,
                price_ht=new_ht,
                price_ttc=new_ttc,
                price_min=new_min,
                original_price_ht=row.price_ht,
                original_price_ttc=row.price_ttc,
                original_price_min=row.price_min,
                tva_rate=row.tva_rate,
                price_base_type=row.price_base_type,
            )
        )
    return results

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .operations import TextOperation
from .pricing import PriceOperation, PriceTarget
from .quality import ConversionWarning


class ConversionOptions(BaseModel):
    """Everything a caller can tune for one conversion run.

    `price_base_type` HT means prices are entered tax excluded, TTC tax included.
    The include_* and feed-specific fields only affect the vendor feed
    conversion; spreadsheet conversions derive their columns from the mapping.
    """

    model_config = ConfigDict(frozen=True)

    tva_rate: float = 21.0
    price_base_type: Literal["HT", "TTC"] = "HT"
    product_type: Literal[0, 1] = 0
    to_sell: bool = True
    to_buy: bool = True

    description_lang: Literal["FR", "EN", "NL", "DE"] = "FR"
    weight_source: Literal["product", "package"] = "package"
    dimension_source_unit: Literal["mm", "cm", "m"] = "mm"
    include_barcode: bool = True
    include_weight: bool = True
    include_dimensions: bool = False
    include_url: bool = True
    include_price_min: bool = True

    ref_operation: Optional[TextOperation] = None
    price_operation: Optional[PriceOperation] = None
    price_target: PriceTarget = PriceTarget.HT

    @property
    def tva_rate_label(self) -> str:
        return f"{self.tva_rate:.1f}"


DEFAULT_OPTIONS = ConversionOptions()


@dataclass(frozen=True)
class ConversionResult:
    data: bytes
    is_archive: bool
    file_count: int
    headers: List[str]
    rows: List[List[str]]
    warnings: List[ConversionWarning] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def extension(self) -> str:
        return ".zip" if self.is_archive else ".xlsx"

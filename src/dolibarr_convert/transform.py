from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .catalog import AUXILIARY_FIELDS, DOLIBARR_COLUMNS, Cell, TargetField, find_field
from .chunker import build_output
from .config import Settings
from .io import ParsedTable
from .mapping import ColumnMapping, get_mapped_columns
from .normalize import cell_to_str
from .operations import apply_operation
from .options import ConversionOptions, ConversionResult
from .pricing import Direction, PriceTarget, apply_price_operation_to_string, recompute_price
from .quality import ConversionWarning, DuplicateTracker, WarningCollector, WarningKind


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputColumn:
    """One column of the Dolibarr export.

    `source_index` is None for columns filled from a default, from the
    options, or computed from the other price leg.
    """

    field: TargetField
    source_index: Optional[int] = None
    computed: bool = False

    @property
    def header(self) -> str:
        return self.field.header


def build_output_columns(
    mappings: Sequence[ColumnMapping],
    catalog: Sequence[TargetField] = DOLIBARR_COLUMNS,
) -> List[OutputColumn]:
    """Pick the export columns, in catalog order.

    Mapped fields, required fields having a default, and the auxiliary fields
    of a mapped price or weight. When only one price leg is mapped the other
    is added as a computed column: TTC appended last, HT inserted
    just before TTC.
    """
    mapped = {f.id: m.source_index for m, f in get_mapped_columns(mappings, catalog)}
    columns: List[OutputColumn] = []
    for f in catalog:
        if f.id in mapped:
            columns.append(OutputColumn(field=f, source_index=mapped[f.id]))
        elif f.required and f.has_default:
            columns.append(OutputColumn(field=f))
        elif any(owner in mapped for owner in AUXILIARY_FIELDS.get(f.id, ())):
            columns.append(OutputColumn(field=f))

    has_ht = "price" in mapped
    has_ttc = "price_ttc" in mapped
    if has_ht and not has_ttc:
        ttc = find_field("price_ttc", catalog)
        if ttc is not None:
            columns.append(OutputColumn(field=ttc, computed=True))
    elif has_ttc and not has_ht:
        ht = find_field("price", catalog)
        if ht is not None:
            pos = next(i for i, c in enumerate(columns) if c.field.id == "price_ttc")
            columns.insert(pos, OutputColumn(field=ht, computed=True))
    return columns


def _option_value(field_id: str, options: ConversionOptions) -> Optional[str]:
    if field_id == "tva_tx":
        return options.tva_rate_label
    if field_id == "price_base_type":
        return options.price_base_type
    if field_id == "fk_product_type":
        return str(options.product_type)
    if field_id == "tosell":
        return "1" if options.to_sell else "0"
    if field_id == "tobuy":
        return "1" if options.to_buy else "0"
    return None


def _cell_value(column: OutputColumn, row: Sequence[Cell], options: ConversionOptions) -> str:
    if column.computed:
        return ""
    if column.source_index is not None:
        raw = row[column.source_index] if column.source_index < len(row) else None
        f = column.field
        return f.transform(raw) if f.transform else cell_to_str(raw)
    option = _option_value(column.field.id, options)
    if option is not None:
        return option
    return column.field.default_for(row)


def reconcile_prices(
    values: List[str],
    ht_idx: Optional[int],
    ttc_idx: Optional[int],
    options: ConversionOptions,
    derive_ht: bool = True,
    derive_ttc: bool = True,
) -> None:
    """Apply the price operation to its target leg and keep the pair consistent.

    With an operation, an empty target leg is first derived from the other
    one, then modified, then the other leg is recomputed from it. Without one,
    an empty leg flagged for derivation is computed from the other.
    """
    if ht_idx is None or ttc_idx is None:
        return
    rate = options.tva_rate
    op = options.price_operation
    if op is not None:
        if options.price_target is PriceTarget.HT:
            if not values[ht_idx] and values[ttc_idx]:
                values[ht_idx] = recompute_price(values[ttc_idx], rate, Direction.TO_HT)
            if values[ht_idx]:
                values[ht_idx] = apply_price_operation_to_string(values[ht_idx], op)
                values[ttc_idx] = recompute_price(values[ht_idx], rate, Direction.TO_TTC)
        else:
            if not values[ttc_idx] and values[ht_idx]:
                values[ttc_idx] = recompute_price(values[ht_idx], rate, Direction.TO_TTC)
            if values[ttc_idx]:
                values[ttc_idx] = apply_price_operation_to_string(values[ttc_idx], op)
                values[ht_idx] = recompute_price(values[ttc_idx], rate, Direction.TO_HT)
        return
    if derive_ttc and not values[ttc_idx] and values[ht_idx]:
        values[ttc_idx] = recompute_price(values[ht_idx], rate, Direction.TO_TTC)
    elif derive_ht and not values[ht_idx] and values[ttc_idx]:
        values[ht_idx] = recompute_price(values[ttc_idx], rate, Direction.TO_HT)


def _index_of(columns: Sequence[OutputColumn], field_id: str) -> Optional[int]:
    for i, c in enumerate(columns):
        if c.field.id == field_id:
            return i
    return None


def _transform(
    rows: Sequence[Sequence[Cell]],
    columns: Sequence[OutputColumn],
    options: ConversionOptions,
    warnings: WarningCollector,
) -> List[List[str]]:
    ref_idx = _index_of(columns, "ref")
    label_idx = _index_of(columns, "label")
    ht_idx = _index_of(columns, "price")
    ttc_idx = _index_of(columns, "price_ttc")
    derive_ht = ht_idx is not None and columns[ht_idx].computed
    derive_ttc = ttc_idx is not None and columns[ttc_idx].computed

    refs = DuplicateTracker()
    out: List[List[str]] = []
    for row in rows:
        if all(cell_to_str(v) == "" for v in row):
            continue
        row_no = len(out) + 1
        values = [_cell_value(c, row, options) for c in columns]

        if ref_idx is not None and options.ref_operation is not None and values[ref_idx]:
            values[ref_idx] = apply_operation(values[ref_idx], options.ref_operation)

        reconcile_prices(values, ht_idx, ttc_idx, options, derive_ht=derive_ht, derive_ttc=derive_ttc)

        ref = values[ref_idx] if ref_idx is not None else ""
        if not ref:
            warnings.add(WarningKind.MISSING_REF, row_no, f"Row {row_no}: missing reference")
        else:
            n = refs.see(ref)
            if n > 1:
                warnings.add(
                    WarningKind.DUPLICATE_REF,
                    row_no,
                    f'Row {row_no}: reference "{ref}" is duplicated (occurrence #{n})',
                    ref=ref,
                )
        if label_idx is not None and not values[label_idx]:
            warnings.add(WarningKind.MISSING_LABEL, row_no, f"Row {row_no}: missing label", ref=ref)
        out.append(values)
    return out


def transform_rows(
    rows: Sequence[Sequence[Cell]],
    mappings: Sequence[ColumnMapping],
    options: Optional[ConversionOptions] = None,
    catalog: Sequence[TargetField] = DOLIBARR_COLUMNS,
) -> Tuple[List[str], List[List[str]], List[ConversionWarning]]:
    """Map source rows onto the catalog; returns (headers, rows, warnings)."""
    options = options or ConversionOptions()
    columns = build_output_columns(mappings, catalog)
    warnings = WarningCollector()
    out = _transform(rows, columns, options, warnings)
    return [c.header for c in columns], out, warnings.as_list()


def convert_to_dolibarr(
    table: ParsedTable,
    mappings: Sequence[ColumnMapping],
    options: Optional[ConversionOptions] = None,
    settings: Optional[Settings] = None,
) -> ConversionResult:
    """Convert a parsed spreadsheet into Dolibarr product import workbook(s)."""
    options = options or ConversionOptions()
    settings = settings or Settings()

    headers, rows, warnings = transform_rows(table.rows, mappings, options)
    log.info(f"Converted {len(rows)} rows from sheet '{table.sheet_name}' ({len(warnings)} warnings)")

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
        warnings=warnings,
    )

from __future__ import annotations
import csv
import logging
import numbers
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook, load_workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException
import xlrd

from .catalog import Cell
from .errors import EmptyWorkbookError, HeaderNotFoundError, InputError, SheetNotFoundError, UnsupportedFormatError
from .normalize import cell_to_str


log = logging.getLogger(__name__)

Source = Union[bytes, Path, str]
Grid = List[List[Cell]]

EXCEL_EXTS = (".xlsx", ".xlsm", ".xltx", ".xltm")
TEXT_FORMAT = "@"


@dataclass
class ParsedTable:
    sheet_name: str
    sheet_names: List[str]
    header_row: int
    headers: List[str]
    rows: List[List[Cell]] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def column_values(self, index: int) -> List[Cell]:
        return [r[index] if index < len(r) else None for r in self.rows]

    def column_index(self, header: str) -> Optional[int]:
        lower = header.lower()
        for i, h in enumerate(self.headers):
            if h.lower() == lower:
                return i
        return None


@dataclass
class ParsedSheet:
    """All-string table used by the merge tool."""

    headers: List[str]
    rows: List[List[str]] = field(default_factory=list)


def _load_bytes(source: Source) -> Tuple[bytes, str]:
    if isinstance(source, bytes):
        return source, ""
    p = Path(source)
    return p.read_bytes(), p.name


def _is_empty(v: Cell) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _to_cell(v) -> Cell:
    if v is None:
        return None
    if isinstance(v, bool):
        return cell_to_str(v)
    if isinstance(v, numbers.Number):
        # Excel stores 5225 as 5225.0
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    s = str(v)
    return s if s.strip() else None


def _xlsx_grids(data: bytes) -> List[Tuple[str, Grid]]:
    try:
        wb = load_workbook(filename=BytesIO(data), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as e:
        raise UnsupportedFormatError(f"Not a readable Excel workbook: {e}") from e
    try:
        sheets = []
        for ws in wb.worksheets:
            grid = [[_to_cell(v) for v in row] for row in ws.iter_rows(values_only=True)]
            sheets.append((ws.title, grid))
        return sheets
    finally:
        wb.close()


def _xls_grids(data: bytes) -> List[Tuple[str, Grid]]:
    try:
        book = xlrd.open_workbook(file_contents=data)
    except xlrd.XLRDError as e:
        raise UnsupportedFormatError(f"Not a readable .xls workbook: {e}") from e
    sheets = []
    for sheet in book.sheets():
        grid: Grid = []
        for r in range(sheet.nrows):
            row: List[Cell] = []
            for c in range(sheet.ncols):
                cell = sheet.cell(r, c)
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(xlrd.xldate_as_datetime(cell.value, book.datemode).isoformat())
                elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                    row.append(cell_to_str(bool(cell.value)))
                elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
                    row.append(None)
                else:
                    row.append(_to_cell(cell.value))
            grid.append(row)
        sheets.append((sheet.name, grid))
    return sheets


def _csv_grids(data: bytes) -> List[Tuple[str, Grid]]:
    text = data.decode("utf-8-sig", errors="replace")
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel
    grid = [[_to_cell(c) for c in row] for row in csv.reader(StringIO(text), dialect)]
    return [("csv", grid)]


def read_grids(source: Source, name: str = "") -> List[Tuple[str, Grid]]:
    """Read every sheet of a workbook (or the single table of a CSV) as raw cell grids."""
    data, file_name = _load_bytes(source)
    ext = Path(name or file_name).suffix.lower()
    if ext == ".csv":
        return _csv_grids(data)
    if ext == ".xls":
        return _xls_grids(data)
    if ext in EXCEL_EXTS or not ext:
        return _xlsx_grids(data)
    raise UnsupportedFormatError(f"Unsupported table format: {ext}")


def detect_header_row(grid: Grid, max_rows: int = 20) -> Optional[int]:
    """Return the first row with at least two filled cells covering over 40% of the width.

    Skips title and address lines some exports put above the real header.
    """
    width = max((len(r) for r in grid), default=0)
    if width == 0:
        return None
    for r, row in enumerate(grid[: max_rows + 1]):
        filled = sum(1 for v in row if not _is_empty(v))
        if filled >= 2 and filled / width > 0.4:
            return r
    return None


def read_table(
    source: Source,
    name: str = "",
    sheet: Union[str, int, None] = None,
    header_row: Optional[int] = None,
    scan_rows: int = 20,
) -> ParsedTable:
    grids = read_grids(source, name)
    sheet_names = [n for n, _ in grids]
    if not grids:
        raise EmptyWorkbookError("The workbook contains no sheet")

    if sheet is None:
        idx = 0
    elif isinstance(sheet, int):
        if sheet < 0 or sheet >= len(grids):
            raise SheetNotFoundError(f"Sheet {sheet} not found")
        idx = sheet
    else:
        if sheet not in sheet_names:
            raise SheetNotFoundError(f'Sheet "{sheet}" not found')
        idx = sheet_names.index(sheet)

    sheet_name, grid = grids[idx]
    hdr = header_row if header_row is not None else detect_header_row(grid, scan_rows)
    if hdr is None or hdr >= len(grid):
        raise HeaderNotFoundError("Could not detect the header row; please specify it explicitly")
    log.debug(f"sheet '{sheet_name}': header row {hdr}")

    width = max((len(r) for r in grid), default=0)
    headers = []
    for c in range(width):
        v = grid[hdr][c] if c < len(grid[hdr]) else None
        text = cell_to_str(v)
        headers.append(text or f"Colonne {c + 1}")

    rows: List[List[Cell]] = []
    for raw in grid[hdr + 1 :]:
        if all(_is_empty(v) for v in raw):
            continue
        row = list(raw) + [None] * (width - len(raw))
        rows.append([None if _is_empty(v) else v for v in row[:width]])

    return ParsedTable(
        sheet_name=sheet_name,
        sheet_names=sheet_names,
        header_row=hdr,
        headers=headers,
        rows=rows,
    )


def parse_sheet_strings(source: Source, name: str = "") -> ParsedSheet:
    """Concatenate the sheets of a workbook that share the first sheet's header row."""
    headers: List[str] = []
    rows: List[List[str]] = []
    for sheet_name, grid in read_grids(source, name):
        if len(grid) < 2:
            continue
        sheet_headers = [cell_to_str(v) for v in grid[0]]
        if not headers:
            headers = sheet_headers
        elif sheet_headers != headers:
            log.info(f"Skipping sheet '{sheet_name}': header row differs from the first sheet")
            continue
        for raw in grid[1:]:
            row = [cell_to_str(raw[i]) if i < len(raw) else "" for i in range(len(headers))]
            if all(c == "" for c in row):
                continue
            rows.append(row)
    return ParsedSheet(headers=headers, rows=rows)


def parse_sheet_zip(data: bytes) -> ParsedSheet:
    headers: List[str] = []
    rows: List[List[str]] = []
    for entry_name, payload in unzip_files(data, ".xlsx"):
        parsed = parse_sheet_strings(payload, entry_name)
        if not parsed.headers:
            continue
        if not headers:
            headers = parsed.headers
        rows.extend(parsed.rows)
    return ParsedSheet(headers=headers, rows=rows)


def parse_sheet_file(source: Source, name: str = "") -> ParsedSheet:
    data, file_name = _load_bytes(source)
    if (name or file_name).lower().endswith(".zip"):
        return parse_sheet_zip(data)
    return parse_sheet_strings(data, name or file_name)


def _text_cell(ws, value: str):
    cell = WriteOnlyCell(ws, value=ILLEGAL_CHARACTERS_RE.sub("", value))
    # Keep values such as "=A1" or barcodes as literal text
    cell.data_type = "s"
    cell.number_format = TEXT_FORMAT
    return cell


def write_workbook(headers: Sequence[str], rows: Sequence[Sequence[str]], sheet_name: str = "Sheet1") -> bytes:
    """Serialize a table to .xlsx bytes, every cell stored as text."""
    wb = Workbook(write_only=True)
    ws = wb.create_sheet(title=sheet_name)
    ws.append([_text_cell(ws, str(h)) for h in headers])
    for row in rows:
        ws.append([_text_cell(ws, "" if v is None else str(v)) for v in row])
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def zip_files(files: Dict[str, bytes]) -> bytes:
    bio = BytesIO()
    with zipfile.ZipFile(bio, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, payload in files.items():
            zf.writestr(name, payload)
    return bio.getvalue()


def unzip_files(data: bytes, extension: str = ".xlsx") -> List[Tuple[str, bytes]]:
    try:
        zf = zipfile.ZipFile(BytesIO(data))
    except zipfile.BadZipFile as e:
        raise InputError(f"Not a readable zip archive: {e}") from e
    out: List[Tuple[str, bytes]] = []
    with zf:
        for info in zf.infolist():
            if info.is_dir() or info.filename.startswith("__MACOSX"):
                continue
            if not info.filename.lower().endswith(extension.lower()):
                continue
            out.append((info.filename, zf.read(info)))
    return out

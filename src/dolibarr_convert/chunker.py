from __future__ import annotations
import asyncio
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Sequence, Union

from .io import write_workbook, zip_files


log = logging.getLogger(__name__)

MAX_ROWS_PER_FILE = 800

Packager = Callable[[Dict[str, bytes]], bytes]
AsyncPackager = Callable[[Dict[str, bytes]], Awaitable[bytes]]

_DOLIBARR_HEADER_RE = re.compile(r"\(p\.[a-z_]+\)", flags=re.IGNORECASE)


@dataclass(frozen=True)
class OutputBundle:
    data: bytes
    is_archive: bool
    file_count: int


def is_dolibarr_format(headers: Sequence[str]) -> bool:
    """Dolibarr import headers carry the field code, e.g. 'Réf.* (p.ref)'."""
    return any(_DOLIBARR_HEADER_RE.search(h or "") for h in headers)


def split_pages(rows: Sequence, size: int = MAX_ROWS_PER_FILE) -> List[list]:
    if size <= 0:
        raise ValueError("page size must be positive")
    return [list(rows[i : i + size]) for i in range(0, len(rows), size)]


def page_filename(prefix: str, number: int) -> str:
    return f"{prefix}_{number}.xlsx"


def needs_split(row_count: int, max_rows: int = MAX_ROWS_PER_FILE) -> bool:
    return row_count > max_rows


def render_pages(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    sheet_name: str,
    prefix: str,
    max_rows: int = MAX_ROWS_PER_FILE,
) -> Dict[str, bytes]:
    pages: Dict[str, bytes] = {}
    for i, chunk in enumerate(split_pages(rows, max_rows), start=1):
        pages[page_filename(prefix, i)] = write_workbook(headers, chunk, sheet_name)
    return pages


def build_output(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    sheet_name: str,
    prefix: str,
    split: bool = True,
    max_rows: int = MAX_ROWS_PER_FILE,
    packager: Packager = zip_files,
) -> OutputBundle:
    """One workbook, or a zip of fixed-size workbooks when `split` and over `max_rows`."""
    if not (split and needs_split(len(rows), max_rows)):
        log.info(f"Writing {len(rows)} rows to a single workbook")
        return OutputBundle(data=write_workbook(headers, rows, sheet_name), is_archive=False, file_count=1)
    pages = render_pages(headers, rows, sheet_name, prefix, max_rows)
    log.info(f"Splitting {len(rows)} rows into {len(pages)} workbooks of at most {max_rows} rows")
    return OutputBundle(data=packager(pages), is_archive=True, file_count=len(pages))


async def build_output_async(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    sheet_name: str,
    prefix: str,
    split: bool = True,
    max_rows: int = MAX_ROWS_PER_FILE,
    packager: Union[Packager, AsyncPackager] = zip_files,
) -> OutputBundle:
    """Same as build_output; a coroutine packager is awaited, a plain one runs in a worker thread."""
    if not (split and needs_split(len(rows), max_rows)):
        return build_output(headers, rows, sheet_name, prefix, split=False)
    pages = render_pages(headers, rows, sheet_name, prefix, max_rows)
    if inspect.iscoroutinefunction(packager):
        data = await packager(pages)
    else:
        data = await asyncio.to_thread(packager, pages)
    return OutputBundle(data=data, is_archive=True, file_count=len(pages))

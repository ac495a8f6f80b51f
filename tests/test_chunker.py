"""
Unit tests for output splitting and packaging.

Run: pytest tests/test_chunker.py -v
"""

import asyncio
import zipfile
from io import BytesIO

import pytest
from openpyxl import load_workbook

from dolibarr_convert.chunker import (
    build_output,
    build_output_async,
    is_dolibarr_format,
    page_filename,
    split_pages,
)


DOLIBARR_HEADERS = ["Réf.* (p.ref)", "Libellé* (p.label)"]


def make_rows(n):
    return [[f"REF{i:04d}", f"Item {i}"] for i in range(n)]


def page_sizes(data: bytes):
    sizes = []
    with zipfile.ZipFile(BytesIO(data)) as zf:
        for name in zf.namelist():
            ws = load_workbook(BytesIO(zf.read(name)), read_only=True).worksheets[0]
            sizes.append(sum(1 for _ in ws.iter_rows(values_only=True)) - 1)
    return sizes


class TestSplitPages:
    def test_sizes(self):
        assert [len(p) for p in split_pages(list(range(1601)), 800)] == [800, 800, 1]

    def test_exact_multiple_has_no_empty_page(self):
        assert [len(p) for p in split_pages(list(range(1600)), 800)] == [800, 800]

    def test_empty(self):
        assert split_pages([], 800) == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            split_pages([1], 0)

    def test_page_filename(self):
        assert page_filename("produits", 1) == "produits_1.xlsx"


class TestIsDolibarrFormat:
    def test_detects_field_codes(self):
        assert is_dolibarr_format(DOLIBARR_HEADERS)
        assert not is_dolibarr_format(["Ref", "Name"])


class TestBuildOutput:
    def test_1601_rows_make_three_pages(self):
        bundle = build_output(DOLIBARR_HEADERS, make_rows(1601), "Produits", "produits", max_rows=800)

        assert bundle.is_archive
        assert bundle.file_count == 3
        assert page_sizes(bundle.data) == [800, 800, 1]

    def test_split_disabled_keeps_single_table(self):
        bundle = build_output(["Ref", "Name"], make_rows(2000), "Fusion", "fusion", split=False)

        assert not bundle.is_archive
        assert bundle.file_count == 1
        ws = load_workbook(BytesIO(bundle.data), read_only=True).worksheets[0]
        assert ws.title == "Fusion"
        assert sum(1 for _ in ws.iter_rows(values_only=True)) == 2001

    def test_at_threshold_not_split(self):
        bundle = build_output(DOLIBARR_HEADERS, make_rows(800), "Produits", "produits")
        assert not bundle.is_archive

    def test_injected_packager(self):
        seen = {}

        def packager(pages):
            seen.update(pages)
            return b"packed"

        bundle = build_output(DOLIBARR_HEADERS, make_rows(5), "Produits", "p", max_rows=2, packager=packager)
        assert bundle.data == b"packed"
        assert sorted(seen) == ["p_1.xlsx", "p_2.xlsx", "p_3.xlsx"]


class TestBuildOutputAsync:
    def test_coroutine_packager(self):
        async def packager(pages):
            return b"|".join(name.encode() for name in pages)

        bundle = asyncio.run(
            build_output_async(DOLIBARR_HEADERS, make_rows(3), "Produits", "produits", max_rows=2, packager=packager)
        )
        assert bundle.data == b"produits_1.xlsx|produits_2.xlsx"
        assert bundle.file_count == 2

    def test_default_packager_runs_in_thread(self):
        bundle = asyncio.run(build_output_async(DOLIBARR_HEADERS, make_rows(3), "Produits", "produits", max_rows=2))
        assert page_sizes(bundle.data) == [2, 1]

    def test_small_output_not_archived(self):
        bundle = asyncio.run(build_output_async(DOLIBARR_HEADERS, make_rows(1), "Produits", "produits"))
        assert not bundle.is_archive

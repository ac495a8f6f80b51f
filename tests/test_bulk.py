"""
Unit tests for the bulk reference and price editors.

Run: pytest tests/test_bulk.py -v
"""

from dolibarr_convert.bulk_prices import (
    OUTPUT_HEADERS as PRICE_HEADERS,
    detect_price_columns,
    generate_prices_workbook,
    parse_prices_from_text,
    parse_prices_from_workbook,
    parse_prices_from_zip,
    text_pairs_to_rows,
)
from dolibarr_convert.bulk_refs import (
    find_ref_column,
    generate_refs_workbook,
    modify_refs,
    parse_refs_from_text,
    parse_refs_from_workbook,
    parse_refs_from_zip,
)
from dolibarr_convert.io import zip_files
from dolibarr_convert.operations import TextOperation, TextOperationKind
from dolibarr_convert.pricing import PriceOperation, PriceOperationKind, PriceRow, PriceTarget, apply_to_prices


class TestRefs:
    def test_text(self):
        assert parse_refs_from_text(" A1 \n\n\tB2\r\nC3") == ["A1", "B2", "C3"]

    def test_find_ref_column(self):
        assert find_ref_column(["Libellé", "Réf.* (p.ref)"]) == 1
        assert find_ref_column(["Référence article"]) == 0
        assert find_ref_column(["Name", "Price"]) is None

    def test_workbook_every_sheet(self, workbook_builder):
        data = workbook_builder(
            {
                "A": [["Ref", "Name"], ["R1", "x"], [None, "y"], [123, "z"]],
                "B": [["Name"], ["ignored"]],
                "C": [["Name", "Référence"], ["n", "R2"]],
            }
        )
        assert parse_refs_from_workbook(data, "refs.xlsx") == ["R1", "123", "R2"]

    def test_zip(self, workbook_builder):
        data = zip_files(
            {
                "produits_1.xlsx": workbook_builder({"P": [["Réf.* (p.ref)"], ["R1"]]}),
                "__MACOSX/produits_1.xlsx": b"junk",
                "produits_2.xlsx": workbook_builder({"P": [["Réf.* (p.ref)"], ["R2"]]}),
            }
        )
        assert parse_refs_from_zip(data) == ["R1", "R2"]

    def test_generate_workbook(self, workbook_reader):
        results = modify_refs(["A", "B"], TextOperation(TextOperationKind.ADD_SUFFIX, "-X"))
        title, rows = workbook_reader(generate_refs_workbook(results))

        assert title == "Modifications"
        assert rows == [["Ref", "Nouvelle Ref"], ["A", "A-X"], ["B", "B-X"]]


class TestPricesText:
    def test_skips_invalid_lines(self):
        text = "A1\t10,50\nno-tab-here\nB2\tabc\n\t5\nC3\t7 €\n"
        assert parse_prices_from_text(text) == [("A1", 10.5), ("C3", 7.0)]

    def test_pairs_to_rows(self):
        [ht] = text_pairs_to_rows([("A1", 10.5)], PriceTarget.HT, 21.0)
        [ttc] = text_pairs_to_rows([("A1", 10.5)], "TTC", 6.0)

        assert (ht.price_ht, ht.price_ttc, ht.tva_rate) == ("10.50", "", "21.0")
        assert (ttc.price_ht, ttc.price_ttc, ttc.tva_rate) == ("", "10.50", "6.0")


class TestPricesWorkbook:
    def test_detect_dolibarr_columns(self):
        cols = detect_price_columns(PRICE_HEADERS)
        assert (cols.ref, cols.ht, cols.price_min, cols.ttc, cols.tva, cols.base_type) == (0, 1, 2, 3, 4, 5)

    def test_generic_price_fallback(self):
        cols = detect_price_columns(["Référence", "Nom", "Prix"])
        assert cols.ht == 2
        assert cols.ttc is None

    def test_generic_price_ignored_when_ttc_found(self):
        cols = detect_price_columns(["Réf", "Prix TTC", "Prix"])
        assert cols.ttc == 1
        assert cols.ht is None

    def test_needs_ref_and_price(self):
        assert detect_price_columns(["Nom", "Prix"]) is None
        assert detect_price_columns(["Ref", "Nom"]) is None

    def test_parse_rows(self, workbook_builder):
        data = workbook_builder(
            {
                "Produits": [
                    PRICE_HEADERS,
                    ["A1", "100", "80", "121", "21", "HT"],
                    ["A2", "n/a", None, None, "21", "HT"],
                    [None, "5", None, None, None, None],
                    ["A3", None, None, "12,10", "21", "TTC"],
                ]
            }
        )
        rows = parse_prices_from_workbook(data, "prix.xlsx")

        assert [r.ref for r in rows] == ["A1", "A3"]
        assert rows[0] == PriceRow("A1", "100", "121", "80", "21", "HT")
        assert rows[1].price_ttc == "12.1"

    def test_zip_and_output(self, workbook_builder, workbook_reader):
        book = workbook_builder({"P": [["Ref", "Prix"], ["A1", 100]]})
        rows = parse_prices_from_zip(zip_files({"prix.xlsx": book}))
        results = apply_to_prices(rows, PriceOperation(PriceOperationKind.INCREASE_FIXED, 5), PriceTarget.HT)

        title, out = workbook_reader(generate_prices_workbook(results))
        assert title == "Modifications"
        assert out[0] == PRICE_HEADERS
        assert out[1][:2] == ["A1", "105.00"]

"""
Unit tests for the spreadsheet merge tool.

Run: pytest tests/test_merge.py -v
"""

from dolibarr_convert.config import Settings
from dolibarr_convert.io import ParsedSheet, parse_sheet_file, zip_files
from dolibarr_convert.merge import ColumnPair, MergeOptions, generate_merge_output, merge_sheets


BASE = ParsedSheet(
    headers=["Ref", "Title", "Description", "Price"],
    rows=[
        ["REF001", "Title EN 1", "Desc EN 1", "100"],
        ["REF002", "Title EN 2", "Desc EN 2", "200"],
        ["REF003", "Title EN 3", "Desc EN 3", "300"],
    ],
)

SOURCE = ParsedSheet(
    headers=["Code", "Titre", "Desc"],
    rows=[
        ["ref001", "Titre FR 1", "Desc FR 1"],
        [" REF003 ", "Titre FR 3", ""],
        ["REF001", "Ignored duplicate", "Ignored"],
    ],
)

OPTIONS = MergeOptions(
    base_key_col=0,
    source_key_col=0,
    mappings=[ColumnPair(base_col=1, source_col=1), ColumnPair(base_col=2, source_col=2)],
)


class TestMergeSheets:
    def test_matched_rows_updated(self):
        result = merge_sheets(BASE, SOURCE, OPTIONS)

        assert result.rows[0] == ["REF001", "Titre FR 1", "Desc FR 1", "100"]
        assert result.rows[1] == BASE.rows[1]
        assert result.matched_count == 2
        assert result.unmatched_count == 1
        assert result.unmatched_refs == ["REF002"]
        assert result.total_rows == 3

    def test_empty_source_value_keeps_base(self):
        result = merge_sheets(BASE, SOURCE, OPTIONS)
        assert result.rows[2] == ["REF003", "Titre FR 3", "Desc EN 3", "300"]

    def test_blank_keys_not_reported(self):
        base = ParsedSheet(headers=["Ref"], rows=[["", "x"], ["REF9"]])
        result = merge_sheets(base, SOURCE, OPTIONS)
        assert result.unmatched_refs == ["REF9"]
        assert result.unmatched_count == 2

    def test_base_untouched(self):
        merge_sheets(BASE, SOURCE, OPTIONS)
        assert BASE.rows[0][1] == "Title EN 1"


class TestGenerateMergeOutput:
    def test_plain_headers_never_split(self):
        rows = [[f"R{i}", "x"] for i in range(5)]
        result = merge_sheets(ParsedSheet(["Ref", "Name"], rows), ParsedSheet(["Ref"], []), MergeOptions(0, 0))
        bundle = generate_merge_output(result, Settings(max_rows_per_file=2))
        assert not bundle.is_archive

    def test_dolibarr_headers_split(self):
        rows = [[f"R{i}", "x"] for i in range(5)]
        base = ParsedSheet(["Réf.* (p.ref)", "Libellé* (p.label)"], rows)
        result = merge_sheets(base, ParsedSheet(["Ref"], []), MergeOptions(0, 0))
        bundle = generate_merge_output(result, Settings(max_rows_per_file=2))
        assert bundle.is_archive
        assert bundle.file_count == 3


class TestParseSheetFile:
    def test_sheets_with_same_headers_are_concatenated(self, workbook_builder):
        data = workbook_builder(
            {
                "A": [["Ref", "Name"], ["R1", "One"], [None, None]],
                "B": [["Ref", "Name"], ["R2", 2]],
                "Other": [["X", "Y"], ["1", "2"]],
            }
        )
        sheet = parse_sheet_file(data, "base.xlsx")
        assert sheet.headers == ["Ref", "Name"]
        assert sheet.rows == [["R1", "One"], ["R2", "2"]]

    def test_zip_of_workbooks(self, workbook_builder):
        one = workbook_builder({"S": [["Ref"], ["R1"]]})
        two = workbook_builder({"S": [["Ref"], ["R2"]]})
        data = zip_files({"fusion_1.xlsx": one, "fusion_2.xlsx": two, "notes.txt": b"x"})

        sheet = parse_sheet_file(data, "fusion.zip")
        assert sheet.rows == [["R1"], ["R2"]]

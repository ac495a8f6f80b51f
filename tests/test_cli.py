"""
End-to-end tests for the command line entry point.

Run: pytest tests/test_cli.py -v
"""

import catalog_to_dolibarr


class TestCli:
    def test_list(self, capsys):
        assert catalog_to_dolibarr.main(["list"]) == 0
        assert "valkenpower-dolibarr" in capsys.readouterr().out

    def test_excel(self, tmp_path, product_sheet, workbook_reader, capsys):
        src = tmp_path / "catalogue.xlsx"
        src.write_bytes(product_sheet)
        out = tmp_path / "out" / "produits.xlsx"

        code = catalog_to_dolibarr.main(["excel", "--input", str(src), "--output", str(out), "--tva-rate", "6"])

        assert code == 0
        _, rows = workbook_reader(out.read_bytes())
        assert rows[1][0] == "REF001"
        assert "Wrote 3 Dolibarr rows" in capsys.readouterr().out

    def test_excel_show_mapping(self, tmp_path, product_sheet, capsys):
        src = tmp_path / "catalogue.xlsx"
        src.write_bytes(product_sheet)

        assert catalog_to_dolibarr.main(["excel", "--input", str(src), "--show-mapping", "--map", "Poids="]) == 0
        out = capsys.readouterr().out
        assert "Référence" in out and "-> ref" in out
        assert "Poids" in out

    def test_feed_split_writes_zip(self, tmp_path, feed_xml, capsys):
        src = tmp_path / "feed.xml"
        src.write_text(feed_xml, encoding="utf-8")
        settings = tmp_path / "settings.json"
        settings.write_text('{"max_rows_per_file": 2}', encoding="utf-8")

        code = catalog_to_dolibarr.main(
            ["--settings", str(settings), "feed", "--input", str(src), "--output", str(tmp_path / "valken.xlsx")]
        )

        assert code == 0
        assert (tmp_path / "valken.zip").exists()
        assert "in 2 files" in capsys.readouterr().out

    def test_refs_from_text(self, tmp_path, workbook_reader):
        src = tmp_path / "refs.txt"
        src.write_text("A1\nA2\n", encoding="utf-8")
        out = tmp_path / "refs.xlsx"

        code = catalog_to_dolibarr.main(
            ["refs", "--text", str(src), "--output", str(out), "--ref-op", "add-prefix", "--ref-value", "X-"]
        )

        assert code == 0
        _, rows = workbook_reader(out.read_bytes())
        assert rows[1] == ["A1", "X-A1"]

    def test_bad_feed_reports_error(self, tmp_path, capsys):
        src = tmp_path / "feed.xml"
        src.write_text("<products>", encoding="utf-8")

        code = catalog_to_dolibarr.main(["feed", "--input", str(src), "--output", str(tmp_path / "x.xlsx")])

        assert code == 1
        assert capsys.readouterr().err.startswith("Error: XML parse error")

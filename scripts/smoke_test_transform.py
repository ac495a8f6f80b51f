#!/usr/bin/env python3
"""Basic smoke test for the conversion modules.

Converts a small inline feed and spreadsheet and checks headers and
non-empty output. Nothing is read from or written to disk.
"""
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / 'src'))

from dolibarr_convert.feed import convert_feed, parse_feed_xml  # type: ignore
from dolibarr_convert.io import read_table  # type: ignore
from dolibarr_convert.mapping import auto_detect_mappings  # type: ignore
from dolibarr_convert.transform import convert_to_dolibarr  # type: ignore

SAMPLE_FEED = """<products>
  <product><model>SMOKE-1</model><barcode>123</barcode><titleFR>Test</titleFR>
  <priceEXVAT>10</priceEXVAT><priceINVAT>12.10</priceINVAT></product>
</products>"""

SAMPLE_CSV = "Référence;Désignation;Prix HT\nSMOKE-1;Test;10,00\n"


def main() -> int:
    feed = convert_feed(parse_feed_xml(SAMPLE_FEED))
    if not feed.rows:
        print("Smoke test failed: no feed rows produced")
        return 1

    table = read_table(SAMPLE_CSV.encode('utf-8'), 'sample.csv')
    excel = convert_to_dolibarr(table, auto_detect_mappings(table.headers))
    if not excel.rows or excel.rows[0][0] != 'SMOKE-1':
        print("Smoke test failed: spreadsheet conversion lost the reference")
        return 1

    print(f"Smoke test ok: feed {feed.total_rows} rows, spreadsheet {excel.total_rows} rows")
    print("Headers:", excel.headers)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())

"""
Shared test fixtures: in-memory workbook builders.
"""

import sys
from io import BytesIO
from pathlib import Path

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

import pytest
from openpyxl import Workbook, load_workbook


def make_workbook(sheets) -> bytes:
    """Build .xlsx bytes from {sheet_name: [row, ...]}."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def read_back(data: bytes):
    """Return (sheet_title, rows) of the first sheet of .xlsx bytes."""
    wb = load_workbook(BytesIO(data))
    ws = wb.worksheets[0]
    rows = [list(r) for r in ws.iter_rows(values_only=True)]
    return ws.title, rows


@pytest.fixture
def workbook_builder():
    return make_workbook


@pytest.fixture
def workbook_reader():
    return read_back


@pytest.fixture
def product_sheet() -> bytes:
    """Supplier export with a title line above the real header."""
    return make_workbook(
        {
            "Articles": [
                ["Catalogue fournisseur 2024", None, None, None, None],
                [None, None, None, None, None],
                ["Référence", "Désignation", "Prix HT", "EAN", "Poids"],
                ["REF001", "Perceuse", "12,50 €", "8720028050130", 1.5],
                ["REF002", "Visseuse", "1.234,56", None, None],
                [None, None, None, None, None],
                ["REF001", None, "3", "8720028050147", 0.2],
            ]
        }
    )


@pytest.fixture
def feed_xml() -> str:
    return """<?xml version="1.0" encoding="UTF-8"?>
<products>
  <product>
    <model>VP-100</model>
    <barcode>8720028050130</barcode>
    <titleNL>Boormachine</titleNL>
    <titleEN>Drill</titleEN>
    <titleFR></titleFR>
    <priceEXVAT>100.00</priceEXVAT>
    <priceINVAT>121.00</priceINVAT>
    <specialpriceEXVAT>90.00</specialpriceEXVAT>
    <descriptionEN><![CDATA[<p>Strong</p><p>Light &amp; fast</p>]]></descriptionEN>
    <mainimage>https://cdn.example.com/vp-100.jpg</mainimage>
    <ProdWeight>1.2</ProdWeight>
    <PackWeight>1.5</PackWeight>
    <ProdLength>0</ProdLength>
    <PackLength>300</PackLength>
  </product>
  <product>
    <model>VP-200</model>
    <barcode>8720028050130</barcode>
    <titleNL>Zaag</titleNL>
    <priceEXVAT></priceEXVAT>
    <priceINVAT></priceINVAT>
  </product>
  <product>
    <model>VP-100</model>
    <barcode></barcode>
    <titleFR>Perceuse</titleFR>
    <priceEXVAT>50</priceEXVAT>
  </product>
</products>
"""

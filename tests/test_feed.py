"""
Unit tests for the vendor XML feed conversion.

Run: pytest tests/test_feed.py -v
"""

import zipfile
from io import BytesIO

import pytest

from dolibarr_convert.config import Settings
from dolibarr_convert.errors import FeedParseError, InputError
from dolibarr_convert.feed import FeedProduct, build_feed_columns, convert_feed, parse_feed_xml, title_for
from dolibarr_convert.operations import TextOperation, TextOperationKind
from dolibarr_convert.options import ConversionOptions
from dolibarr_convert.pricing import PriceOperation, PriceOperationKind
from dolibarr_convert.quality import WarningKind


class TestParseFeedXml:
    def test_reads_products(self, feed_xml):
        products = parse_feed_xml(feed_xml)

        assert [p.model for p in products] == ["VP-100", "VP-200", "VP-100"]
        first = products[0]
        assert first.barcode == "8720028050130"
        assert first.price_ex_vat == "100.00"
        assert first.prod_weight == 1.2
        assert first.pack_length == 300.0
        assert first.description_en == "<p>Strong</p><p>Light &amp; fast</p>"

    def test_namespaced_and_nested(self):
        xml = '<feed xmlns="urn:x"><items><product><model> A1 </model></product></items></feed>'
        assert [p.model for p in parse_feed_xml(xml)] == ["A1"]

    def test_bytes_input(self):
        assert parse_feed_xml(b"<products><product><model>B</model></product></products>")[0].model == "B"

    def test_malformed_xml_raises(self):
        with pytest.raises(FeedParseError) as exc:
            parse_feed_xml("<products><product></products>")
        assert "XML parse error" in str(exc.value)
        assert isinstance(exc.value, InputError)


class TestLanguageFallback:
    def test_title_fallbacks(self):
        p = FeedProduct(title_nl="NL", title_en="EN")
        assert title_for(p, "FR") == "EN"
        assert title_for(p, "DE") == "EN"
        assert title_for(FeedProduct(title_nl="NL"), "EN") == "NL"
        assert title_for(FeedProduct(title_fr="FR", title_en="EN"), "NL") == ""


class TestFeedColumns:
    def test_default_columns(self):
        ids = [c.id for c in build_feed_columns(ConversionOptions())]
        assert ids == [
            "ref", "label", "fk_product_type", "tosell", "tobuy", "description", "url",
            "weight", "weight_units", "price", "price_min", "price_ttc", "tva_tx",
            "price_base_type", "barcode",
        ]

    def test_switches(self):
        options = ConversionOptions(
            include_url=False,
            include_weight=False,
            include_dimensions=True,
            include_price_min=False,
            include_barcode=False,
        )
        headers = [c.header for c in build_feed_columns(options)]
        assert "Longueur (p.length)" in headers
        assert "Code-barres (p.barcode)" not in headers
        assert "URL publique (p.url)" not in headers


class TestConvertFeed:
    def test_rows_and_warnings(self, feed_xml):
        result = convert_feed(parse_feed_xml(feed_xml))
        headers = result.headers
        first = dict(zip(headers, result.rows[0]))

        assert first["Réf.* (p.ref)"] == "VP-100"
        assert first["Libellé* (p.label)"] == "Drill"
        assert first["Description (p.description)"] == "Strong | Light & fast"
        assert first["Weight (p.weight)"] == "1.5"
        assert first["Unité de poids (p.weight_units)"] == "kg"
        assert first["Prix de vente TTC (p.price_ttc)"] == "121.00"
        assert first["Taux TVA (p.tva_tx)"] == "21.0"

        kinds = [(w.kind, w.row) for w in result.warnings]
        assert (WarningKind.DUPLICATE_BARCODE, 2) in kinds
        assert (WarningKind.MISSING_PRICE, 2) in kinds
        assert (WarningKind.MISSING_BARCODE, 3) in kinds
        assert (WarningKind.DUPLICATE_REF, 3) in kinds
        assert WarningKind.MISSING_TITLE not in {w.kind for w in result.warnings}

    def test_duplicate_barcode_names_first_owner(self, feed_xml):
        result = convert_feed(parse_feed_xml(feed_xml))
        [dup] = [w for w in result.warnings if w.kind is WarningKind.DUPLICATE_BARCODE]
        assert "VP-100" in dup.message

    def test_products_without_model_are_not_duplicates(self):
        products = [FeedProduct(title_fr="A", price_ex_vat="1"), FeedProduct(title_fr="B", price_ex_vat="2")]
        result = convert_feed(products, ConversionOptions(include_barcode=False))
        assert not [w for w in result.warnings if w.kind is WarningKind.DUPLICATE_REF]

    def test_product_weight_and_dimensions(self, feed_xml):
        options = ConversionOptions(weight_source="product", include_dimensions=True, dimension_source_unit="cm")
        result = convert_feed(parse_feed_xml(feed_xml), options)
        first = dict(zip(result.headers, result.rows[0]))

        assert first["Weight (p.weight)"] == "1.2"
        assert first["Longueur (p.length)"] == "300"
        assert first["Unité de longueur (p.length_units)"] == "cm"
        assert first["Largeur (p.width)"] == ""
        assert first["Unité de largeur (p.width_units)"] == ""

    def test_ref_and_price_operations(self, feed_xml):
        options = ConversionOptions(
            ref_operation=TextOperation(TextOperationKind.ADD_PREFIX, "VK-"),
            price_operation=PriceOperation(PriceOperationKind.INCREASE_PERCENT, 10),
        )
        result = convert_feed(parse_feed_xml(feed_xml), options)
        first = dict(zip(result.headers, result.rows[0]))

        assert first["Réf.* (p.ref)"] == "VK-VP-100"
        assert first["Prix de vente HT (p.price)"] == "110.00"
        assert first["Prix de vente TTC (p.price_ttc)"] == "133.10"

    def test_large_feed_is_split(self):
        products = [FeedProduct(model=f"M{i}", barcode=str(i), title_fr="T", price_ex_vat="1") for i in range(5)]
        result = convert_feed(products, settings=Settings(max_rows_per_file=2))

        assert result.is_archive
        assert result.file_count == 3
        with zipfile.ZipFile(BytesIO(result.data)) as zf:
            assert zf.namelist() == ["produits_1.xlsx", "produits_2.xlsx", "produits_3.xlsx"]

"""Parse-and-normalize boundary for rows coming out of the store."""

from decimal import Decimal

from storefront.schemas import CatalogItem, ProductDraft, ProductImage, ProductRow, normalize_images
from storefront.services.formatting import collation_key, format_price_brl, item_type_label, price_label


class TestNormalizeImages:
    """Test normalize_images on untyped payloads."""

    def test_non_list_inputs_become_empty(self):
        for raw in (None, "", "x", 3, {"url": "a", "path": "b"}, True):
            assert normalize_images(raw) == []

    def test_drops_malformed_entries(self):
        raw = [
            {"url": "http://cdn/a.png", "path": "products/1/a.png", "alt": "a.png"},
            {"url": "http://cdn/b.png"},
            {"path": "products/1/c.png"},
            {"url": 1, "path": "products/1/d.png"},
            "http://cdn/e.png",
            None,
            ["nested"],
        ]
        out = normalize_images(raw)
        assert [img.path for img in out] == ["products/1/a.png"]

    def test_non_string_alt_is_dropped_not_the_entry(self):
        out = normalize_images([{"url": "u", "path": "p", "alt": 42}])
        assert out == [ProductImage(url="u", path="p", alt=None)]

    def test_idempotent_on_its_own_output(self):
        raw = [{"url": "u1", "path": "p1"}, {"bad": True}, {"url": "u2", "path": "p2", "alt": "x"}]
        once = normalize_images(raw)
        assert normalize_images(once) == once
        assert normalize_images([img.model_dump() for img in once]) == once


class TestCatalogItem:
    """Test CatalogItem defaults and coercions."""

    def test_nulls_take_defaults(self):
        item = CatalogItem.model_validate(
            {"id": 1, "name": None, "category": None, "item_type": None, "price": None,
             "images": None, "is_active": None, "sort_order": None}
        )
        assert item.name == ""
        assert item.item_type == "product"
        assert item.is_active is True
        assert item.sort_order == 0
        assert item.images == []
        assert item.cover is None

    def test_unknown_item_type_is_product(self):
        assert CatalogItem(id=1, item_type="kit").item_type == "product"
        assert CatalogItem(id=1, item_type="service").item_type == "service"

    def test_cover_is_first_image(self):
        item = CatalogItem(id=1, images=[{"url": "u1", "path": "p1"}, {"url": "u2", "path": "p2"}])
        assert item.cover.path == "p1"

    def test_row_specifications_must_be_object(self):
        assert ProductRow(id=1, specifications=[1, 2]).specifications is None
        assert ProductRow(id=1, specifications="{}").specifications is None
        assert ProductRow(id=1, specifications={"tela": "7"}).specifications == {"tela": "7"}


class TestProductDraft:
    """Test draft creation and hydration."""

    def test_empty_draft_defaults(self):
        d = ProductDraft.from_row()
        assert d.id is None
        assert d.name == ""
        assert d.price is None
        assert d.stock == 0
        assert d.sort_order == 0
        assert d.is_active is True
        assert d.item_type == "product"
        assert d.images == []
        assert d.specifications_text == "{}"

    def test_from_row_pretty_prints_specifications(self):
        row = ProductRow(id=7, name="GPS X200", price=Decimal("1999.90"), stock=None,
                         specifications={"precisão": "RTK"})
        d = ProductDraft.from_row(row)
        assert d.id == 7
        assert d.price == 1999.9
        assert d.stock == 0
        assert d.specifications_text == '{\n  "precisão": "RTK"\n}'

    def test_from_row_null_specifications(self):
        assert ProductDraft.from_row(ProductRow(id=1)).specifications_text == "{}"


class TestFormatting:
    """Test pt-BR labels."""

    def test_format_price_brl(self):
        assert format_price_brl(Decimal("1999.9")) == "R$\u00a01.999,90"
        assert format_price_brl(0) == "R$\u00a00,00"
        assert format_price_brl(1234567.891) == "R$\u00a01.234.567,89"

    def test_price_label_on_request(self):
        assert price_label(None) == "Sob consulta"

    def test_item_type_label(self):
        assert item_type_label("service") == "Serviço"
        assert item_type_label("product") == "Produto"

    def test_collation_ignores_accents_and_case(self):
        words = ["Pulverização", "ônibus", "GPS", "agricultura", "Óleo"]
        assert sorted(words, key=collation_key) == ["agricultura", "GPS", "Óleo", "ônibus", "Pulverização"]

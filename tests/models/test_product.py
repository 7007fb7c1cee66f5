"""Tests for catalog_import/models/product.py"""

from decimal import Decimal

from catalog_import.models import (
    DescriptionBlock,
    TransformedProduct,
    TransformedVariant,
    to_jsonable,
)


class TestTransformedProduct:
    def test_defaults(self):
        product = TransformedProduct(
            name="Romper", slug="romper-abc", sku="KP-ABCDEF-00", category_id="cat-1",
            base_price=Decimal("28.99"), cost_price=Decimal("10.00"),
        )
        assert product.variants == []
        assert product.currency == "USD"
        assert product.compare_at_price is None

    def test_to_dict_serializes_decimals(self):
        product = TransformedProduct(
            name="Romper", slug="romper-abc", sku="KP-ABCDEF-00", category_id="cat-1",
            base_price=Decimal("28.99"), cost_price=Decimal("10.00"),
            description=[DescriptionBlock(key="k1", text="Soft.")],
            variants=[TransformedVariant(sku="KP-ABCDEF-1A", name="Pink", size="S",
                                         price=Decimal("28.99"))],
        )
        data = product.to_dict()
        assert data["base_price"] == "28.99"
        assert data["variants"][0]["price"] == "28.99"
        assert data["description"][0] == {"key": "k1", "text": "Soft.", "style": "normal"}


class TestToJsonable:
    def test_nested(self):
        value = {"a": [Decimal("1.50"), {"b": Decimal("2")}], "c": "x", "d": None}
        assert to_jsonable(value) == {"a": ["1.50", {"b": "2"}], "c": "x", "d": None}

    def test_tuple_becomes_list(self):
        assert to_jsonable((Decimal("1"), 2)) == ["1", 2]

"""Tests for Shop Minis product transforms and the catalog loader."""

from datetime import datetime, timedelta
from pathlib import Path

import orjson
import pytest

from shop_story.models import EventSource, Price, Product
from shop_story.services.catalog import SAMPLE_PRODUCTS, load_catalog
from shop_story.services.product_transform import (
    batch_transform_products,
    create_behavior_metadata_from_product,
    create_product_set_from_products,
    extract_colors,
    extract_product_metadata,
    get_price_tier,
    transform_price,
    transform_shop_minis_product,
)


def _product(product_id: str, amount: str, product_type: str = "Shirts", **fields) -> Product:
    return Product(id=product_id, title=product_id, price=Price(amount=amount), product_type=product_type, **fields)


class TestTransformPrice:
    """Tests for price payload normalization."""

    @pytest.mark.parametrize(
        "payload,expected",
        [
            (None, Price(amount="0.00")),
            ("", Price(amount="0.00")),
            ("19.99", Price(amount="19.99")),
            ("$68.00", Price(amount="68.00")),
            ("1,299.00", Price(amount="1299.00")),
            ("free", Price(amount="0.00")),
            ({"amount": "USD 40"}, Price(amount="40")),
            (20, Price(amount="20.00")),
            (12.5, Price(amount="12.50")),
            ({"amount": "40.00", "currencyCode": "EUR"}, Price(amount="40.00", currency_code="EUR")),
            ({"amount": 15}, Price(amount="15")),
            ({"minVariantPrice": {"amount": "9.00", "currencyCode": "CAD"}}, Price(amount="9.00", currency_code="CAD")),
            ({"unexpected": True}, Price(amount="0.00")),
        ],
    )
    def test_shapes(self, payload, expected: Price) -> None:
        assert transform_price(payload) == expected


class TestTransformProduct:
    """Tests for SDK product payloads."""

    def test_full_payload(self) -> None:
        product = transform_shop_minis_product(SAMPLE_PRODUCTS[0])

        assert product.id == "prod-sage-linen-shirt"
        assert product.vendor == "Everlane"
        assert product.product_type == "Shirts"
        assert product.price.value == 68.0
        assert product.images[0].url.endswith("sage-linen-shirt.jpg")
        assert product.variants[0].selected_options[0].value == "Sage"
        assert product.variants[0].available_for_sale is True

    def test_aliases(self) -> None:
        product = transform_shop_minis_product(
            {
                "gid": "gid://shopify/Product/1",
                "name": "Linen Pants",
                "body": "Wide leg",
                "media": [{"src": "https://cdn.example.com/pants.jpg", "alt": "Pants"}],
                "priceRange": {"minVariantPrice": {"amount": "55.00", "currencyCode": "USD"}},
                "brand": "COS",
                "category": "Pants",
            }
        )

        assert product.id == "gid://shopify/Product/1"
        assert product.title == "Linen Pants"
        assert product.description == "Wide leg"
        assert product.images[0].id == "image-0"
        assert product.images[0].alt_text == "Pants"
        assert product.price.amount == "55.00"
        assert product.vendor == "COS"
        assert product.product_type == "Pants"
        assert product.compare_at_price is None

    def test_compare_at_price(self) -> None:
        product = transform_shop_minis_product(SAMPLE_PRODUCTS[1])

        assert product.compare_at_price == Price(amount="158.00")

    def test_batch_skips_missing_ids(self) -> None:
        products = batch_transform_products([{"title": "No id"}, {"id": "p1", "title": "Ok"}, {}])

        assert [p.id for p in products] == ["p1"]


class TestProductMetadata:
    """Tests for color extraction and derived metadata."""

    def test_colors_from_tags_title_and_options(self) -> None:
        product = transform_shop_minis_product(SAMPLE_PRODUCTS[0])

        assert extract_colors(product) == ["green", "sage"]

    def test_colors_from_tags_and_title(self) -> None:
        product = transform_shop_minis_product(SAMPLE_PRODUCTS[1])

        assert extract_colors(product) == ["pink", "blush"]

    def test_no_colors(self) -> None:
        assert extract_colors(_product("plain", "10.00")) == []

    @pytest.mark.parametrize(
        "price,tier",
        [(10, "budget"), (25, "mid-range"), (99.99, "mid-range"), (100, "premium"), (300, "luxury")],
    )
    def test_price_tier(self, price: float, tier: str) -> None:
        assert get_price_tier(price) == tier

    def test_extract_product_metadata(self) -> None:
        product = transform_shop_minis_product(SAMPLE_PRODUCTS[3])

        metadata = extract_product_metadata(product)

        assert metadata["colors"] == ["navy", "blue"]
        assert metadata["categories"] == ["Outerwear"]
        assert metadata["brand"] == "COS"
        assert metadata["price_range"] == "premium"
        assert metadata["availability"] is True

    def test_behavior_metadata(self) -> None:
        product = transform_shop_minis_product(SAMPLE_PRODUCTS[0])

        metadata = create_behavior_metadata_from_product(product, "story")

        assert metadata.source == EventSource.STORY
        assert metadata.price_at_time == 68.0
        assert metadata.context["color"] == "green"
        assert metadata.context["brand"] == "Everlane"
        assert metadata.context["confidence"] == 0.8


class TestCreateProductSet:
    """Tests for ad-hoc product bundles."""

    def test_medium_urgency(self, now: datetime) -> None:
        products = [_product("a", "60.00"), _product("b", "40.00"), _product("c", "20.00", "Pants")]

        product_set = create_product_set_from_products(products, "Neutral layers", "Layers", now=now)

        assert product_set.id.startswith("set-")
        assert product_set.original_price == 120.0
        assert product_set.bundle_price == 108.0
        assert product_set.savings == 12.0
        assert product_set.expires_at == now + timedelta(hours=72)
        assert product_set.category == "Shirts"
        assert product_set.completion_status == 1.0

    def test_high_urgency(self, now: datetime) -> None:
        product_set = create_product_set_from_products(
            [_product("a", "100.00")], "Last chance", "Flash", urgency="high", now=now
        )

        assert product_set.bundle_price == 85.0
        assert product_set.expires_at == now + timedelta(hours=24)

    def test_untyped_products_are_mixed(self, now: datetime) -> None:
        product_set = create_product_set_from_products(
            [_product("a", "10.00", product_type=None)], "Odds and ends", "Misc", now=now
        )

        assert product_set.category == "Mixed"


class TestLoadCatalog:
    """Tests for catalog loading."""

    def test_sample_catalog(self) -> None:
        catalog = load_catalog()

        assert len(catalog) == len(SAMPLE_PRODUCTS)

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_bytes(orjson.dumps([{"id": "p1", "title": "Tee", "price": "12.00"}]))

        catalog = load_catalog(path)

        assert [p.id for p in catalog] == ["p1"]
        assert catalog[0].price.amount == "12.00"

    def test_rejects_non_array(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_bytes(orjson.dumps({"products": []}))

        with pytest.raises(ValueError):
            load_catalog(path)

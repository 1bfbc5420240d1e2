"""Product catalog loading.

The curation engine and story generator read from an in-memory catalog of
``Product`` models. A JSON file of Shop Minis payloads can be supplied via
``CATALOG_PATH``; otherwise a small built-in sample catalog is used.
"""

from pathlib import Path
from typing import Any

import orjson
import structlog

from shop_story.models import Product
from shop_story.services.product_transform import batch_transform_products

logger = structlog.get_logger()


SAMPLE_PRODUCTS: list[dict[str, Any]] = [
    {
        "id": "prod-sage-linen-shirt",
        "title": "Sage Green Linen Shirt",
        "description": "Relaxed fit shirt in breathable, light linen",
        "price": {"amount": "68.00", "currencyCode": "USD"},
        "vendor": "Everlane",
        "productType": "Shirts",
        "tags": ["green", "linen", "spring", "bestseller"],
        "images": [{"id": "img-1", "url": "https://cdn.example.com/sage-linen-shirt.jpg"}],
        "variants": [
            {
                "id": "var-1",
                "title": "M / Sage",
                "price": {"amount": "68.00", "currencyCode": "USD"},
                "selectedOptions": [{"name": "Color", "value": "Sage"}],
            }
        ],
    },
    {
        "id": "prod-blush-silk-blouse",
        "title": "Blush Pink Silk Blouse",
        "description": "Fluid silk blouse with a soft drape",
        "price": {"amount": "128.00", "currencyCode": "USD"},
        "compareAtPrice": {"amount": "158.00", "currencyCode": "USD"},
        "vendor": "Reformation",
        "productType": "Shirts",
        "tags": ["pink", "silk", "trending"],
        "images": [{"id": "img-2", "url": "https://cdn.example.com/blush-silk-blouse.jpg"}],
    },
    {
        "id": "prod-cream-cashmere-sweater",
        "title": "Cream Cashmere Sweater",
        "description": "Warm, cozy crewneck sweater in grade-A cashmere",
        "price": {"amount": "145.00", "currencyCode": "USD"},
        "vendor": "Everlane",
        "productType": "Sweaters",
        "tags": ["cream", "cashmere", "fall", "popular"],
        "images": [{"id": "img-3", "url": "https://cdn.example.com/cream-cashmere.jpg"}],
    },
    {
        "id": "prod-navy-wool-coat",
        "title": "Navy Blue Wool Coat",
        "description": "Tailored wool coat lined for warm winter wear",
        "price": {"amount": "290.00", "currencyCode": "USD"},
        "compareAtPrice": {"amount": "350.00", "currencyCode": "USD"},
        "vendor": "COS",
        "productType": "Outerwear",
        "tags": ["navy", "wool", "winter"],
        "images": [{"id": "img-4", "url": "https://cdn.example.com/navy-wool-coat.jpg"}],
    },
    {
        "id": "prod-olive-cargo-pants",
        "title": "Olive Green Cargo Pants",
        "description": "Cotton twill cargo pants with a tapered leg",
        "price": {"amount": "98.00", "currencyCode": "USD"},
        "vendor": "Reformation",
        "productType": "Pants",
        "tags": ["olive", "green", "cotton"],
        "images": [{"id": "img-5", "url": "https://cdn.example.com/olive-cargo.jpg"}],
    },
    {
        "id": "prod-white-cotton-tee",
        "title": "White Cotton T-Shirt",
        "description": "Everyday organic cotton tee, light and fresh",
        "price": {"amount": "30.00", "currencyCode": "USD"},
        "vendor": "Everlane",
        "productType": "Basics",
        "tags": ["white", "cotton", "basics", "bestseller"],
        "images": [{"id": "img-6", "url": "https://cdn.example.com/white-tee.jpg"}],
    },
    {
        "id": "prod-ivory-crew-socks",
        "title": "Ivory Crew Socks 3-Pack",
        "description": "Soft cotton crew socks",
        "price": {"amount": "18.00", "currencyCode": "USD"},
        "vendor": "Everlane",
        "productType": "Basics",
        "tags": ["white", "cotton", "basics"],
        "images": [{"id": "img-7", "url": "https://cdn.example.com/ivory-socks.jpg"}],
    },
    {
        "id": "prod-forest-rain-jacket",
        "title": "Forest Green Rain Jacket",
        "description": "Packable jacket for warm fall showers",
        "price": {"amount": "180.00", "currencyCode": "USD"},
        "vendor": "COS",
        "productType": "Outerwear",
        "tags": ["green", "jacket", "fall"],
        "images": [{"id": "img-8", "url": "https://cdn.example.com/forest-rain-jacket.jpg"}],
    },
]


def load_catalog(path: str | Path | None = None) -> list[Product]:
    """Load products from a JSON array of SDK payloads, or the sample catalog."""
    if path is None:
        return batch_transform_products(SAMPLE_PRODUCTS)

    raw = Path(path).read_bytes()
    payloads = orjson.loads(raw)
    if not isinstance(payloads, list):
        raise ValueError(f"Catalog file {path} must contain a JSON array")

    products = batch_transform_products(payloads)
    logger.info("Catalog loaded", path=str(path), products=len(products))
    return products

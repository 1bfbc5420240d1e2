"""Transforms Shop Minis SDK product payloads into ``Product`` models.

The SDK is loose about field names and price shapes, so the transform
accepts the known aliases and normalizes prices to decimal strings.
"""

import re
import secrets
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from shared.constants import COLOR_WORDS, DEFAULT_CURRENCY
from shop_story.models import (
    BehaviorMetadata,
    EventSource,
    Price,
    Product,
    ProductImage,
    ProductSet,
    ProductVariant,
    SelectedOption,
    UrgencyLevel,
)

logger = structlog.get_logger()

URGENCY_DISCOUNTS: dict[str, float] = {"low": 0.05, "medium": 0.10, "high": 0.15}
URGENCY_EXPIRY_HOURS: dict[str, int] = {"low": 168, "medium": 72, "high": 24}

_COLOR_TAG_PATTERN = re.compile(
    r"color|colour|red|blue|green|yellow|black|white|pink|purple|orange|brown|gray|grey",
    re.IGNORECASE,
)
_COLOR_WORD_PATTERN = re.compile(r"\b(" + "|".join(COLOR_WORDS) + r")\b", re.IGNORECASE)
_COLOR_OPTION_PATTERN = re.compile(r"colou?r", re.IGNORECASE)
_AMOUNT_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")


def _clean_amount(raw: Any) -> str:
    """Numeric amount string, with currency symbols and thousands separators stripped."""
    text = str(raw).strip()
    try:
        float(text)
    except ValueError:
        match = _AMOUNT_PATTERN.search(text.replace(",", ""))
        if match is None:
            logger.debug("Unparseable price amount", amount=repr(raw))
            return "0.00"
        return match.group()
    return text


def transform_price(price_data: Any) -> Price:
    """Normalize a string, number, {amount, currencyCode} or priceRange payload."""
    if price_data is None or price_data == "":
        return Price(amount="0.00", currency_code=DEFAULT_CURRENCY)

    if isinstance(price_data, str):
        return Price(amount=_clean_amount(price_data), currency_code=DEFAULT_CURRENCY)

    if isinstance(price_data, (int, float)):
        return Price(amount=f"{price_data:.2f}", currency_code=DEFAULT_CURRENCY)

    if isinstance(price_data, dict):
        if "minVariantPrice" in price_data:
            return transform_price(price_data["minVariantPrice"])
        if price_data.get("amount") is not None:
            return Price(
                amount=_clean_amount(price_data["amount"]),
                currency_code=price_data.get("currencyCode") or DEFAULT_CURRENCY,
            )

    logger.debug("Unrecognized price payload", price=repr(price_data))
    return Price(amount="0.00", currency_code=DEFAULT_CURRENCY)


def transform_product_images(images: list[dict[str, Any]]) -> list[ProductImage]:
    return [
        ProductImage(
            id=image.get("id") or f"image-{index}",
            url=image.get("url") or image.get("src") or image.get("originalSrc") or "",
            alt_text=image.get("altText") or image.get("alt") or "",
            width=image.get("width"),
            height=image.get("height"),
        )
        for index, image in enumerate(images)
    ]


def transform_product_variants(variants: list[dict[str, Any]]) -> list[ProductVariant]:
    return [
        ProductVariant(
            id=variant.get("id") or "",
            title=variant.get("title") or "",
            price=transform_price(variant.get("price") or variant.get("priceV2")),
            available_for_sale=variant.get("availableForSale") is not False,
            selected_options=[
                SelectedOption(
                    name=option.get("name") or option.get("key") or "",
                    value=option.get("value") or "",
                )
                for option in variant.get("selectedOptions", [])
            ],
        )
        for variant in variants
    ]


def transform_shop_minis_product(payload: dict[str, Any]) -> Product:
    compare_at = payload.get("compareAtPrice")
    return Product(
        id=payload.get("id") or payload.get("gid") or "",
        title=payload.get("title") or payload.get("name") or "",
        description=payload.get("description") or payload.get("body") or "",
        images=transform_product_images(payload.get("images") or payload.get("media") or []),
        price=transform_price(payload.get("price") or payload.get("priceRange")),
        compare_at_price=transform_price(compare_at) if compare_at else None,
        vendor=payload.get("vendor") or payload.get("brand") or "",
        product_type=payload.get("productType") or payload.get("category") or "",
        tags=list(payload.get("tags") or []),
        variants=transform_product_variants(payload.get("variants") or []),
    )


def batch_transform_products(payloads: list[dict[str, Any]]) -> list[Product]:
    """Transform payloads, skipping any without an id."""
    products = [
        transform_shop_minis_product(p) for p in payloads if p and (p.get("id") or p.get("gid"))
    ]
    if len(products) < len(payloads):
        logger.debug("Skipped products without id", skipped=len(payloads) - len(products))
    return products


def extract_colors(product: Product) -> list[str]:
    colors = [tag for tag in product.tags if _COLOR_TAG_PATTERN.search(tag)]
    colors.extend(_COLOR_WORD_PATTERN.findall(product.title))
    for variant in product.variants:
        colors.extend(
            option.value
            for option in variant.selected_options
            if _COLOR_OPTION_PATTERN.search(option.name)
        )
    return list(dict.fromkeys(color.lower() for color in colors))


def get_price_tier(price: float) -> str:
    if price < 25:
        return "budget"
    if price < 100:
        return "mid-range"
    if price < 300:
        return "premium"
    return "luxury"


def extract_product_metadata(product: Product) -> dict[str, Any]:
    return {
        "colors": extract_colors(product),
        "categories": [product.product_type] if product.product_type else [],
        "brand": product.vendor,
        "price_range": get_price_tier(product.price.value),
        "tags": list(product.tags),
        "availability": not product.variants
        or any(v.available_for_sale for v in product.variants),
    }


def create_behavior_metadata_from_product(
    product: Product, source: EventSource | str = EventSource.BROWSE
) -> BehaviorMetadata:
    colors = extract_colors(product)
    return BehaviorMetadata(
        source=EventSource(source),
        price_at_time=product.price.value,
        discount_applied=False,
        context={
            "product_id": product.id,
            "category": product.product_type,
            "brand": product.vendor,
            "color": colors[0] if colors else None,
            "currency": product.price.currency_code,
            "confidence": 0.8,
        },
    )


def create_product_set_from_products(
    products: list[Product],
    insight: str,
    name: str,
    urgency: UrgencyLevel = "medium",
    now: datetime | None = None,
) -> ProductSet:
    """Bundle arbitrary products; discount and expiry scale with urgency."""
    now = now or datetime.now(timezone.utc)
    original = round(sum(p.price.value for p in products), 2)
    bundle = round(original * (1 - URGENCY_DISCOUNTS[urgency]), 2)
    categories = Counter(p.product_type for p in products if p.product_type)

    return ProductSet(
        id=f"set-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}",
        name=name,
        insight=insight,
        description=f"Curated set based on: {insight}",
        products=products,
        bundle_price=bundle,
        original_price=original,
        savings=round(original - bundle, 2),
        urgency_level=urgency,
        completion_status=1.0,
        expires_at=now + timedelta(hours=URGENCY_EXPIRY_HOURS[urgency]),
        created_at=now,
        tags=list(dict.fromkeys(tag for p in products for tag in p.tags)),
        category=categories.most_common(1)[0][0] if categories else "Mixed",
    )

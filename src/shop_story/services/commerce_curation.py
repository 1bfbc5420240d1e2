"""Commerce curation engine.

Turns a Style DNA profile into discounted product bundles and turns recent
behavior into ranked product recommendations, scored with the weighted
signals of a ``CurationAlgorithm``.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any

import structlog

from shared.constants import (
    COLOR_KEYWORDS,
    DEFAULT_CURRENCY,
    SEASONAL_KEYWORDS,
    SUBSCRIPTION_CATEGORIES,
    TRENDING_TAGS,
)
from shop_story.models import (
    BehaviorEvent,
    CommerceEvent,
    CurationAlgorithm,
    EventType,
    Product,
    ProductRecommendation,
    ProductSet,
    PurchaseOption,
    RecommendationMetadata,
    SetInteractionData,
    StyleProfile,
    UrgencyLevel,
)
from shop_story.services.analytics import get_season, get_season_end_date
from shop_story.services.formatting import format_percentage

logger = structlog.get_logger()

URGENCY_SCORES: dict[str, float] = {"high": 1.0, "medium": 0.7, "low": 0.4}

# RecommendationMetadata field -> AlgorithmWeights field
SIGNAL_WEIGHTS = {
    "style_match": "style_match",
    "price_score": "price_preference",
    "trend_score": "trending_score",
    "seasonal_relevance": "seasonal_relevance",
    "social_proof": "social_proof",
}


def _slug(value: str) -> str:
    return "-".join(value.lower().split())


def _merge_algorithm(overrides: CurationAlgorithm | dict[str, Any] | None) -> CurationAlgorithm:
    if overrides is None:
        return CurationAlgorithm()
    if isinstance(overrides, CurationAlgorithm):
        return overrides

    base = CurationAlgorithm().model_dump()
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = {**base[key], **value}
        else:
            base[key] = value
    return CurationAlgorithm.model_validate(base)


class CommerceCurationEngine:
    """Builds product sets and recommendations from a product catalog."""

    def __init__(
        self,
        catalog: list[Product],
        algorithm: CurationAlgorithm | dict[str, Any] | None = None,
    ):
        self.catalog = catalog
        self.algorithm = _merge_algorithm(algorithm)
        self._products = {p.id: p for p in catalog}
        self._performance: dict[str, SetInteractionData] = {}

    # -------------------------------------------------------------------------
    # Product sets
    # -------------------------------------------------------------------------

    def generate_sets(self, profile: StyleProfile, now: datetime | None = None) -> list[ProductSet]:
        """
        Curate product sets for a profile.

        Builds color, brand, category and seasonal sets, ranks them by
        relevance to the profile and keeps the top ``max_sets_per_user``.
        """
        now = now or datetime.now(timezone.utc)

        sets = [
            *self._color_sets(profile, now),
            *self._brand_sets(profile, now),
            *self._category_sets(profile, now),
            *self._seasonal_sets(profile, now),
        ]
        ranked = sorted(sets, key=lambda s: self.calculate_set_relevance(s, profile), reverse=True)
        limited = ranked[: self.algorithm.parameters.max_sets_per_user]

        logger.info(
            "Generated product sets",
            user_id=profile.user_id,
            candidates=len(sets),
            returned=len(limited),
        )
        return limited

    def _build_set(
        self,
        *,
        set_id: str,
        name: str,
        insight: str,
        products: list[Product],
        urgency: UrgencyLevel,
        completion: float,
        tags: list[str],
        category: str,
        now: datetime,
        expires_at: datetime | None = None,
    ) -> ProductSet:
        original = round(sum(p.price.value for p in products), 2)
        bundle = round(original * (1 - self.algorithm.parameters.bundle_discount_rate), 2)
        return ProductSet(
            id=set_id,
            name=name,
            insight=insight,
            products=products,
            bundle_price=bundle,
            original_price=original,
            savings=round(original - bundle, 2),
            urgency_level=urgency,
            completion_status=completion,
            expires_at=expires_at,
            created_at=now,
            tags=tags,
            category=category,
        )

    def _color_sets(self, profile: StyleProfile, now: datetime) -> list[ProductSet]:
        sets = []
        for color in profile.dominant_colors[:2]:
            products = [p for p in self.catalog if product_matches_color(p, color.color)][:4]
            if len(products) < 2:
                continue

            sets.append(
                self._build_set(
                    set_id=f"color-set-{_slug(color.color.lstrip('#'))}",
                    name=f"{color.name} Collection",
                    insight=(
                        f"Your top color is {color.name} - "
                        f"complete your {color.name.lower()} capsule"
                    ),
                    products=products,
                    urgency=frequency_urgency(color.frequency),
                    completion=min(0.9, len(products) * 0.2 + 0.1),
                    tags=["color-match", color.name.lower()],
                    category="color-curated",
                    now=now,
                )
            )
        return sets

    def _brand_sets(self, profile: StyleProfile, now: datetime) -> list[ProductSet]:
        candidates = [b for b in profile.preferred_brands if b.affinity > 0.7]
        if not candidates:
            return []

        brand = max(candidates, key=lambda b: b.affinity)
        products = [
            p for p in self.catalog if (p.vendor or "").lower() == brand.brand_name.lower()
        ][:3]
        if len(products) < 2:
            return []

        return [
            self._build_set(
                set_id=f"brand-set-{_slug(brand.brand_name)}",
                name=f"{brand.brand_name} Favorites",
                insight=f"You love {brand.brand_name} - discover more from your favorite brand",
                products=products,
                urgency="medium",
                completion=0.8,
                tags=["brand-affinity", brand.brand_name.lower()],
                category="brand-curated",
                now=now,
            )
        ]

    def _category_sets(self, profile: StyleProfile, now: datetime) -> list[ProductSet]:
        top = sorted(
            (c for c in profile.category_preferences if c.weight > 0.6),
            key=lambda c: c.weight,
            reverse=True,
        )[:2]

        sets = []
        for category in top:
            products = [
                p for p in self.catalog if category.category.lower() in (p.product_type or "").lower()
            ][:5]
            if len(products) < 3:
                continue

            sets.append(
                self._build_set(
                    set_id=f"category-set-{_slug(category.category)}",
                    name=f"Complete Your {category.category} Collection",
                    insight=(
                        f"You're building a strong {category.category.lower()} wardrobe - "
                        "complete the look"
                    ),
                    products=products,
                    urgency="high" if category.weight > 0.8 else "medium",
                    completion=category.weight,
                    tags=["category-completion", category.category.lower()],
                    category="category-curated",
                    now=now,
                )
            )
        return sets

    def _seasonal_sets(self, profile: StyleProfile, now: datetime) -> list[ProductSet]:
        season = get_season(now)
        if not any(t.season == season for t in profile.seasonal_trends):
            return []

        products = [p for p in self.catalog if is_seasonally_appropriate(p, season.value)][:4]
        if len(products) < 2:
            return []

        return [
            self._build_set(
                set_id=f"seasonal-set-{season.value}-{now.year}",
                name=f"{season.value.capitalize()} Essentials",
                insight=f"Refresh your {season.value} wardrobe with these curated essentials",
                products=products,
                urgency="high",
                completion=0.3,
                tags=["seasonal", season.value],
                category="seasonal-curated",
                now=now,
                expires_at=get_season_end_date(season, now),
            )
        ]

    def calculate_set_relevance(self, product_set: ProductSet, profile: StyleProfile) -> float:
        brands = {b.brand_name.lower() for b in profile.preferred_brands}
        categories = [c.category.lower() for c in profile.category_preferences]

        def matches(product: Product) -> bool:
            product_type = (product.product_type or "").lower()
            return (product.vendor or "").lower() in brands or any(
                c in product_type for c in categories if c
            )

        products = product_set.products
        style_match = sum(1 for p in products if matches(p)) / len(products) if products else 0.0

        return (
            product_set.completion_status * 0.3
            + URGENCY_SCORES[product_set.urgency_level] * 0.2
            + style_match * 0.5
        )

    # -------------------------------------------------------------------------
    # Recommendations
    # -------------------------------------------------------------------------

    def update_recommendations(
        self, user_id: str, events: list[BehaviorEvent]
    ) -> list[ProductRecommendation]:
        """Rank style-match, complete-set, trending and price-drop recommendations."""
        candidates = [
            *self._style_match_recommendations(events),
            *self._complete_set_recommendations(events),
            *self._trending_recommendations(events),
            *self._price_drop_recommendations(events),
        ]

        best: dict[str, ProductRecommendation] = {}
        for rec in candidates:
            current = best.get(rec.product_id)
            if current is None or rec.confidence > current.confidence:
                best[rec.product_id] = rec

        params = self.algorithm.parameters
        ranked = sorted(
            (r for r in best.values() if r.confidence >= params.min_confidence),
            key=lambda r: r.confidence,
            reverse=True,
        )[: params.max_recommendations]

        logger.info(
            "Updated recommendations",
            user_id=user_id,
            events=len(events),
            candidates=len(candidates),
            returned=len(ranked),
        )
        return ranked

    def _recommend(
        self,
        product: Product,
        reason: str,
        rec_type: str,
        metadata: RecommendationMetadata,
        urgency: str | None = None,
    ) -> ProductRecommendation:
        return ProductRecommendation(
            product_id=product.id,
            reason=reason,
            confidence=self.calculate_recommendation_confidence(metadata),
            type=rec_type,
            urgency=urgency,
            metadata=metadata,
        )

    def find_similar_products(self, event: BehaviorEvent) -> list[Product]:
        """Catalog products sharing the viewed item's type or vendor."""
        viewed = self._products.get(event.product_id or "")
        product_type = (viewed.product_type if viewed else event.category_id) or ""
        vendor = (viewed.vendor if viewed else event.brand_name) or ""

        return [
            p
            for p in self.catalog
            if p.id != event.product_id
            and (
                (product_type and (p.product_type or "").lower() == product_type.lower())
                or (vendor and (p.vendor or "").lower() == vendor.lower())
            )
        ]

    def find_complementary_products(self, product_id: str) -> list[Product]:
        """Products of a different type, same-vendor pieces first."""
        anchor = self._products.get(product_id)
        if anchor is None:
            return [p for p in self.catalog if p.id != product_id]

        others = [
            p
            for p in self.catalog
            if p.id != product_id and (p.product_type or "") != (anchor.product_type or "")
        ]
        return sorted(others, key=lambda p: p.vendor != anchor.vendor)

    def _style_match_recommendations(
        self, events: list[BehaviorEvent]
    ) -> list[ProductRecommendation]:
        views = [e for e in events if e.event_type == EventType.VIEW and e.product_id][-10:]
        return [
            self._recommend(
                product,
                "Similar to items you've been viewing",
                "style-match",
                RecommendationMetadata(
                    style_match=0.8, price_score=0.7, trend_score=0.6, seasonal_relevance=0.8
                ),
            )
            for view in views
            for product in self.find_similar_products(view)[:2]
        ]

    def _complete_set_recommendations(
        self, events: list[BehaviorEvent]
    ) -> list[ProductRecommendation]:
        cart_items = [
            e.product_id for e in events if e.event_type == EventType.ADD_TO_CART and e.product_id
        ]
        return [
            self._recommend(
                product,
                "Complete your look with this matching piece",
                "complete-set",
                RecommendationMetadata(
                    style_match=0.9, price_score=0.8, complementary_items=[product_id]
                ),
                urgency="limited-time",
            )
            for product_id in dict.fromkeys(cart_items)
            for product in self.find_complementary_products(product_id)[:2]
        ]

    def _trending_recommendations(
        self, events: list[BehaviorEvent]
    ) -> list[ProductRecommendation]:
        interactions = Counter(e.product_id for e in events if e.product_id in self._products)
        recs = [
            self._recommend(
                self._products[product_id],
                "Popular with shoppers like you",
                "trending",
                RecommendationMetadata(
                    trend_score=min(1.0, 0.6 + count * 0.1),
                    social_proof=0.8,
                    seasonal_relevance=0.7,
                ),
            )
            for product_id, count in interactions.most_common(5)
            if count > 1
        ]
        recs.extend(
            self._recommend(
                product,
                "Trending now in your style",
                "trending",
                RecommendationMetadata(trend_score=0.9, social_proof=0.8, seasonal_relevance=0.7),
            )
            for product in self.catalog
            if any(tag.lower() in TRENDING_TAGS for tag in product.tags)
        )
        return recs

    def _price_drop_recommendations(
        self, events: list[BehaviorEvent]
    ) -> list[ProductRecommendation]:
        viewed = dict.fromkeys(
            e.product_id for e in events if e.event_type == EventType.VIEW and e.product_id
        )
        recs = []
        for product_id in viewed:
            product = self._products.get(product_id)
            if product is None or product.compare_at_price is None:
                continue
            if product.compare_at_price.value <= product.price.value:
                continue
            recs.append(
                self._recommend(
                    product,
                    "Price dropped on item you viewed",
                    "price-drop",
                    RecommendationMetadata(price_score=0.95, style_match=0.7),
                    urgency="price-ending",
                )
            )
        return recs

    def calculate_recommendation_confidence(self, metadata: RecommendationMetadata) -> float:
        """Weighted mean of the signals present in ``metadata``, capped at 1."""
        weights = self.algorithm.weights
        total = 0.0
        weight_sum = 0.0
        for field, weight_name in SIGNAL_WEIGHTS.items():
            value = getattr(metadata, field)
            if value is None:
                continue
            weight = getattr(weights, weight_name)
            total += value * weight
            weight_sum += weight

        if weight_sum == 0:
            return 0.0
        return min(1.0, total / weight_sum)

    # -------------------------------------------------------------------------
    # Pricing and performance
    # -------------------------------------------------------------------------

    def optimize_pricing(self, product_set: ProductSet) -> list[PurchaseOption]:
        products = product_set.products
        currency = products[0].price.currency_code if products else DEFAULT_CURRENCY
        original = round(sum(p.price.value for p in products), 2)
        bundle = round(original * (1 - self.algorithm.parameters.bundle_discount_rate), 2)

        options = [
            PurchaseOption(
                type="individual",
                price=original,
                currency=currency,
                description="Buy items individually",
            ),
            PurchaseOption(
                type="bundle",
                price=bundle,
                currency=currency,
                savings=round(original - bundle, 2),
                description=(
                    f"Save {format_percentage(self.algorithm.parameters.bundle_discount_rate)} "
                    "with the complete set"
                ),
            ),
        ]

        if is_subscription_eligible(product_set):
            subscription = round(bundle * 0.9, 2)
            options.append(
                PurchaseOption(
                    type="subscription",
                    price=subscription,
                    currency=currency,
                    savings=round(original - subscription, 2),
                    description="Subscribe and save an extra 10%",
                )
            )
        return options

    def track_performance(self, set_id: str, event: CommerceEvent) -> SetInteractionData:
        counters = self._performance.get(set_id, SetInteractionData())
        field = {
            "view": "views",
            "click": "clicks",
            "add_to_cart": "add_to_carts",
            "purchase": "purchases",
            "share": "shares",
        }[event.type]

        updated = counters.model_copy(update={field: getattr(counters, field) + 1})
        updated = updated.model_copy(
            update={
                "conversion_rate": updated.purchases / updated.views if updated.views else 0.0
            }
        )
        self._performance[set_id] = updated

        logger.info(
            "Set interaction tracked",
            set_id=set_id,
            event_type=event.type,
            user_id=event.user_id,
            product_id=event.product_id,
        )
        return updated

    def get_performance(self, set_id: str) -> SetInteractionData:
        return self._performance.get(set_id, SetInteractionData())


# =============================================================================
# Module helpers
# =============================================================================


def get_color_keywords(color: str) -> list[str]:
    if color.startswith("#"):
        return COLOR_KEYWORDS.get(color.upper(), ["neutral"])
    return [color.strip().lower()]


def product_matches_color(product: Product, color: str) -> bool:
    text = product.search_text
    return any(keyword in text for keyword in get_color_keywords(color))


def is_seasonally_appropriate(product: Product, season: str) -> bool:
    text = product.search_text
    return any(keyword in text for keyword in SEASONAL_KEYWORDS.get(season, []))


def is_subscription_eligible(product_set: ProductSet) -> bool:
    return any(
        category in (p.product_type or "").lower()
        for p in product_set.products
        for category in SUBSCRIPTION_CATEGORIES
    )


def frequency_urgency(frequency: float) -> UrgencyLevel:
    if frequency > 0.8:
        return "high"
    if frequency > 0.5:
        return "medium"
    return "low"


def calculate_bundle_savings(products: list[Product], discount_rate: float = 0.15) -> float:
    return sum(p.price.value for p in products) * discount_rate


def determine_urgency_level(
    stock_level: int | None = None,
    price_history: list[float] | None = None,
    seasonal_relevance: float | None = None,
) -> UrgencyLevel:
    score = 0.0

    if stock_level is not None:
        if stock_level < 5:
            score += 0.8
        elif stock_level < 20:
            score += 0.5

    if price_history and len(price_history) >= 2 and price_history[-1] < price_history[-2]:
        score += 0.4

    if seasonal_relevance is not None:
        score += seasonal_relevance * 0.5

    if score >= 0.7:
        return "high"
    if score >= 0.4:
        return "medium"
    return "low"


def validate_product_set(product_set: ProductSet) -> tuple[bool, list[str]]:
    errors = []
    if not product_set.id:
        errors.append("Product set must have an ID")
    if not product_set.name:
        errors.append("Product set must have a name")
    if not product_set.insight:
        errors.append("Product set must have an insight")
    if not product_set.products:
        errors.append("Product set must contain at least one product")
    if not 0 <= product_set.completion_status <= 1:
        errors.append("Completion status must be between 0 and 1")
    return not errors, errors

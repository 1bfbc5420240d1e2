"""Incremental Style DNA updates.

New aggregates are blended into an existing profile with a decay-style merge:
existing signal is scaled down, fresh signal is blended in at a smaller
factor, so a profile drifts toward recent behavior without snapping to it.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import structlog

from shared.constants import (
    BRAND_MERGE_FACTORS,
    CATEGORY_MERGE_FACTORS,
    COLOR_CONFIDENCE_DECAY,
    COLOR_MERGE_FACTORS,
    MAX_CATEGORY_PREFERENCES,
    MAX_DOMINANT_COLORS,
    MAX_PREFERRED_BRANDS,
    MAX_SEASONAL_TRENDS,
)
from shop_story.models import (
    BehaviorEvent,
    BrandAffinity,
    CategoryWeight,
    ColorProfile,
    PriceRange,
    SeasonalData,
    StyleProfile,
)
from shop_story.services.analytics import (
    SEASON_START_MONTH,
    calculate_brand_affinities,
    calculate_category_preferences,
    calculate_price_ranges,
    extract_color_preferences,
    generate_seasonal_trends,
)

logger = structlog.get_logger()


def merge_color_profiles(
    existing: list[ColorProfile], new: list[ColorProfile]
) -> list[ColorProfile]:
    if not new:
        return list(existing)

    keep, blend = COLOR_MERGE_FACTORS
    merged: dict[str, ColorProfile] = {
        c.color: c.model_copy(
            update={
                "frequency": c.frequency * keep,
                "confidence": c.confidence * COLOR_CONFIDENCE_DECAY,
            }
        )
        for c in existing
    }

    for color in new:
        current = merged.get(color.color)
        if current is not None:
            merged[color.color] = color.model_copy(
                update={
                    "frequency": (current.frequency + color.frequency * blend) / 2,
                    "confidence": (current.confidence + color.confidence) / 2,
                }
            )
        else:
            merged[color.color] = color.model_copy(update={"frequency": color.frequency * blend})

    return sorted(merged.values(), key=lambda c: c.frequency, reverse=True)


def merge_brand_affinities(
    existing: list[BrandAffinity], new: list[BrandAffinity]
) -> list[BrandAffinity]:
    if not new:
        return list(existing)

    keep, blend = BRAND_MERGE_FACTORS
    merged: dict[str, BrandAffinity] = {
        b.brand_name: b.model_copy(update={"affinity": b.affinity * keep}) for b in existing
    }

    for brand in new:
        current = merged.get(brand.brand_name)
        if current is None:
            merged[brand.brand_name] = brand.model_copy(update={"affinity": brand.affinity * blend})
            continue

        purchase_dates = [d for d in (current.last_purchase, brand.last_purchase) if d is not None]
        merged[brand.brand_name] = brand.model_copy(
            update={
                "affinity": (current.affinity + brand.affinity * blend) / 2,
                "purchase_count": current.purchase_count + brand.purchase_count,
                "average_spend": (current.average_spend + brand.average_spend) / 2,
                "last_purchase": max(purchase_dates) if purchase_dates else None,
                "categories": list(dict.fromkeys([*current.categories, *brand.categories])),
            }
        )

    return sorted(merged.values(), key=lambda b: b.affinity, reverse=True)


def merge_category_weights(
    existing: list[CategoryWeight], new: list[CategoryWeight]
) -> list[CategoryWeight]:
    if not new:
        return list(existing)

    keep, blend = CATEGORY_MERGE_FACTORS
    merged: dict[str, CategoryWeight] = {
        c.category: c.model_copy(update={"weight": c.weight * keep}) for c in existing
    }

    for category in new:
        current = merged.get(category.category)
        if current is None:
            merged[category.category] = category.model_copy(
                update={"weight": category.weight * blend}
            )
            continue

        merged[category.category] = category.model_copy(
            update={
                "weight": (current.weight + category.weight * blend) / 2,
                "purchase_frequency": current.purchase_frequency + category.purchase_frequency,
                "average_spend": (current.average_spend + category.average_spend) / 2,
            }
        )

    return sorted(merged.values(), key=lambda c: c.weight, reverse=True)


def merge_price_ranges(existing: list[PriceRange], new: list[PriceRange]) -> list[PriceRange]:
    merged: dict[str, PriceRange] = {r.category: r for r in existing}

    for price_range in new:
        current = merged.get(price_range.category)
        if current is None:
            merged[price_range.category] = price_range
            continue

        merged[price_range.category] = PriceRange(
            category=price_range.category,
            min=min(current.min, price_range.min),
            max=max(current.max, price_range.max),
            average=(current.average + price_range.average) / 2,
            currency=price_range.currency,
            frequency=(current.frequency + price_range.frequency) / 2,
        )

    return list(merged.values())


def merge_seasonal_trends(
    existing: list[SeasonalData], new: list[SeasonalData]
) -> list[SeasonalData]:
    merged: dict[tuple[str, int], SeasonalData] = {(t.season.value, t.year): t for t in existing}
    for trend in new:
        merged[(trend.season.value, trend.year)] = trend

    ordered = sorted(
        merged.values(),
        key=lambda t: (t.year, SEASON_START_MONTH[t.season.value] % 12),
        reverse=True,
    )
    return ordered[:MAX_SEASONAL_TRENDS]


def _jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    return len(left & right) / len(union) if union else 0.0


def calculate_style_evolution(previous: StyleProfile, current: StyleProfile) -> float:
    """Weighted change between two profile snapshots, averaged over the comparable factors."""
    score = 0.0
    factors = 0

    if previous.dominant_colors and current.dominant_colors:
        overlap = _jaccard(
            {c.color for c in previous.dominant_colors}, {c.color for c in current.dominant_colors}
        )
        score += (1 - overlap) * 0.3
        factors += 1

    if previous.preferred_brands and current.preferred_brands:
        overlap = _jaccard(
            {b.brand_name for b in previous.preferred_brands},
            {b.brand_name for b in current.preferred_brands},
        )
        score += (1 - overlap) * 0.25
        factors += 1

    if previous.category_preferences and current.category_preferences:
        overlap = _jaccard(
            {c.category for c in previous.category_preferences},
            {c.category for c in current.category_preferences},
        )
        score += (1 - overlap) * 0.25
        factors += 1

    if previous.price_ranges and current.price_ranges:
        before = float(np.mean([r.average for r in previous.price_ranges]))
        after = float(np.mean([r.average for r in current.price_ranges]))
        ceiling = max(before, after)
        # positive when moving to higher price points
        score += ((after - before) / ceiling if ceiling > 0 else 0.0) * 0.2
        factors += 1

    if factors == 0:
        return 0.0
    return max(-1.0, min(1.0, score / factors))


def calculate_overall_evolution(seasonal_trends: list[SeasonalData]) -> float:
    if not seasonal_trends:
        return 0.0
    average = float(np.mean([t.style_evolution for t in seasonal_trends]))
    return max(-1.0, min(1.0, average))


def update_style_profile(
    existing: StyleProfile,
    new_events: list[BehaviorEvent],
    now: datetime | None = None,
) -> StyleProfile:
    """Blend aggregates from ``new_events`` into ``existing``."""
    now = now or datetime.now(timezone.utc)

    merged = existing.model_copy(
        update={
            "dominant_colors": merge_color_profiles(
                existing.dominant_colors, extract_color_preferences(new_events)
            )[:MAX_DOMINANT_COLORS],
            "preferred_brands": merge_brand_affinities(
                existing.preferred_brands, calculate_brand_affinities(new_events)
            )[:MAX_PREFERRED_BRANDS],
            "category_preferences": merge_category_weights(
                existing.category_preferences, calculate_category_preferences(new_events, now)
            )[:MAX_CATEGORY_PREFERENCES],
            "price_ranges": merge_price_ranges(
                existing.price_ranges, calculate_price_ranges(new_events)
            ),
            "seasonal_trends": merge_seasonal_trends(
                existing.seasonal_trends, generate_seasonal_trends(new_events)
            ),
        }
    )

    # last_updated must strictly advance
    last_updated = max(existing.last_updated + timedelta(milliseconds=1), now)
    evolution = calculate_style_evolution(existing, merged)

    logger.debug(
        "Merged style profile",
        user_id=existing.user_id,
        new_events=len(new_events),
        evolution_score=round(evolution, 3),
    )

    return merged.model_copy(update={"evolution_score": evolution, "last_updated": last_updated})

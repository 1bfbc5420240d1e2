"""Style profile aggregation over behavior event logs.

Pure functions that fold a list of ``BehaviorEvent`` into the pieces of a
Style DNA profile: colors, brand affinities, category weights, price ranges,
seasonal trends and an evolution score. Functions that depend on the current
time take an optional ``now`` so callers and tests can pin it.
"""

import calendar
import secrets
import string
import time
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

import numpy as np

from shared.constants import (
    COLOR_NAMES,
    EXTENDED_SESSION_MINUTES,
    RECENT_WINDOW_DAYS,
    SEASON_BY_MONTH,
    SEASONS,
)
from shop_story.models import (
    BehaviorEvent,
    BrandAffinity,
    CategoryWeight,
    ColorProfile,
    DateRange,
    EventSource,
    EventType,
    Insight,
    PatternResult,
    PriceRange,
    Season,
    SeasonalData,
    SessionInsight,
    StyleProfile,
)

SEASON_START_MONTH = {"spring": 3, "summer": 6, "fall": 9, "winter": 12}
SEASON_END_MONTH = {"spring": 5, "summer": 8, "fall": 11, "winter": 2}
_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def generate_id() -> str:
    """Time-prefixed random id, e.g. ``1718000000000-k3j9x0a1b``."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{millis}-{suffix}"


# =============================================================================
# Season helpers
# =============================================================================


def get_season(date: datetime) -> Season:
    """Meteorological season for a date."""
    return Season(SEASON_BY_MONTH[date.month])


def get_next_season(season: Season | str) -> Season:
    index = SEASONS.index(Season(season).value)
    return Season(SEASONS[(index + 1) % len(SEASONS)])


def get_season_start_date(season: Season | str, now: datetime | None = None) -> datetime:
    """First instant of the season occurrence that contains or precedes ``now``."""
    now = _now(now)
    season = Season(season)
    year = now.year
    if season == Season.WINTER and now.month in (1, 2):
        year -= 1
    return datetime(year, SEASON_START_MONTH[season.value], 1, tzinfo=timezone.utc)


def get_season_end_date(season: Season | str, now: datetime | None = None) -> datetime:
    """Last instant of the season occurrence that contains or follows ``now``."""
    now = _now(now)
    season = Season(season)
    year = now.year
    if season == Season.WINTER and now.month == 12:
        year += 1
    month = SEASON_END_MONTH[season.value]
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc)


# =============================================================================
# Event field helpers
# =============================================================================


def event_category(event: BehaviorEvent) -> str | None:
    return event.category_id or event.metadata.context.get("category")


def event_brand(event: BehaviorEvent) -> str | None:
    return event.brand_name or event.metadata.context.get("brand")


def event_price(event: BehaviorEvent) -> float:
    return event.metadata.price_at_time or 0.0


def _most_frequent(items: list[str], count: int) -> list[str]:
    return [item for item, _ in Counter(items).most_common(count)]


# =============================================================================
# Colors
# =============================================================================


def get_color_name(color: str) -> str:
    if color.startswith("#"):
        return COLOR_NAMES.get(color.upper(), "Unknown")
    return color.strip().title()


def get_color_season(color: str) -> Season | None:
    """Rough seasonal family for a hex color: bright reads summer, muted reads fall."""
    if not color.startswith("#"):
        return None
    hex_code = color.upper()
    if "FF" in hex_code and "00" in hex_code:
        return Season.SUMMER
    if "80" in hex_code or "A0" in hex_code:
        return Season.FALL
    return None


def extract_color_preferences(events: list[BehaviorEvent]) -> list[ColorProfile]:
    """Aggregate ``metadata.context["color"]`` across events."""
    if not events:
        return []

    counts: dict[str, int] = defaultdict(int)
    confidence_totals: dict[str, float] = defaultdict(float)
    for event in events:
        color = event.metadata.context.get("color")
        if not color:
            continue
        counts[color] += 1
        confidence_totals[color] += float(event.metadata.context.get("confidence", 0.5))

    profiles = [
        ColorProfile(
            color=color,
            name=get_color_name(color),
            frequency=count / len(events),
            confidence=min(1.0, confidence_totals[color] / count),
            season=get_color_season(color),
        )
        for color, count in counts.items()
    ]
    return sorted(profiles, key=lambda c: c.frequency, reverse=True)


# =============================================================================
# Brands and categories
# =============================================================================


def calculate_brand_affinities(events: list[BehaviorEvent]) -> list[BrandAffinity]:
    """Brand affinity from views and purchases, strongest first."""
    stats: dict[str, dict[str, Any]] = {}

    for event in events:
        brand = event_brand(event)
        if not brand:
            continue

        entry = stats.setdefault(
            brand,
            {"views": 0, "purchases": 0, "spent": 0.0, "last_purchase": None, "categories": []},
        )
        if event.event_type == EventType.VIEW:
            entry["views"] += 1
        elif event.event_type == EventType.PURCHASE:
            entry["purchases"] += 1
            entry["spent"] += event_price(event)
            if entry["last_purchase"] is None or event.timestamp > entry["last_purchase"]:
                entry["last_purchase"] = event.timestamp

        category = event_category(event)
        if category and category not in entry["categories"]:
            entry["categories"].append(category)

    affinities = [
        BrandAffinity(
            brand_name=brand,
            affinity=min(1.0, (s["views"] * 0.1 + s["purchases"] * 0.5) / 10),
            purchase_count=s["purchases"],
            average_spend=s["spent"] / s["purchases"] if s["purchases"] else 0.0,
            last_purchase=s["last_purchase"],
            categories=s["categories"],
        )
        for brand, s in stats.items()
    ]
    return sorted(affinities, key=lambda b: b.affinity, reverse=True)


def calculate_category_preferences(
    events: list[BehaviorEvent], now: datetime | None = None
) -> list[CategoryWeight]:
    """Category weights with a recent-views trend direction, heaviest first."""
    cutoff = _now(now) - timedelta(days=RECENT_WINDOW_DAYS)
    stats: dict[str, dict[str, float]] = defaultdict(
        lambda: {"views": 0, "purchases": 0, "spent": 0.0, "recent_views": 0}
    )

    for event in events:
        category = event_category(event)
        if not category:
            continue

        entry = stats[category]
        if event.event_type == EventType.VIEW:
            entry["views"] += 1
            if event.timestamp > cutoff:
                entry["recent_views"] += 1
        elif event.event_type == EventType.PURCHASE:
            entry["purchases"] += 1
            entry["spent"] += event_price(event)

    weights = []
    for category, s in stats.items():
        if s["recent_views"] > s["views"] * 0.3:
            trend = "increasing"
        elif s["recent_views"] < s["views"] * 0.1:
            trend = "decreasing"
        else:
            trend = "stable"

        weights.append(
            CategoryWeight(
                category=category,
                weight=min(1.0, (s["views"] * 0.1 + s["purchases"] * 0.5) / 20),
                purchase_frequency=int(s["purchases"]),
                average_spend=s["spent"] / s["purchases"] if s["purchases"] else 0.0,
                trend_direction=trend,
            )
        )
    return sorted(weights, key=lambda c: c.weight, reverse=True)


# =============================================================================
# Prices
# =============================================================================


def calculate_price_ranges(events: list[BehaviorEvent]) -> list[PriceRange]:
    """Purchase price statistics per category."""
    prices: dict[str, list[float]] = defaultdict(list)
    currencies: dict[str, str] = {}

    for event in events:
        category = event_category(event)
        if event.event_type != EventType.PURCHASE or not category:
            continue
        if not event.metadata.price_at_time:
            continue
        prices[category].append(event.metadata.price_at_time)
        currencies[category] = event.metadata.context.get("currency", "USD")

    ranges = []
    for category, values in prices.items():
        arr = np.asarray(values, dtype=np.float64)
        ranges.append(
            PriceRange(
                category=category,
                min=float(arr.min()),
                max=float(arr.max()),
                average=float(arr.mean()),
                currency=currencies[category],
                frequency=len(values),
            )
        )
    return ranges


# =============================================================================
# Seasons and evolution
# =============================================================================


def calculate_seasonal_style_evolution(events: list[BehaviorEvent]) -> float:
    """-1 (conservative) to 1 (experimental) from discovery vs. repeat signals."""
    experimental = sum(
        1
        for e in events
        if e.metadata.source == EventSource.RECOMMENDATION or e.event_type == EventType.SHARE
    )
    conservative = sum(
        1 for e in events if e.metadata.source == EventSource.SEARCH or event_brand(e)
    )
    total = experimental + conservative
    if total == 0:
        return 0.0
    return (experimental - conservative) / total


def generate_seasonal_trends(events: list[BehaviorEvent]) -> list[SeasonalData]:
    """One ``SeasonalData`` per (season, year) seen in the events, most recent first."""
    groups: dict[tuple[Season, int], list[BehaviorEvent]] = defaultdict(list)
    for event in events:
        groups[(get_season(event.timestamp), event.timestamp.year)].append(event)

    trends = []
    for (season, year), season_events in groups.items():
        colors = [e.metadata.context["color"] for e in season_events if e.metadata.context.get("color")]
        categories = [c for c in (event_category(e) for e in season_events) if c]
        purchases = [e for e in season_events if e.event_type == EventType.PURCHASE]
        spent = sum(event_price(e) for e in purchases)

        trends.append(
            SeasonalData(
                season=season,
                year=year,
                dominant_colors=_most_frequent(colors, 3),
                top_categories=_most_frequent(categories, 3),
                spending_pattern=spent / max(len(purchases), 1),
                style_evolution=calculate_seasonal_style_evolution(season_events),
            )
        )

    return sorted(
        trends,
        key=lambda t: (t.year, SEASON_START_MONTH[t.season.value] % 12),
        reverse=True,
    )


def calculate_evolution_score(events: list[BehaviorEvent], now: datetime | None = None) -> float:
    """Change in brand and category diversity between the last 30 days and the 30 before."""
    now = _now(now)
    recent_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
    older_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS * 2)

    recent = [e for e in events if e.timestamp > recent_cutoff]
    older = [e for e in events if older_cutoff < e.timestamp <= recent_cutoff]
    if not recent or not older:
        return 0.0

    def diversity_change(key) -> float:
        recent_values = {v for v in map(key, recent) if v}
        older_values = {v for v in map(key, older) if v}
        return (len(recent_values) - len(older_values)) / max(len(older_values), 1)

    score = (diversity_change(event_brand) + diversity_change(event_category)) / 2
    return max(-1.0, min(1.0, score))


# =============================================================================
# Session insights and behavior patterns
# =============================================================================


def generate_session_insights(events: list[BehaviorEvent]) -> list[SessionInsight]:
    """Intent, preference and engagement insights for a single session."""
    insights: list[SessionInsight] = []
    if not events:
        return insights

    purchases = [e for e in events if e.event_type == EventType.PURCHASE]
    cart_adds = [e for e in events if e.event_type == EventType.ADD_TO_CART]
    views = [e for e in events if e.event_type == EventType.VIEW]

    if purchases:
        insights.append(
            SessionInsight(
                type="intent",
                confidence=0.9,
                description=f"High purchase intent - completed {len(purchases)} purchase(s)",
                data={"purchase_count": len(purchases)},
            )
        )
    elif cart_adds:
        insights.append(
            SessionInsight(
                type="intent",
                confidence=0.7,
                description=f"Moderate purchase intent - added {len(cart_adds)} item(s) to cart",
                data={"cart_count": len(cart_adds)},
            )
        )
    elif len(views) > 5:
        insights.append(
            SessionInsight(
                type="intent",
                confidence=0.5,
                description=f"Browsing behavior - viewed {len(views)} items",
                data={"view_count": len(views)},
            )
        )

    categories = Counter(c for c in (event_category(e) for e in events) if c)
    if categories:
        category, frequency = categories.most_common(1)[0]
        insights.append(
            SessionInsight(
                type="preference",
                confidence=0.8,
                description=f"Strong interest in {category} category",
                data={"category": category, "frequency": frequency},
            )
        )

    brands = Counter(b for b in (event_brand(e) for e in events) if b)
    if brands:
        brand, frequency = brands.most_common(1)[0]
        if frequency > 2:
            insights.append(
                SessionInsight(
                    type="preference",
                    confidence=0.7,
                    description=f"Brand affinity detected for {brand}",
                    data={"brand": brand, "frequency": frequency},
                )
            )

    ordered = sorted(events, key=lambda e: e.timestamp)
    duration = ordered[-1].timestamp - ordered[0].timestamp
    if duration > timedelta(minutes=EXTENDED_SESSION_MINUTES):
        insights.append(
            SessionInsight(
                type="behavior-pattern",
                confidence=0.6,
                description="Extended browsing session indicates high engagement",
                data={"duration_ms": int(duration.total_seconds() * 1000), "engagement_level": "high"},
            )
        )

    return insights


def _seasonal_pattern(events: list[BehaviorEvent], now: datetime) -> PatternResult:
    season = get_season(now)
    in_season = [e for e in events if get_season(e.timestamp) == season]
    strength = len(in_season) / max(len(events), 1)
    return PatternResult(
        pattern="seasonal-shift",
        strength=strength,
        description=f"{round(strength * 100)}% of shopping activity occurs in {season.value}",
        recommendations=[
            f"Focus on {season.value} collections",
            f"Prepare for {get_next_season(season).value} transition",
        ],
        timeframe=DateRange(
            start=get_season_start_date(season, now), end=get_season_end_date(season, now)
        ),
    )


def _brand_loyalty_pattern(events: list[BehaviorEvent], now: datetime) -> PatternResult:
    purchases = Counter(
        b for b in (event_brand(e) for e in events if e.event_type == EventType.PURCHASE) if b
    )
    total = sum(purchases.values())
    top_brand, top_count = purchases.most_common(1)[0] if purchases else ("Unknown", 0)
    strength = top_count / total if total else 0.0
    return PatternResult(
        pattern="brand-loyalty",
        strength=strength,
        description=f"{round(strength * 100)}% brand loyalty to {top_brand}",
        recommendations=[f"Explore new arrivals from {top_brand}", "Consider similar brands for variety"],
        timeframe=DateRange(start=now - timedelta(days=90), end=now),
    )


def analyze_price_sensitivity(events: list[BehaviorEvent], now: datetime) -> PatternResult:
    """
    Share of purchases priced below 0.8x the median purchase price.

    The median is the upper middle element, so at most half of the purchases
    can sit below it and strength never exceeds 0.5.
    """
    prices = sorted(
        e.metadata.price_at_time
        for e in events
        if e.event_type == EventType.PURCHASE and e.metadata.price_at_time
    )
    if not prices:
        return PatternResult(
            pattern="price-sensitivity",
            strength=0.0,
            description="",
            timeframe=DateRange(start=now, end=now),
        )

    median = prices[len(prices) // 2]
    strength = sum(1 for p in prices if p < median * 0.8) / len(prices)
    return PatternResult(
        pattern="price-sensitivity",
        strength=strength,
        description=f"{round(strength * 100)}% of purchases are below median price point",
        recommendations=["Look for sales and discounts", "Consider value-focused brands"],
        timeframe=DateRange(start=now - timedelta(days=60), end=now),
    )


def detect_behavior_patterns(
    events: list[BehaviorEvent], now: datetime | None = None
) -> list[PatternResult]:
    """Seasonal, brand-loyalty and price-sensitivity patterns above their thresholds."""
    now = _now(now)
    patterns = []

    seasonal = _seasonal_pattern(events, now)
    if seasonal.strength > 0.6:
        patterns.append(seasonal)

    loyalty = _brand_loyalty_pattern(events, now)
    if loyalty.strength > 0.7:
        patterns.append(loyalty)

    sensitivity = analyze_price_sensitivity(events, now)
    if sensitivity.strength > 0.5:
        patterns.append(sensitivity)

    return patterns


# =============================================================================
# Story insights
# =============================================================================


def generate_story_insights(profile: StyleProfile, now: datetime | None = None) -> list[Insight]:
    """Headline insights for story content, one per profile facet."""
    insights: list[Insight] = []

    if profile.dominant_colors:
        top_color = profile.dominant_colors[0]
        insights.append(
            Insight(
                id=generate_id(),
                type="color-preference",
                title=f"Your signature color: {top_color.name}",
                description=(
                    f"{top_color.name} appears in {round(top_color.frequency * 100)}% "
                    "of your style choices"
                ),
                confidence=top_color.confidence,
                data={"color": top_color.color, "frequency": top_color.frequency},
                visual_type="color-palette",
            )
        )

    if profile.preferred_brands:
        top_brand = profile.preferred_brands[0]
        insights.append(
            Insight(
                id=generate_id(),
                type="brand-affinity",
                title=f"Brand loyalty: {top_brand.brand_name}",
                description=f"You've made {top_brand.purchase_count} purchases from {top_brand.brand_name}",
                confidence=top_brand.affinity,
                data={"brand": top_brand.brand_name, "purchase_count": top_brand.purchase_count},
                visual_type="brand-cloud",
            )
        )

    if profile.category_preferences:
        top_category = profile.category_preferences[0]
        insights.append(
            Insight(
                id=generate_id(),
                type="category-trend",
                title=f"Style focus: {top_category.category}",
                description=(
                    f"{top_category.category} represents {round(top_category.weight * 100)}% "
                    "of your style DNA"
                ),
                confidence=top_category.weight,
                data={"category": top_category.category, "trend": top_category.trend_direction},
                visual_type="chart",
            )
        )

    if profile.price_ranges:
        average = float(np.mean([r.average for r in profile.price_ranges]))
        insights.append(
            Insight(
                id=generate_id(),
                type="price-pattern",
                title="Your style budget",
                description=f"Average spend: ${round(average)} per item",
                confidence=0.8,
                data={
                    "average_price": average,
                    "ranges": [r.model_dump(mode="json") for r in profile.price_ranges],
                },
                visual_type="chart",
            )
        )

    if profile.seasonal_trends:
        season = get_season(_now(now))
        current = next((t for t in profile.seasonal_trends if t.season == season), None)
        if current is not None:
            direction = "more experimental" if current.style_evolution > 0 else "more refined"
            insights.append(
                Insight(
                    id=generate_id(),
                    type="seasonal-shift",
                    title=f"{season.value} style evolution",
                    description=f"Your {season.value} style is {direction} this year",
                    confidence=0.7,
                    data={"season": season.value, "evolution": current.style_evolution},
                    visual_type="trend-line",
                )
            )
        else:
            latest = profile.seasonal_trends[0]
            direction = "more experimental" if latest.style_evolution > 0 else "more refined"
            insights.append(
                Insight(
                    id=generate_id(),
                    type="seasonal-shift",
                    title=f"{latest.season.value} style evolution",
                    description=f"Your {latest.season.value} style was {direction} this year",
                    confidence=0.6,
                    data={"season": latest.season.value, "evolution": latest.style_evolution},
                    visual_type="trend-line",
                )
            )

    return insights

"""Story rendering from Style DNA profiles and insights.

Each story type has a template describing its layout, the visual elements
to place and which profile data each element binds to. ``StoryGenerator``
fills a template with a profile's data and the highest-confidence insights.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field

from shared.constants import CATEGORY_COLORS, RECENT_WINDOW_DAYS
from shop_story.exceptions import TemplateNotFoundError
from shop_story.models import (
    BehaviorEvent,
    EventType,
    Insight,
    InsightType,
    Position,
    Product,
    ShareableContent,
    Size,
    StoryData,
    StoryType,
    StyleProfile,
    VisualElement,
)
from shop_story.services.analytics import generate_id, get_season

logger = structlog.get_logger()

DEFAULT_CATEGORY_COLOR = "#95a5a6"
MAX_SHOPPABLE_PRODUCTS = 3


class StoryGenerationOptions(BaseModel):
    include_products: bool = False
    max_insights: int = Field(default=3, ge=1)
    timeframe: Literal["week", "month", "quarter", "year"] | None = None
    visual_style: Literal["minimal", "vibrant", "elegant"] | None = None


@dataclass
class LayoutConfig:
    background_color: str
    text_color: str
    accent_color: str
    background_gradient: list[str] = field(default_factory=list)
    aspect_ratio: str = "9:16"

    def to_style(self) -> dict[str, Any]:
        return {
            "aspect_ratio": self.aspect_ratio,
            "background_color": self.background_color,
            "background_gradient": self.background_gradient,
            "text_color": self.text_color,
            "accent_color": self.accent_color,
        }


@dataclass
class VisualElementTemplate:
    type: str
    position: tuple[float, float]
    size: tuple[float, float]
    style: dict[str, Any] = field(default_factory=dict)
    data_binding: str | None = None


@dataclass
class StoryTemplate:
    type: StoryType
    title: str
    layout: LayoutConfig
    visual_elements: list[VisualElementTemplate]
    insight_types: list[InsightType]
    expiration_hours: int


def _title_element() -> VisualElementTemplate:
    return VisualElementTemplate(
        type="text-overlay",
        position=(0.1, 0.1),
        size=(0.8, 0.15),
        style={"font_size": "24px", "font_weight": "bold", "text_align": "center"},
        data_binding="title",
    )


def default_templates() -> dict[str, StoryTemplate]:
    return {
        "behavioral": StoryTemplate(
            type="behavioral",
            title="Your Style DNA",
            layout=LayoutConfig("#1a1a1a", "#ffffff", "#ff6b6b", ["#1a1a1a", "#2d2d2d"]),
            visual_elements=[
                _title_element(),
                VisualElementTemplate(
                    "color-swatch", (0.1, 0.3), (0.8, 0.2), {"border_radius": "12px"}, "dominant_colors"
                ),
                VisualElementTemplate(
                    "chart", (0.1, 0.55), (0.8, 0.25), {"chart_type": "donut"}, "category_preferences"
                ),
            ],
            insight_types=["color-preference", "brand-affinity", "category-trend"],
            expiration_hours=168,
        ),
        "style-evolution": StoryTemplate(
            type="style-evolution",
            title="Style Evolution",
            layout=LayoutConfig("#f8f9fa", "#212529", "#6f42c1", ["#f8f9fa", "#e9ecef"]),
            visual_elements=[
                _title_element(),
                VisualElementTemplate(
                    "trend-line",
                    (0.1, 0.3),
                    (0.8, 0.3),
                    {"line_color": "#6f42c1", "fill_color": "rgba(111, 66, 193, 0.1)"},
                    "evolution_score",
                ),
                VisualElementTemplate(
                    "color-swatch",
                    (0.1, 0.65),
                    (0.35, 0.15),
                    {"border_radius": "8px", "title": "Before"},
                    "previous_colors",
                ),
                VisualElementTemplate(
                    "color-swatch",
                    (0.55, 0.65),
                    (0.35, 0.15),
                    {"border_radius": "8px", "title": "Now"},
                    "current_colors",
                ),
            ],
            insight_types=["seasonal-shift", "color-preference", "brand-affinity"],
            expiration_hours=720,
        ),
        "recap": StoryTemplate(
            type="recap",
            title="Monthly Recap",
            layout=LayoutConfig("#0f172a", "#f1f5f9", "#10b981", ["#0f172a", "#1e293b"]),
            visual_elements=[
                _title_element(),
                VisualElementTemplate(
                    "chart", (0.1, 0.3), (0.8, 0.2), {"chart_type": "bar", "color": "#10b981"}, "monthly_stats"
                ),
                VisualElementTemplate(
                    "product-grid", (0.1, 0.55), (0.8, 0.3), {"columns": 2, "gap": "8px"}, "top_products"
                ),
            ],
            insight_types=["category-trend", "price-pattern", "brand-affinity"],
            expiration_hours=168,
        ),
        "seasonal": StoryTemplate(
            type="seasonal",
            title="Seasonal Style",
            layout=LayoutConfig("#fef3c7", "#92400e", "#d97706", ["#fef3c7", "#fde68a"]),
            visual_elements=[
                _title_element(),
                VisualElementTemplate(
                    "color-swatch",
                    (0.1, 0.3),
                    (0.8, 0.25),
                    {"border_radius": "16px", "layout": "seasonal"},
                    "seasonal_colors",
                ),
                VisualElementTemplate(
                    "chart", (0.1, 0.6), (0.8, 0.2), {"chart_type": "radial", "color": "#d97706"}, "seasonal_trends"
                ),
            ],
            insight_types=["seasonal-shift", "color-preference"],
            expiration_hours=2160,
        ),
    }


class StoryGenerator:
    """Renders stories from templates, optionally with shoppable catalog products."""

    def __init__(
        self,
        catalog: list[Product] | None = None,
        templates: dict[str, StoryTemplate] | None = None,
    ):
        self.catalog = catalog or []
        self.templates = templates if templates is not None else default_templates()

    def get_template(self, story_type: str) -> StoryTemplate:
        template = self.templates.get(story_type)
        if template is None:
            raise TemplateNotFoundError(f"No templates found for story type: {story_type}")
        return template

    def generate_story(
        self,
        story_type: StoryType,
        profile: StyleProfile,
        insights: list[Insight],
        options: StoryGenerationOptions | None = None,
        now: datetime | None = None,
        previous: StyleProfile | None = None,
    ) -> StoryData:
        """
        Render one story.

        Args:
            story_type: Which template to use
            profile: The profile whose data the visual elements bind to
            insights: Candidate insights; filtered to the template's types
            options: Insight limit and whether to attach shoppable products
            now: Reference time for titles, seasons and expiry
            previous: Earlier profile, used by the "before" color swatch

        Raises:
            TemplateNotFoundError: If ``story_type`` has no template
        """
        options = options or StoryGenerationOptions()
        now = now or datetime.now(timezone.utc)
        template = self.get_template(story_type)

        selected = sorted(
            (i for i in insights if i.type in template.insight_types),
            key=lambda i: i.confidence,
            reverse=True,
        )[: options.max_insights]

        products = self.find_shoppable_products(profile) if options.include_products else None
        context = {"now": now, "previous": previous, "products": products or [], "insights": selected}

        story = StoryData(
            id=generate_id(),
            type=story_type,
            title=self._title(story_type, profile, now),
            insights=selected,
            visual_elements=[
                VisualElement(
                    id=generate_id(),
                    type=element.type,
                    position=Position(x=element.position[0], y=element.position[1], z=1),
                    size=Size(width=element.size[0], height=element.size[1]),
                    style={**element.style, **template.layout.to_style()},
                    data=self._bind(element.data_binding, profile, context),
                )
                for element in template.visual_elements
            ],
            shoppable_products=products,
            shareable_content=self._shareable_content(story_type, selected, profile, now),
            created_at=now,
            expires_at=now + timedelta(hours=template.expiration_hours),
        )

        logger.debug(
            "Story generated",
            user_id=profile.user_id,
            story_type=story_type,
            insights=len(selected),
        )
        return story

    def generate_behavioral_story(
        self,
        profile: StyleProfile,
        insights: list[Insight],
        options: StoryGenerationOptions | None = None,
        now: datetime | None = None,
    ) -> StoryData:
        return self.generate_story("behavioral", profile, insights, options, now)

    def generate_style_evolution_story(
        self,
        current: StyleProfile,
        previous: StyleProfile,
        insights: list[Insight],
        options: StoryGenerationOptions | None = None,
        now: datetime | None = None,
    ) -> StoryData:
        all_insights = [*insights, *generate_evolution_insights(current, previous)]
        return self.generate_story("style-evolution", current, all_insights, options, now, previous)

    def generate_monthly_recap(
        self,
        profile: StyleProfile,
        monthly_events: list[BehaviorEvent],
        insights: list[Insight],
        options: StoryGenerationOptions | None = None,
        now: datetime | None = None,
    ) -> StoryData:
        options = (options or StoryGenerationOptions()).model_copy(update={"timeframe": "month"})
        all_insights = [*insights, *generate_recap_insights(monthly_events)]
        return self.generate_story("recap", profile, all_insights, options, now)

    def generate_seasonal_story(
        self,
        profile: StyleProfile,
        insights: list[Insight],
        options: StoryGenerationOptions | None = None,
        now: datetime | None = None,
    ) -> StoryData:
        options = (options or StoryGenerationOptions()).model_copy(update={"timeframe": "quarter"})
        seasonal = [i for i in insights if i.type in ("seasonal-shift", "color-preference")]
        return self.generate_story("seasonal", profile, seasonal, options, now)

    def generate_story_set(
        self,
        profile: StyleProfile,
        insights: list[Insight],
        events: list[BehaviorEvent],
        options: StoryGenerationOptions | None = None,
        now: datetime | None = None,
    ) -> list[StoryData]:
        now = now or datetime.now(timezone.utc)
        stories = []

        if insights:
            stories.append(self.generate_behavioral_story(profile, insights, options, now))

        cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
        recent = [e for e in events if e.timestamp > cutoff]
        if len(recent) > 5:
            stories.append(self.generate_monthly_recap(profile, recent, insights, options, now))

        if any(i.type == "seasonal-shift" for i in insights):
            stories.append(self.generate_seasonal_story(profile, insights, options, now))

        return stories

    def should_refresh_stories(self, stories: list[StoryData], now: datetime | None = None) -> bool:
        if not stories:
            return True
        now = now or datetime.now(timezone.utc)
        return any(s.expires_at is not None and s.expires_at < now for s in stories)

    def get_active_stories(
        self, stories: list[StoryData], now: datetime | None = None
    ) -> list[StoryData]:
        now = now or datetime.now(timezone.utc)
        return [s for s in stories if s.expires_at is None or s.expires_at > now]

    def find_shoppable_products(self, profile: StyleProfile) -> list[Product]:
        """Catalog products matching the top color, a preferred brand or a preferred category."""
        keywords = []
        if profile.dominant_colors:
            top = profile.dominant_colors[0]
            keywords = [top.name.lower(), *top.name.lower().split()]
        brands = {b.brand_name.lower() for b in profile.preferred_brands}
        categories = [c.category.lower() for c in profile.category_preferences]

        def matches(product: Product) -> bool:
            text = product.search_text
            product_type = (product.product_type or "").lower()
            return (
                any(k in text for k in keywords if k)
                or (product.vendor or "").lower() in brands
                or any(c in product_type for c in categories if c)
            )

        return [p for p in self.catalog if matches(p)][:MAX_SHOPPABLE_PRODUCTS]

    # -------------------------------------------------------------------------
    # Rendering helpers
    # -------------------------------------------------------------------------

    def _bind(self, binding: str | None, profile: StyleProfile, context: dict[str, Any]) -> Any:
        if binding is None:
            return None

        if binding == "title":
            name = profile.dominant_colors[0].name if profile.dominant_colors else "Unique"
            return {"text": f"Your {name} Style"}
        if binding in ("dominant_colors", "current_colors"):
            return {"colors": [c.model_dump(mode="json") for c in profile.dominant_colors[:5]]}
        if binding == "previous_colors":
            previous = context["previous"]
            colors = previous.dominant_colors[:5] if previous else []
            return {"colors": [c.model_dump(mode="json") for c in colors]}
        if binding == "category_preferences":
            return {
                "data": [
                    {
                        "label": c.category,
                        "value": c.weight,
                        "color": CATEGORY_COLORS.get(c.category.lower(), DEFAULT_CATEGORY_COLOR),
                    }
                    for c in profile.category_preferences[:5]
                ]
            }
        if binding == "evolution_score":
            return {
                "score": profile.evolution_score,
                "trend": "experimental" if profile.evolution_score > 0 else "refined",
            }
        if binding == "monthly_stats":
            return {
                "insights": sum(1 for i in context["insights"] if i.type == "category-trend"),
                "categories": len(profile.category_preferences),
                "brands": len(profile.preferred_brands),
            }
        if binding == "top_products":
            return {"products": [p.model_dump(mode="json") for p in context["products"]]}
        if binding == "seasonal_colors":
            season = get_season(context["now"])
            trend = next((t for t in profile.seasonal_trends if t.season == season), None)
            return {"colors": trend.dominant_colors if trend else []}
        if binding == "seasonal_trends":
            return {
                "data": [
                    {"label": f"{t.season.value} {t.year}", "value": t.style_evolution}
                    for t in profile.seasonal_trends
                ]
            }
        return None

    def _title(self, story_type: str, profile: StyleProfile, now: datetime) -> str:
        if story_type == "behavioral":
            name = profile.dominant_colors[0].name if profile.dominant_colors else "Unique"
            return f"Your {name} Style DNA"
        if story_type == "style-evolution":
            journey = "Experimental" if profile.evolution_score > 0 else "Refined"
            return f"Style Evolution: {journey} Journey"
        if story_type == "recap":
            return f"{now.strftime('%B')} Style Recap"
        if story_type == "seasonal":
            return f"{get_season(now).value.capitalize()} Style Story"
        return "Your Style Story"

    def _shareable_content(
        self, story_type: str, insights: list[Insight], profile: StyleProfile, now: datetime
    ) -> ShareableContent:
        season = get_season(now).value
        color = profile.dominant_colors[0].name if profile.dominant_colors else "unique"
        brand = profile.preferred_brands[0].brand_name if profile.preferred_brands else "diverse"

        if story_type == "behavioral":
            title = "My Style DNA"
            description = f"Discovered my signature style: {color} colors and {brand} brands"
        elif story_type == "style-evolution":
            title = "My Style Evolution"
            manner = "experimentally" if profile.evolution_score > 0 else "refinedly"
            description = f"My style has evolved {manner} this season"
        elif story_type == "recap":
            title = "My Monthly Style Recap"
            description = (
                f"This month: {len(insights)} style insights and "
                f"{len(profile.category_preferences)} favorite categories"
            )
        else:
            title = f"My {season} Style"
            signature = len(profile.seasonal_trends[0].dominant_colors) if profile.seasonal_trends else 0
            description = f"My {season} style features {signature} signature colors"

        type_tag = "".join(part.capitalize() for part in story_type.split("-"))
        return ShareableContent(
            title=title,
            description=description,
            hashtags=["#StyleDNA", "#ShopStory", "#MyStyle", f"#{type_tag}"],
            platforms=["instagram", "tiktok", "twitter"],
            export_formats=["story-9x16", "post-1x1"],
        )


def generate_evolution_insights(current: StyleProfile, previous: StyleProfile) -> list[Insight]:
    insights = []

    previous_colors = {c.color for c in previous.dominant_colors}
    current_colors = {c.color for c in current.dominant_colors}
    if previous_colors != current_colors:
        direction = "expanded" if len(current_colors) > len(previous_colors) else "focused"
        insights.append(
            Insight(
                id=generate_id(),
                type="color-preference",
                title="Color Palette Evolution",
                description=f"Your color preferences have {direction}",
                confidence=0.8,
                data={
                    "previous": sorted(previous_colors),
                    "current": sorted(current_colors),
                    "change": direction,
                },
                visual_type="color-palette",
            )
        )

    previous_brands = {b.brand_name for b in previous.preferred_brands}
    current_brands = {b.brand_name for b in current.preferred_brands}
    if previous_brands != current_brands:
        new_brands = len(current_brands) - len(previous_brands)
        verb = "discovered" if new_brands > 0 else "focused on"
        noun = "brand" if abs(new_brands) == 1 else "brands"
        insights.append(
            Insight(
                id=generate_id(),
                type="brand-affinity",
                title="Brand Discovery",
                description=f"You've {verb} {abs(new_brands)} {noun}",
                confidence=0.7,
                data={
                    "new_brands": new_brands,
                    "top_brand": current.preferred_brands[0].brand_name
                    if current.preferred_brands
                    else None,
                },
                visual_type="brand-cloud",
            )
        )

    return insights


def generate_recap_insights(events: list[BehaviorEvent]) -> list[Insight]:
    purchases = sum(1 for e in events if e.event_type == EventType.PURCHASE)
    views = sum(1 for e in events if e.event_type == EventType.VIEW)

    insights = [
        Insight(
            id=generate_id(),
            type="category-trend",
            title="Monthly Activity",
            description=f"{purchases} purchases from {views} items viewed",
            confidence=1.0,
            data={
                "purchases": purchases,
                "views": views,
                "conversion_rate": purchases / views if views else 0.0,
            },
            visual_type="chart",
        )
    ]

    categories = Counter(e.category_id for e in events if e.category_id)
    if categories:
        category, frequency = categories.most_common(1)[0]
        insights.append(
            Insight(
                id=generate_id(),
                type="category-trend",
                title="Category Focus",
                description=f"{category} was your top category this month",
                confidence=0.9,
                data={
                    "category": category,
                    "frequency": frequency,
                    "percentage": frequency / len(events),
                },
                visual_type="chart",
            )
        )

    return insights


def validate_story_data(story: StoryData) -> tuple[bool, list[str]]:
    errors = []
    if not story.id:
        errors.append("Story ID is required")
    if not story.title:
        errors.append("Story title is required")
    if not story.insights:
        errors.append("Story must have at least one insight")
    if not story.visual_elements:
        errors.append("Story must have visual elements")

    for index, insight in enumerate(story.insights):
        if not insight.id:
            errors.append(f"Insight {index} missing ID")
        if not insight.title:
            errors.append(f"Insight {index} missing title")
        if not 0 <= insight.confidence <= 1:
            errors.append(f"Insight {index} confidence must be between 0 and 1")

    for index, element in enumerate(story.visual_elements):
        if not element.id:
            errors.append(f"Visual element {index} missing ID")

    return not errors, errors

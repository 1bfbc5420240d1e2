"""Pydantic models for Style DNA analytics, commerce curation and stories.

These are the domain types shared by the services, the event store and the
HTTP API. Everything is serialized with ``model_dump(mode="json")`` and
orjson, so datetimes round-trip as ISO strings.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# =============================================================================
# Enums
# =============================================================================


class EventType(str, Enum):
    """Types of user behavior events."""

    VIEW = "view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    SHARE = "share"
    SAVE = "save"
    SEARCH = "search"
    FILTER = "filter"


class EventSource(str, Enum):
    """Where in the app an event originated."""

    STORY = "story"
    BROWSE = "browse"
    SEARCH = "search"
    RECOMMENDATION = "recommendation"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"


TrendDirection = Literal["increasing", "stable", "decreasing"]
UrgencyLevel = Literal["low", "medium", "high"]
StoryType = Literal["behavioral", "style-evolution", "recap", "seasonal"]
InsightType = Literal[
    "color-preference", "brand-affinity", "category-trend", "price-pattern", "seasonal-shift"
]
VisualType = Literal["chart", "color-palette", "brand-cloud", "trend-line"]


# =============================================================================
# Behavior tracking
# =============================================================================


class BehaviorMetadata(BaseModel):
    """Context captured alongside a behavior event."""

    source: EventSource = EventSource.BROWSE
    duration_ms: int | None = Field(None, ge=0, description="Time spent viewing")
    scroll_depth: float | None = Field(None, ge=0.0, le=1.0)
    interaction_count: int | None = Field(None, ge=0)
    price_at_time: float | None = Field(None, ge=0.0)
    discount_applied: bool | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class BehaviorEvent(BaseModel):
    """A single recorded user interaction. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    event_type: EventType
    product_id: str | None = None
    category_id: str | None = None
    brand_name: str | None = None
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    session_id: str
    metadata: BehaviorMetadata = Field(default_factory=BehaviorMetadata)


class SessionInsight(BaseModel):
    type: Literal["intent", "preference", "behavior-pattern"]
    confidence: float = Field(..., ge=0.0, le=1.0)
    description: str
    data: dict[str, Any] = Field(default_factory=dict)


class ShoppingSession(BaseModel):
    """Events grouped between a session start and end."""

    session_id: str
    user_id: str
    start_time: UtcDatetime = Field(default_factory=utcnow)
    end_time: UtcDatetime | None = None
    events: list[BehaviorEvent] = Field(default_factory=list)
    insights: list[SessionInsight] = Field(default_factory=list)
    total_value: float = 0.0
    items_viewed: int = 0
    items_purchased: int = 0

    @property
    def is_active(self) -> bool:
        return self.end_time is None


# =============================================================================
# Style DNA
# =============================================================================


class ColorProfile(BaseModel):
    color: str = Field(..., description="Hex code or color word")
    name: str
    frequency: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    season: Season | None = None


class BrandAffinity(BaseModel):
    brand_name: str
    affinity: float = Field(..., ge=0.0, le=1.0)
    purchase_count: int = 0
    average_spend: float = 0.0
    last_purchase: UtcDatetime | None = None
    categories: list[str] = Field(default_factory=list)


class CategoryWeight(BaseModel):
    category: str
    weight: float = Field(..., ge=0.0, le=1.0)
    purchase_frequency: int = 0
    average_spend: float = 0.0
    trend_direction: TrendDirection = "stable"


class PriceRange(BaseModel):
    category: str
    min: float
    max: float
    average: float
    currency: str = "USD"
    frequency: float = 0.0


class SeasonalData(BaseModel):
    season: Season
    year: int
    dominant_colors: list[str] = Field(default_factory=list)
    top_categories: list[str] = Field(default_factory=list)
    spending_pattern: float = 0.0
    style_evolution: float = Field(0.0, ge=-1.0, le=1.0)


class StyleProfile(BaseModel):
    """Aggregated summary of a user's inferred aesthetic and spending preferences."""

    user_id: str
    dominant_colors: list[ColorProfile] = Field(default_factory=list)
    preferred_brands: list[BrandAffinity] = Field(default_factory=list)
    category_preferences: list[CategoryWeight] = Field(default_factory=list)
    price_ranges: list[PriceRange] = Field(default_factory=list)
    seasonal_trends: list[SeasonalData] = Field(default_factory=list)
    evolution_score: float = Field(0.0, ge=-1.0, le=1.0)
    last_updated: UtcDatetime = Field(default_factory=utcnow)


class DateRange(BaseModel):
    start: UtcDatetime
    end: UtcDatetime


class PatternResult(BaseModel):
    pattern: Literal["seasonal-shift", "brand-loyalty", "price-sensitivity", "category-expansion"]
    strength: float = Field(..., ge=0.0, le=1.0)
    description: str
    recommendations: list[str] = Field(default_factory=list)
    timeframe: DateRange


class AnalyticsSummary(BaseModel):
    total_events: int
    unique_products: int
    unique_brands: int
    unique_categories: int
    total_spent: float
    average_order_value: float
    conversion_rate: float
    avg_session_duration: float = Field(..., description="Average session length in minutes")
    last_activity: UtcDatetime | None = None


# =============================================================================
# Products
# =============================================================================


class Price(BaseModel):
    amount: str
    currency_code: str = "USD"

    @field_validator("amount")
    @classmethod
    def amount_is_numeric(cls, v: str) -> str:
        try:
            float(v)
        except ValueError:
            raise ValueError(f"price amount must be numeric, got {v!r}") from None
        return v

    @property
    def value(self) -> float:
        return float(self.amount)


class ProductImage(BaseModel):
    id: str
    url: str
    alt_text: str | None = None
    width: int | None = None
    height: int | None = None


class SelectedOption(BaseModel):
    name: str
    value: str


class ProductVariant(BaseModel):
    id: str
    title: str
    price: Price
    available_for_sale: bool = True
    selected_options: list[SelectedOption] = Field(default_factory=list)


class Product(BaseModel):
    id: str
    title: str
    description: str | None = None
    images: list[ProductImage] = Field(default_factory=list)
    price: Price
    compare_at_price: Price | None = Field(None, description="Previous price, when discounted")
    vendor: str | None = None
    product_type: str | None = None
    tags: list[str] = Field(default_factory=list)
    variants: list[ProductVariant] = Field(default_factory=list)

    @property
    def search_text(self) -> str:
        return " ".join([self.title, self.description or "", *self.tags]).lower()


# =============================================================================
# Commerce
# =============================================================================


class ProductSet(BaseModel):
    """A curated, price-bundled collection presented as one purchasable unit."""

    id: str
    name: str
    insight: str
    description: str | None = None
    products: list[Product] = Field(default_factory=list)
    bundle_price: float | None = None
    original_price: float
    savings: float | None = None
    urgency_level: UrgencyLevel = "low"
    completion_status: float = Field(..., ge=0.0, le=1.0)
    expires_at: UtcDatetime | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    tags: list[str] = Field(default_factory=list)
    category: str


class RecommendationMetadata(BaseModel):
    style_match: float | None = Field(None, ge=0.0, le=1.0)
    price_score: float | None = Field(None, ge=0.0, le=1.0)
    trend_score: float | None = Field(None, ge=0.0, le=1.0)
    seasonal_relevance: float | None = Field(None, ge=0.0, le=1.0)
    social_proof: float | None = Field(None, ge=0.0, le=1.0)
    complementary_items: list[str] = Field(default_factory=list)


class ProductRecommendation(BaseModel):
    product_id: str
    reason: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    type: Literal["style-match", "complete-set", "trending", "price-drop", "seasonal"]
    urgency: Literal["limited-time", "low-stock", "price-ending"] | None = None
    metadata: RecommendationMetadata = Field(default_factory=RecommendationMetadata)


class AlgorithmWeights(BaseModel):
    style_match: float = 0.3
    price_preference: float = 0.2
    brand_affinity: float = 0.15
    seasonal_relevance: float = 0.15
    trending_score: float = 0.1
    social_proof: float = 0.1


class AlgorithmParameters(BaseModel):
    min_confidence: float = 0.6
    max_sets_per_user: int = 10
    bundle_discount_rate: float = 0.15
    urgency_threshold: float = 0.7
    max_recommendations: int = 20


class CurationAlgorithm(BaseModel):
    name: str = "StyleDNA-v1"
    version: str = "1.0.0"
    parameters: AlgorithmParameters = Field(default_factory=AlgorithmParameters)
    weights: AlgorithmWeights = Field(default_factory=AlgorithmWeights)


class PurchaseOption(BaseModel):
    type: Literal["individual", "bundle", "subscription"]
    price: float
    currency: str = "USD"
    savings: float | None = None
    description: str
    available: bool = True


class CommerceEvent(BaseModel):
    type: Literal["view", "click", "add_to_cart", "purchase", "share"]
    set_id: str
    product_id: str | None = None
    user_id: str
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    value: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SetInteractionData(BaseModel):
    views: int = 0
    clicks: int = 0
    add_to_carts: int = 0
    purchases: int = 0
    shares: int = 0
    conversion_rate: float = 0.0


# =============================================================================
# Stories
# =============================================================================


class Insight(BaseModel):
    id: str
    type: InsightType
    title: str
    description: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    data: dict[str, Any] = Field(default_factory=dict)
    visual_type: VisualType


class Position(BaseModel):
    x: float
    y: float
    z: float | None = None


class Size(BaseModel):
    width: float
    height: float


class VisualElement(BaseModel):
    id: str
    type: Literal["background", "chart", "text-overlay", "product-grid", "color-swatch", "trend-line"]
    position: Position
    size: Size
    style: dict[str, Any] = Field(default_factory=dict)
    data: Any = None


class ShareableContent(BaseModel):
    title: str
    description: str
    image_url: str | None = None
    hashtags: list[str] = Field(default_factory=list)
    platforms: list[Literal["instagram", "tiktok", "twitter", "facebook", "snapchat"]] = Field(
        default_factory=list
    )
    export_formats: list[Literal["story-9x16", "post-1x1", "landscape-16x9"]] = Field(
        default_factory=list
    )


class StoryData(BaseModel):
    id: str
    type: StoryType
    title: str
    insights: list[Insight] = Field(default_factory=list)
    visual_elements: list[VisualElement] = Field(default_factory=list)
    shoppable_products: list[Product] | None = None
    shareable_content: ShareableContent
    created_at: UtcDatetime = Field(default_factory=utcnow)
    expires_at: UtcDatetime | None = None

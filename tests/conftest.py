"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REDIS_ENABLED", "false")

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from shop_story.config import Settings
from shop_story.infrastructure.event_store import EventStore, MemoryBackend, get_event_store
from shop_story.main import create_app
from shop_story.models import (
    BehaviorEvent,
    BehaviorMetadata,
    EventSource,
    EventType,
    StyleProfile,
)
from shop_story.services.catalog import load_catalog

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        redis_enabled=False,
        max_events_stored=1000,
        max_sessions_stored=50,
    )


@pytest.fixture
def now() -> datetime:
    """Fixed reference time (mid-June, summer) for deterministic analytics."""
    return NOW


@pytest.fixture
def store() -> EventStore:
    """Fresh in-memory event store."""
    return EventStore(MemoryBackend())


@pytest.fixture
def app(store: EventStore) -> Any:
    """Create test application backed by the test's in-memory store."""
    app = create_app()
    app.dependency_overrides[get_event_store] = lambda: store
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
def sample_user_id() -> str:
    """Sample user ID for tests."""
    return "test-user-123"


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def make_event(sample_user_id: str) -> Callable[..., BehaviorEvent]:
    """Factory for behavior events with sensible defaults."""
    counter = iter(range(1, 100_000))

    def _make(
        event_type: EventType | str = EventType.VIEW,
        *,
        user_id: str | None = None,
        product_id: str | None = "prod-sage-linen-shirt",
        category_id: str | None = "shirts",
        brand_name: str | None = "Everlane",
        timestamp: datetime | None = None,
        session_id: str = "session-1",
        price: float | None = None,
        color: str | None = None,
        source: EventSource = EventSource.BROWSE,
        **context: Any,
    ) -> BehaviorEvent:
        if color is not None:
            context["color"] = color
        return BehaviorEvent(
            id=f"evt-{next(counter)}",
            user_id=user_id or sample_user_id,
            event_type=EventType(event_type),
            product_id=product_id,
            category_id=category_id,
            brand_name=brand_name,
            timestamp=timestamp or NOW - timedelta(days=1),
            session_id=session_id,
            metadata=BehaviorMetadata(source=source, price_at_time=price, context=context),
        )

    return _make


@pytest.fixture
def sample_events(make_event: Callable[..., BehaviorEvent]) -> list[BehaviorEvent]:
    """A recent mix of views and purchases across two brands and categories."""
    day = timedelta(days=1)
    return [
        make_event("view", timestamp=NOW - 5 * day, color="#90EE90", confidence=0.9),
        make_event("view", timestamp=NOW - 4 * day, color="#90EE90", confidence=0.7),
        make_event(
            "view",
            product_id="prod-blush-silk-blouse",
            brand_name="Reformation",
            timestamp=NOW - 4 * day,
            color="#FFB6C1",
        ),
        make_event("add_to_cart", timestamp=NOW - 3 * day),
        make_event("purchase", timestamp=NOW - 3 * day, price=68.0, color="#90EE90"),
        make_event(
            "view",
            product_id="prod-cream-cashmere-sweater",
            category_id="sweaters",
            timestamp=NOW - 2 * day,
        ),
        make_event(
            "purchase",
            product_id="prod-cream-cashmere-sweater",
            category_id="sweaters",
            timestamp=NOW - 2 * day,
            price=145.0,
        ),
    ]


@pytest.fixture
def sample_profile(sample_user_id: str) -> StyleProfile:
    """A hand-built profile with strong signals in every facet."""
    return StyleProfile.model_validate(
        {
            "user_id": sample_user_id,
            "dominant_colors": [
                {"color": "#90EE90", "name": "Sage", "frequency": 0.85, "confidence": 0.9},
                {"color": "#FFB6C1", "name": "Blush", "frequency": 0.4, "confidence": 0.7},
            ],
            "preferred_brands": [
                {"brand_name": "Everlane", "affinity": 0.9, "purchase_count": 6, "average_spend": 80.0},
                {"brand_name": "COS", "affinity": 0.3, "purchase_count": 1, "average_spend": 290.0},
            ],
            "category_preferences": [
                {"category": "Shirts", "weight": 0.9, "purchase_frequency": 4},
                {"category": "Outerwear", "weight": 0.65, "purchase_frequency": 2},
            ],
            "price_ranges": [
                {"category": "Shirts", "min": 30.0, "max": 128.0, "average": 75.0, "frequency": 4},
            ],
            "seasonal_trends": [
                {
                    "season": "summer",
                    "year": 2024,
                    "dominant_colors": ["#90EE90"],
                    "top_categories": ["Shirts"],
                    "spending_pattern": 75.0,
                    "style_evolution": 0.4,
                },
            ],
            "evolution_score": 0.2,
            "last_updated": NOW,
        }
    )

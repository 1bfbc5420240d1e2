"""Unit tests for Style DNA profile endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from shop_story.infrastructure.event_store import EventStore
from shop_story.models import ShoppingSession


@pytest.fixture
def recent_events(make_event):
    """Sample-like activity dated relative to the real clock."""
    now = datetime.now(timezone.utc)
    return [
        make_event(timestamp=now - timedelta(hours=5), color="#90EE90"),
        make_event(timestamp=now - timedelta(hours=4), color="#90EE90"),
        make_event("purchase", price=68.0, timestamp=now - timedelta(hours=3), color="#90EE90"),
        make_event(
            "purchase",
            product_id="prod-cream-cashmere-sweater",
            category_id="sweaters",
            price=145.0,
            timestamp=now - timedelta(hours=2),
        ),
    ]


def test_missing_profile(client: TestClient) -> None:
    """Unknown users have no profile."""
    response = client.get("/api/v1/profiles/nobody")
    assert response.status_code == 404


def test_refresh_without_events(client: TestClient) -> None:
    """Refreshing with no recorded behavior is rejected."""
    response = client.post("/api/v1/profiles/nobody/refresh")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_refresh_builds_profile(
    client: TestClient, store: EventStore, recent_events, sample_user_id: str
) -> None:
    """The first refresh processes every stored event."""
    await store.store_events(sample_user_id, recent_events)

    response = client.post(f"/api/v1/profiles/{sample_user_id}/refresh")
    assert response.status_code == 200

    data = response.json()
    assert data["user_id"] == sample_user_id
    assert data["dominant_colors"][0]["color"] == "#90EE90"
    assert data["preferred_brands"][0]["brand_name"] == "Everlane"
    assert data["preferred_brands"][0]["purchase_count"] == 2

    stored = client.get(f"/api/v1/profiles/{sample_user_id}")
    assert stored.status_code == 200
    assert stored.json() == data

    preferences = await store.load_user_preferences(sample_user_id)
    assert preferences["profile_refreshed"] is True


@pytest.mark.asyncio
async def test_refresh_without_new_events_is_stable(
    client: TestClient, store: EventStore, recent_events, sample_user_id: str
) -> None:
    """A second refresh with nothing new returns the stored profile unchanged."""
    await store.store_events(sample_user_id, recent_events)

    first = client.post(f"/api/v1/profiles/{sample_user_id}/refresh").json()
    second = client.post(f"/api/v1/profiles/{sample_user_id}/refresh").json()

    assert second == first


@pytest.mark.asyncio
async def test_insights(client: TestClient, store: EventStore, recent_events, sample_user_id: str) -> None:
    await store.store_events(sample_user_id, recent_events)
    client.post(f"/api/v1/profiles/{sample_user_id}/refresh")

    response = client.get(f"/api/v1/profiles/{sample_user_id}/insights")
    assert response.status_code == 200

    types = [i["type"] for i in response.json()]
    assert types[:2] == ["color-preference", "brand-affinity"]


def test_insights_without_profile(client: TestClient) -> None:
    response = client.get("/api/v1/profiles/nobody/insights")
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_patterns(client: TestClient, store: EventStore, recent_events, sample_user_id: str) -> None:
    await store.save_session(
        ShoppingSession(session_id="s1", user_id=sample_user_id, events=recent_events)
    )

    response = client.get(f"/api/v1/profiles/{sample_user_id}/patterns")
    assert response.status_code == 200

    patterns = {p["pattern"] for p in response.json()}
    assert "brand-loyalty" in patterns


@pytest.mark.asyncio
async def test_summary(client: TestClient, store: EventStore, recent_events, sample_user_id: str) -> None:
    await store.store_events(sample_user_id, recent_events)

    response = client.get(f"/api/v1/profiles/{sample_user_id}/summary")
    assert response.status_code == 200

    data = response.json()
    assert data["total_events"] == 4
    assert data["total_spent"] == 213.0
    assert data["average_order_value"] == 106.5
    assert data["conversion_rate"] == 0.5


@pytest.mark.asyncio
async def test_batch_import_after_refresh_reaches_profile(
    client: TestClient, store: EventStore, recent_events, make_event, sample_user_id: str
) -> None:
    """Historical events imported after a refresh are merged on the next one."""
    await store.store_events(sample_user_id, recent_events)
    client.post(f"/api/v1/profiles/{sample_user_id}/refresh")

    ten_days_ago = datetime.now(timezone.utc) - timedelta(days=10)
    backfill = [
        make_event("purchase", brand_name="COS", price=90.0, timestamp=ten_days_ago - timedelta(hours=i))
        for i in range(3)
    ]
    response = client.post(
        "/api/v1/events/batch", json={"events": [e.model_dump(mode="json") for e in backfill]}
    )
    assert response.json()["recorded_count"] == 3

    data = client.post(f"/api/v1/profiles/{sample_user_id}/refresh").json()

    brands = {b["brand_name"]: b for b in data["preferred_brands"]}
    assert brands["cos"]["purchase_count"] == 3

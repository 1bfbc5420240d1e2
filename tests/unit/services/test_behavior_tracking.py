"""Tests for session and event tracking."""

import pytest

from shop_story.exceptions import NoActiveSessionError
from shop_story.infrastructure.event_store import EventStore
from shop_story.models import BehaviorMetadata, EventType
from shop_story.services.behavior_tracking import BehaviorTracker, create_behavior_event


@pytest.fixture
def tracker(store: EventStore) -> BehaviorTracker:
    return BehaviorTracker(store)


def test_create_behavior_event() -> None:
    """Events get a generated id and default metadata."""
    event = create_behavior_event("user-1", "view", "prod-1", session_id="s1")

    assert event.id
    assert event.event_type == EventType.VIEW
    assert event.metadata == BehaviorMetadata()


class TestBehaviorTracker:
    """Tests for the session lifecycle."""

    @pytest.mark.asyncio
    async def test_track_requires_session(
        self, tracker: BehaviorTracker, sample_user_id: str
    ) -> None:
        with pytest.raises(NoActiveSessionError):
            await tracker.track_event(sample_user_id, "view", "prod-1")

    @pytest.mark.asyncio
    async def test_track_appends_to_session_and_log(
        self, tracker: BehaviorTracker, store: EventStore, sample_user_id: str
    ) -> None:
        session = await tracker.start_session(sample_user_id)

        event = await tracker.track_event(
            sample_user_id, EventType.VIEW, "prod-1", brand_name="Everlane"
        )

        assert event.session_id == session.session_id
        current = await store.get_current_session(sample_user_id)
        assert [e.id for e in current.events] == [event.id]
        assert current.items_viewed == 1
        assert [e.id for e in await store.get_events(sample_user_id)] == [event.id]

    @pytest.mark.asyncio
    async def test_end_session_summarizes(
        self, tracker: BehaviorTracker, store: EventStore, sample_user_id: str
    ) -> None:
        await tracker.start_session(sample_user_id)
        await tracker.track_event(sample_user_id, "view", "prod-1", category_id="shirts")
        await tracker.track_event(
            sample_user_id,
            "purchase",
            "prod-1",
            BehaviorMetadata(price_at_time=68.0),
            category_id="shirts",
        )

        ended = await tracker.end_session(sample_user_id)

        assert ended is not None
        assert ended.end_time is not None
        assert ended.total_value == 68.0
        assert (ended.items_viewed, ended.items_purchased) == (1, 1)
        assert ended.insights[0].type == "intent"
        assert await store.get_current_session(sample_user_id) is None

    @pytest.mark.asyncio
    async def test_end_without_session(self, tracker: BehaviorTracker, sample_user_id: str) -> None:
        assert await tracker.end_session(sample_user_id) is None

    @pytest.mark.asyncio
    async def test_tracking_after_end_fails(
        self, tracker: BehaviorTracker, sample_user_id: str
    ) -> None:
        await tracker.start_session(sample_user_id)
        await tracker.end_session(sample_user_id)

        with pytest.raises(NoActiveSessionError):
            await tracker.track_event(sample_user_id, "view")

"""Shopping session and behavior event tracking."""

from datetime import datetime, timezone

import structlog

from shop_story.exceptions import NoActiveSessionError
from shop_story.infrastructure.event_store import EventStore
from shop_story.models import (
    BehaviorEvent,
    BehaviorMetadata,
    EventType,
    ShoppingSession,
)
from shop_story.services.analytics import generate_id, generate_session_insights

logger = structlog.get_logger()


def create_behavior_event(
    user_id: str,
    event_type: EventType | str,
    product_id: str | None = None,
    *,
    session_id: str,
    category_id: str | None = None,
    brand_name: str | None = None,
    metadata: BehaviorMetadata | None = None,
    timestamp: datetime | None = None,
) -> BehaviorEvent:
    return BehaviorEvent(
        id=generate_id(),
        user_id=user_id,
        event_type=EventType(event_type),
        product_id=product_id,
        category_id=category_id,
        brand_name=brand_name,
        timestamp=timestamp or datetime.now(timezone.utc),
        session_id=session_id,
        metadata=metadata or BehaviorMetadata(),
    )


class BehaviorTracker:
    """Records events into the user's active session and the event log."""

    def __init__(self, store: EventStore):
        self.store = store

    async def start_session(self, user_id: str) -> ShoppingSession:
        session = ShoppingSession(session_id=generate_id(), user_id=user_id)
        await self.store.save_session(session)
        logger.info("Session started", user_id=user_id, session_id=session.session_id)
        return session

    async def end_session(self, user_id: str) -> ShoppingSession | None:
        """Close the active session and attach its analysis. None if nothing is active."""
        session = await self.store.get_current_session(user_id)
        if session is None:
            return None

        events = session.events
        purchases = [e for e in events if e.event_type == EventType.PURCHASE]
        ended = session.model_copy(
            update={
                "end_time": datetime.now(timezone.utc),
                "insights": generate_session_insights(events),
                "total_value": sum(e.metadata.price_at_time or 0.0 for e in purchases),
                "items_viewed": sum(1 for e in events if e.event_type == EventType.VIEW),
                "items_purchased": len(purchases),
            }
        )
        await self.store.save_session(ended)

        logger.info(
            "Session ended",
            user_id=user_id,
            session_id=ended.session_id,
            events=len(events),
            insights=len(ended.insights),
        )
        return ended

    async def track_event(
        self,
        user_id: str,
        event_type: EventType | str,
        product_id: str | None = None,
        metadata: BehaviorMetadata | None = None,
        *,
        category_id: str | None = None,
        brand_name: str | None = None,
    ) -> BehaviorEvent:
        session = await self.store.get_current_session(user_id)
        if session is None:
            raise NoActiveSessionError(f"No active session for user {user_id}")

        event = create_behavior_event(
            user_id,
            event_type,
            product_id,
            session_id=session.session_id,
            category_id=category_id,
            brand_name=brand_name,
            metadata=metadata,
        )
        await self.store.add_event(event)

        updated = session.model_copy(
            update={
                "events": [*session.events, event],
                "items_viewed": session.items_viewed + (event.event_type == EventType.VIEW),
                "items_purchased": session.items_purchased
                + (event.event_type == EventType.PURCHASE),
            }
        )
        await self.store.save_session(updated)

        logger.debug(
            "Event tracked",
            user_id=user_id,
            event_type=event.event_type.value,
            product_id=product_id,
        )
        return event

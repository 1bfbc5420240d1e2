"""Style DNA analytics engine.

Builds and updates a user's Style DNA profile from behavior events and
derives insights, cross-session patterns and summary statistics.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone

import numpy as np
import structlog

from shared.constants import (
    EVENT_MAX_AGE_DAYS,
    MAX_CATEGORY_PREFERENCES,
    MAX_DOMINANT_COLORS,
    MAX_PREFERRED_BRANDS,
    MAX_SEASONAL_TRENDS,
)
from shop_story.exceptions import InsufficientDataError, UserMismatchError
from shop_story.models import (
    AnalyticsSummary,
    BehaviorEvent,
    EventType,
    Insight,
    PatternResult,
    ShoppingSession,
    StyleProfile,
)
from shop_story.services.analytics import (
    calculate_brand_affinities,
    calculate_category_preferences,
    calculate_evolution_score,
    calculate_price_ranges,
    detect_behavior_patterns,
    extract_color_preferences,
    generate_seasonal_trends,
    generate_session_insights,
    generate_story_insights,
)
from shop_story.services.profile_merge import update_style_profile

logger = structlog.get_logger()


class AnalyticsEngine:
    """Per-user facade over the aggregation and merge functions."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    def _own_events(self, events: list[BehaviorEvent]) -> list[BehaviorEvent]:
        return [e for e in events if e.user_id == self.user_id]

    def process_events(
        self, events: list[BehaviorEvent], now: datetime | None = None
    ) -> StyleProfile:
        """
        Build a fresh Style DNA profile from this user's events.

        Args:
            events: Behavior events; other users' events are ignored
            now: Reference time for recency windows

        Returns:
            A capped StyleProfile

        Raises:
            InsufficientDataError: If no events belong to this user
        """
        now = now or datetime.now(timezone.utc)
        user_events = self._own_events(events)
        if not user_events:
            raise InsufficientDataError("Insufficient behavior data to generate Style DNA")

        profile = StyleProfile(
            user_id=self.user_id,
            dominant_colors=extract_color_preferences(user_events)[:MAX_DOMINANT_COLORS],
            preferred_brands=calculate_brand_affinities(user_events)[:MAX_PREFERRED_BRANDS],
            category_preferences=calculate_category_preferences(user_events, now)[
                :MAX_CATEGORY_PREFERENCES
            ],
            price_ranges=calculate_price_ranges(user_events),
            seasonal_trends=generate_seasonal_trends(user_events)[:MAX_SEASONAL_TRENDS],
            evolution_score=calculate_evolution_score(user_events, now),
            last_updated=now,
        )

        logger.info(
            "Built style profile",
            user_id=self.user_id,
            events=len(user_events),
            colors=len(profile.dominant_colors),
            brands=len(profile.preferred_brands),
        )
        return profile

    def generate_insights(
        self, profile: StyleProfile, now: datetime | None = None
    ) -> list[Insight]:
        return generate_story_insights(profile, now)

    def update_style_dna(
        self,
        user_id: str,
        new_events: list[BehaviorEvent],
        existing: StyleProfile | None = None,
        now: datetime | None = None,
    ) -> StyleProfile:
        """Merge new events into ``existing``, or build from scratch when there is none."""
        if user_id != self.user_id:
            raise UserMismatchError("User ID mismatch in analytics engine")

        if existing is None:
            return self.process_events(new_events, now)
        if existing.user_id != self.user_id:
            raise UserMismatchError("Existing profile belongs to a different user")

        return update_style_profile(existing, self._own_events(new_events), now)

    def detect_patterns(
        self, sessions: list[ShoppingSession], now: datetime | None = None
    ) -> list[PatternResult]:
        """Behavior patterns across all of this user's sessions."""
        events = [e for s in sessions if s.user_id == self.user_id for e in s.events]
        if not events:
            return []
        return detect_behavior_patterns(events, now)

    def analyze_session(self, session: ShoppingSession) -> ShoppingSession:
        if session.user_id != self.user_id:
            raise UserMismatchError("User ID mismatch in session analysis")

        purchases = [e for e in session.events if e.event_type == EventType.PURCHASE]
        return session.model_copy(
            update={
                "insights": generate_session_insights(session.events),
                "total_value": sum(e.metadata.price_at_time or 0.0 for e in purchases),
                "items_viewed": sum(1 for e in session.events if e.event_type == EventType.VIEW),
                "items_purchased": len(purchases),
            }
        )

    def get_analytics_summary(self, events: list[BehaviorEvent]) -> AnalyticsSummary:
        user_events = sorted(self._own_events(events), key=lambda e: e.timestamp)
        purchases = [e for e in user_events if e.event_type == EventType.PURCHASE]
        total_spent = sum(e.metadata.price_at_time or 0.0 for e in purchases)

        return AnalyticsSummary(
            total_events=len(user_events),
            unique_products=len({e.product_id for e in user_events if e.product_id}),
            unique_brands=len({e.brand_name for e in user_events if e.brand_name}),
            unique_categories=len({e.category_id for e in user_events if e.category_id}),
            total_spent=total_spent,
            average_order_value=total_spent / len(purchases) if purchases else 0.0,
            conversion_rate=len(purchases) / len(user_events) if user_events else 0.0,
            avg_session_duration=self._average_session_minutes(user_events),
            last_activity=user_events[-1].timestamp if user_events else None,
        )

    @staticmethod
    def _average_session_minutes(events: list[BehaviorEvent]) -> float:
        if not events:
            return 0.0

        by_session: dict[str, list[datetime]] = defaultdict(list)
        for event in events:
            by_session[event.session_id].append(event.timestamp)

        # single-event sessions count as zero length
        durations = np.array(
            [(max(ts) - min(ts)).total_seconds() for ts in by_session.values()],
            dtype=np.float64,
        )
        return float(durations.mean() / 60)


def validate_behavior_events(
    events: list[BehaviorEvent], now: datetime | None = None
) -> tuple[list[BehaviorEvent], list[BehaviorEvent]]:
    """Split events into (valid, invalid); future or year-old events are invalid."""
    now = now or datetime.now(timezone.utc)
    oldest = now - timedelta(days=EVENT_MAX_AGE_DAYS)

    valid: list[BehaviorEvent] = []
    invalid: list[BehaviorEvent] = []
    for event in events:
        if not (event.id and event.user_id and event.session_id):
            invalid.append(event)
        elif event.timestamp > now or event.timestamp < oldest:
            invalid.append(event)
        else:
            valid.append(event)
    return valid, invalid


def normalize_behavior_events(events: list[BehaviorEvent]) -> list[BehaviorEvent]:
    return [
        event.model_copy(
            update={
                "brand_name": event.brand_name.strip().lower() if event.brand_name else None,
                "category_id": event.category_id.strip().lower() if event.category_id else None,
            }
        )
        for event in events
    ]

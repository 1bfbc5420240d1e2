"""Style DNA service: ties the event store to the analytics engine."""

from datetime import datetime, timezone

import structlog

from shop_story.exceptions import InsufficientDataError
from shop_story.infrastructure.event_store import EventStore
from shop_story.infrastructure.redis import CacheService
from shop_story.models import AnalyticsSummary, Insight, PatternResult, StyleProfile
from shop_story.services.analytics_engine import AnalyticsEngine

logger = structlog.get_logger()


class StyleDNAService:
    """Loads, refreshes and persists Style DNA profiles."""

    def __init__(self, store: EventStore, cache: CacheService | None = None):
        self.store = store
        self.cache = cache

    async def refresh_profile(self, user_id: str, now: datetime | None = None) -> StyleProfile:
        """
        Rebuild or incrementally update a user's profile from stored events.

        With no stored profile every event is processed. Otherwise only events
        the profile does not yet reflect are merged in, whatever their
        timestamps, so a historical batch import still reaches the profile.
        Profiles without a merged-event record (imported ones) fall back to
        events newer than ``last_updated``. The stored profile is returned
        as-is when nothing is new.

        Raises:
            InsufficientDataError: If the user has neither events nor a profile
        """
        now = now or datetime.now(timezone.utc)
        engine = AnalyticsEngine(user_id)
        events = await self.store.get_events(user_id)
        existing = await self.store.load_profile(user_id)

        if existing is None:
            if not events:
                raise InsufficientDataError(f"No behavior events recorded for user {user_id}")
            profile = engine.process_events(events, now)
        else:
            merged = await self.store.load_merged_event_ids(user_id)
            if merged is None:
                new_events = [e for e in events if e.timestamp > existing.last_updated]
            else:
                new_events = [e for e in events if e.id not in merged]
            if not new_events:
                logger.debug("Profile up to date", user_id=user_id)
                return existing
            profile = engine.update_style_dna(user_id, new_events, existing, now)

        await self.store.save_profile(profile)
        await self.store.save_merged_event_ids(user_id, [e.id for e in events])
        await self.store.save_user_preferences(
            user_id, {"profile_refreshed": True, "event_count": len(events)}, now
        )
        if self.cache is not None:
            await self.cache.invalidate_user(user_id)

        logger.info(
            "Style profile refreshed",
            user_id=user_id,
            incremental=existing is not None,
            evolution_score=round(profile.evolution_score, 3),
        )
        return profile

    async def get_profile(self, user_id: str) -> StyleProfile | None:
        return await self.store.load_profile(user_id)

    async def get_insights(self, user_id: str, now: datetime | None = None) -> list[Insight]:
        profile = await self.store.load_profile(user_id)
        if profile is None:
            return []
        return AnalyticsEngine(user_id).generate_insights(profile, now)

    async def get_patterns(self, user_id: str, now: datetime | None = None) -> list[PatternResult]:
        sessions = await self.store.load_sessions(user_id)
        return AnalyticsEngine(user_id).detect_patterns(sessions, now)

    async def get_summary(self, user_id: str) -> AnalyticsSummary:
        events = await self.store.get_events(user_id)
        return AnalyticsEngine(user_id).get_analytics_summary(events)

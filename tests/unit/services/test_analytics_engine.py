"""Tests for the Style DNA analytics engine."""

from datetime import datetime, timedelta

import pytest

from shop_story.exceptions import InsufficientDataError, UserMismatchError
from shop_story.models import ShoppingSession, StyleProfile
from shop_story.services.analytics_engine import (
    AnalyticsEngine,
    normalize_behavior_events,
    validate_behavior_events,
)


@pytest.fixture
def engine(sample_user_id: str) -> AnalyticsEngine:
    return AnalyticsEngine(sample_user_id)


class TestProcessEvents:
    """Tests for building a profile from scratch."""

    def test_builds_profile(self, engine: AnalyticsEngine, sample_events, now: datetime) -> None:
        profile = engine.process_events(sample_events, now)

        assert profile.user_id == engine.user_id
        assert profile.dominant_colors[0].color == "#90EE90"
        assert profile.preferred_brands[0].brand_name == "Everlane"
        assert {c.category for c in profile.category_preferences} == {"shirts", "sweaters"}
        assert profile.last_updated == now
        assert profile.evolution_score == 0.0

    def test_ignores_other_users(self, engine: AnalyticsEngine, make_event, now: datetime) -> None:
        events = [make_event(color="#000080"), make_event(user_id="someone-else", color="#FFFFFF")]

        profile = engine.process_events(events, now)

        assert [c.color for c in profile.dominant_colors] == ["#000080"]

    def test_no_events(self, engine: AnalyticsEngine) -> None:
        with pytest.raises(InsufficientDataError):
            engine.process_events([])

    def test_only_foreign_events(self, engine: AnalyticsEngine, make_event) -> None:
        with pytest.raises(InsufficientDataError):
            engine.process_events([make_event(user_id="someone-else")])

    def test_colors_are_capped(self, engine: AnalyticsEngine, make_event, now: datetime) -> None:
        events = [make_event(color=f"#00000{i}") for i in range(8)]

        assert len(engine.process_events(events, now).dominant_colors) == 5


class TestUpdateStyleDna:
    """Tests for incremental updates."""

    def test_user_mismatch(self, engine: AnalyticsEngine, sample_events) -> None:
        with pytest.raises(UserMismatchError):
            engine.update_style_dna("another-user", sample_events)

    def test_existing_profile_mismatch(self, engine: AnalyticsEngine, sample_events) -> None:
        foreign = StyleProfile(user_id="another-user")

        with pytest.raises(UserMismatchError):
            engine.update_style_dna(engine.user_id, sample_events, foreign)

    def test_without_existing_builds_fresh(
        self, engine: AnalyticsEngine, sample_events, now: datetime
    ) -> None:
        profile = engine.update_style_dna(engine.user_id, sample_events, None, now)

        assert profile == engine.process_events(sample_events, now)

    def test_merges_into_existing(
        self,
        engine: AnalyticsEngine,
        sample_profile: StyleProfile,
        make_event,
        now: datetime,
    ) -> None:
        later = now + timedelta(days=1)
        events = [make_event("purchase", brand_name="COS", price=290.0, timestamp=later)]

        updated = engine.update_style_dna(engine.user_id, events, sample_profile, later)

        assert updated.last_updated == later
        cos = next(b for b in updated.preferred_brands if b.brand_name == "COS")
        assert cos.purchase_count == 2


class TestPatternsAndSessions:
    """Tests for session analysis, patterns and summaries."""

    def test_detect_patterns_from_sessions(
        self, engine: AnalyticsEngine, sample_events, now: datetime
    ) -> None:
        session = ShoppingSession(session_id="s1", user_id=engine.user_id, events=sample_events)

        patterns = engine.detect_patterns([session], now)

        assert {p.pattern for p in patterns} == {"seasonal-shift", "brand-loyalty"}

    def test_detect_patterns_without_events(self, engine: AnalyticsEngine) -> None:
        assert engine.detect_patterns([]) == []

    def test_analyze_session(self, engine: AnalyticsEngine, sample_events) -> None:
        session = ShoppingSession(session_id="s1", user_id=engine.user_id, events=sample_events)

        analyzed = engine.analyze_session(session)

        assert analyzed.total_value == pytest.approx(213.0)
        assert analyzed.items_viewed == 4
        assert analyzed.items_purchased == 2
        assert analyzed.insights

    def test_analyze_foreign_session(self, engine: AnalyticsEngine) -> None:
        with pytest.raises(UserMismatchError):
            engine.analyze_session(ShoppingSession(session_id="s1", user_id="someone-else"))

    def test_summary(self, engine: AnalyticsEngine, make_event, now: datetime) -> None:
        events = [
            make_event(session_id="a", timestamp=now - timedelta(minutes=20)),
            make_event("purchase", session_id="a", price=50.0, timestamp=now),
            make_event(session_id="b", product_id="prod-other", brand_name="COS", timestamp=now),
        ]

        summary = engine.get_analytics_summary(events)

        assert summary.total_events == 3
        assert summary.unique_products == 2
        assert summary.unique_brands == 2
        assert summary.total_spent == 50.0
        assert summary.average_order_value == 50.0
        assert summary.conversion_rate == pytest.approx(1 / 3)
        # 20 minutes and a single-event session
        assert summary.avg_session_duration == pytest.approx(10.0)
        assert summary.last_activity == now

    def test_empty_summary(self, engine: AnalyticsEngine) -> None:
        summary = engine.get_analytics_summary([])

        assert summary.total_events == 0
        assert summary.avg_session_duration == 0.0
        assert summary.last_activity is None


class TestValidation:
    """Tests for event validation and normalization."""

    def test_validate_splits_events(self, make_event, now: datetime) -> None:
        good = make_event(timestamp=now - timedelta(days=1))
        future = make_event(timestamp=now + timedelta(minutes=5))
        ancient = make_event(timestamp=now - timedelta(days=400))
        no_session = make_event(session_id="")

        valid, invalid = validate_behavior_events([good, future, ancient, no_session], now)

        assert valid == [good]
        assert invalid == [future, ancient, no_session]

    def test_normalize(self, make_event) -> None:
        event = make_event(brand_name="  Everlane ", category_id="Shirts")

        normalized = normalize_behavior_events([event])[0]

        assert normalized.brand_name == "everlane"
        assert normalized.category_id == "shirts"
        assert normalized.id == event.id

    def test_normalize_keeps_missing_fields(self, make_event) -> None:
        event = make_event(brand_name=None, category_id=None)

        normalized = normalize_behavior_events([event])[0]

        assert normalized.brand_name is None
        assert normalized.category_id is None

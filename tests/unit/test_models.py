"""Unit tests for model-level normalization."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from shop_story.models import BehaviorEvent, Price, ShoppingSession, StyleProfile


class TestUtcDatetimes:
    """Datetimes are always stored timezone-aware in UTC."""

    def test_naive_event_timestamp_is_utc(self) -> None:
        event = BehaviorEvent(
            id="evt-1",
            user_id="u1",
            event_type="view",
            session_id="s1",
            timestamp="2024-06-01T10:00:00",
        )
        assert event.timestamp == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)

    def test_offset_timestamp_is_converted(self) -> None:
        event = BehaviorEvent(
            id="evt-1",
            user_id="u1",
            event_type="view",
            session_id="s1",
            timestamp="2024-06-01T12:00:00+02:00",
        )
        assert event.timestamp.tzinfo == timezone.utc
        assert event.timestamp.hour == 10

    def test_session_and_profile_datetimes(self) -> None:
        session = ShoppingSession(
            session_id="s1",
            user_id="u1",
            start_time=datetime(2024, 6, 1, 9),
            end_time=datetime(2024, 6, 1, 10),
        )
        profile = StyleProfile(user_id="u1", last_updated=datetime(2024, 6, 1, 11))

        assert session.end_time - session.start_time == timedelta(hours=1)
        assert session.start_time.tzinfo == timezone.utc
        assert profile.last_updated.tzinfo == timezone.utc
        assert profile.last_updated > datetime(2024, 6, 1, 10, 30, tzinfo=timezone.utc)


class TestPrice:
    """Price amounts must be numeric strings."""

    def test_numeric_amount(self) -> None:
        assert Price(amount="68.00").value == 68.0

    def test_non_numeric_amount_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Price(amount="$68.00")

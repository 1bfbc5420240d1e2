"""Per-user key-value store for behavior events, sessions and derived state.

Values are orjson-encoded pydantic dumps under ``{prefix}:{user_id}:{kind}``.
The backend is anything with async ``get``/``set``/``delete``: a
``redis.asyncio.Redis`` client in production, or ``MemoryBackend`` when Redis
is disabled or unreachable. Unreadable stored values are logged and treated
as missing rather than raised.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import orjson
import structlog
from pydantic import BaseModel
from redis.exceptions import RedisError

from shared.constants import (
    MAX_EVENTS_STORED,
    MAX_SESSIONS_STORED,
    STORAGE_VERSION,
    SYNC_INTERVAL_HOURS,
)
from shop_story.config import get_settings
from shop_story.infrastructure.redis import get_redis_client, mark_redis_unavailable
from shop_story.models import BehaviorEvent, EventType, ProductSet, ShoppingSession, StyleProfile

logger = structlog.get_logger()

STORAGE_KINDS = (
    "events",
    "sessions",
    "profile",
    "product_sets",
    "preferences",
    "last_sync",
    "merged_events",
)


class KeyValueBackend(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes) -> Any: ...

    async def delete(self, *keys: str) -> Any: ...


class MemoryBackend:
    """In-process stand-in for Redis, used in development and tests."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> bool:
        self._data[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed


class EventStore:
    """
    Behavior event log plus per-user sessions, profile, sets and preferences.

    With a ``fallback`` backend, a Redis error switches the store over to it
    for the rest of its lifetime and calls ``on_backend_failure``. Without
    one, Redis errors propagate.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        prefix: str = "shop-story",
        max_events: int = MAX_EVENTS_STORED,
        max_sessions: int = MAX_SESSIONS_STORED,
        fallback: KeyValueBackend | None = None,
        on_backend_failure: Callable[[Exception], Awaitable[None]] | None = None,
    ):
        self.backend = backend
        self.prefix = prefix
        self.max_events = max_events
        self.max_sessions = max_sessions
        self.fallback = fallback
        self.on_backend_failure = on_backend_failure

    def _key(self, user_id: str, kind: str) -> str:
        return f"{self.prefix}:{user_id}:{kind}"

    async def _call(self, operation: str, *args: Any) -> Any:
        try:
            return await getattr(self.backend, operation)(*args)
        except RedisError as e:
            if self.fallback is None or self.backend is self.fallback:
                raise
            logger.warning("Storage backend failed, using fallback", operation=operation, error=str(e))
            self.backend = self.fallback
            if self.on_backend_failure is not None:
                await self.on_backend_failure(e)
            return await getattr(self.backend, operation)(*args)

    async def _read(self, user_id: str, kind: str) -> Any | None:
        key = self._key(user_id, kind)
        raw = await self._call("get", key)
        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.warning("Unreadable stored value", key=key, error=str(e))
            return None

    async def _write(self, user_id: str, kind: str, value: Any) -> None:
        await self._call("set", self._key(user_id, kind), orjson.dumps(value))

    async def _read_models(self, user_id: str, kind: str, model: type[BaseModel]) -> list:
        data = await self._read(user_id, kind)
        if not isinstance(data, list):
            return []
        try:
            return [model.model_validate(item) for item in data]
        except ValueError as e:
            logger.warning("Invalid stored records", user_id=user_id, kind=kind, error=str(e))
            return []

    async def _write_models(self, user_id: str, kind: str, items: list[BaseModel]) -> None:
        await self._write(user_id, kind, [item.model_dump(mode="json") for item in items])

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def add_event(self, event: BehaviorEvent) -> None:
        events = await self.get_events(event.user_id)
        events.append(event)
        await self.store_events(event.user_id, events)

    async def get_events(self, user_id: str) -> list[BehaviorEvent]:
        return await self._read_models(user_id, "events", BehaviorEvent)

    async def store_events(self, user_id: str, events: list[BehaviorEvent]) -> None:
        """Replace the event log, keeping the newest ``max_events`` in chronological order."""
        ordered = sorted(events, key=lambda e: e.timestamp)
        if len(ordered) > self.max_events:
            logger.debug(
                "Trimming event log",
                user_id=user_id,
                dropped=len(ordered) - self.max_events,
            )
            ordered = ordered[-self.max_events :]
        await self._write_models(user_id, "events", ordered)

    async def get_events_by_date_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[BehaviorEvent]:
        return [e for e in await self.get_events(user_id) if start <= e.timestamp <= end]

    async def get_events_by_type(
        self, user_id: str, event_type: EventType | str
    ) -> list[BehaviorEvent]:
        event_type = EventType(event_type)
        return [e for e in await self.get_events(user_id) if e.event_type == event_type]

    async def clear_events(self, user_id: str) -> None:
        await self._call("delete", self._key(user_id, "events"))

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def save_session(self, session: ShoppingSession) -> None:
        """Insert or replace a session; the newest is kept first."""
        sessions = [
            s for s in await self.load_sessions(session.user_id) if s.session_id != session.session_id
        ]
        sessions.insert(0, session)
        await self._write_models(session.user_id, "sessions", sessions[: self.max_sessions])

    async def load_sessions(self, user_id: str) -> list[ShoppingSession]:
        return await self._read_models(user_id, "sessions", ShoppingSession)

    async def get_current_session(self, user_id: str) -> ShoppingSession | None:
        return next((s for s in await self.load_sessions(user_id) if s.is_active), None)

    # -------------------------------------------------------------------------
    # Profile, product sets and preferences
    # -------------------------------------------------------------------------

    async def save_profile(self, profile: StyleProfile) -> None:
        await self._write(profile.user_id, "profile", profile.model_dump(mode="json"))

    async def load_profile(self, user_id: str) -> StyleProfile | None:
        data = await self._read(user_id, "profile")
        if data is None:
            return None
        try:
            return StyleProfile.model_validate(data)
        except ValueError as e:
            logger.warning("Invalid stored profile", user_id=user_id, error=str(e))
            return None

    async def save_product_sets(self, user_id: str, product_sets: list[ProductSet]) -> None:
        await self._write_models(user_id, "product_sets", product_sets)

    async def load_product_sets(self, user_id: str) -> list[ProductSet]:
        return await self._read_models(user_id, "product_sets", ProductSet)

    async def save_user_preferences(
        self, user_id: str, preferences: dict[str, Any], now: datetime | None = None
    ) -> dict[str, Any]:
        """Shallow-merge ``preferences`` over the stored ones and stamp ``last_updated``."""
        merged = {**await self.load_user_preferences(user_id), **preferences}
        merged["last_updated"] = (now or datetime.now(timezone.utc)).isoformat()
        await self._write(user_id, "preferences", merged)
        return merged

    async def load_user_preferences(self, user_id: str) -> dict[str, Any]:
        data = await self._read(user_id, "preferences")
        return data if isinstance(data, dict) else {}

    # -------------------------------------------------------------------------
    # Sync bookkeeping
    # -------------------------------------------------------------------------

    async def save_last_sync_time(self, user_id: str, when: datetime | None = None) -> None:
        await self._write(user_id, "last_sync", (when or datetime.now(timezone.utc)).isoformat())

    async def load_last_sync_time(self, user_id: str) -> datetime | None:
        data = await self._read(user_id, "last_sync")
        if not isinstance(data, str):
            return None
        try:
            return datetime.fromisoformat(data)
        except ValueError:
            logger.warning("Invalid stored sync time", user_id=user_id, value=data)
            return None

    async def needs_sync(self, user_id: str, now: datetime | None = None) -> bool:
        last_sync = await self.load_last_sync_time(user_id)
        if last_sync is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now - last_sync > timedelta(hours=SYNC_INTERVAL_HOURS)

    async def save_merged_event_ids(self, user_id: str, event_ids: list[str]) -> None:
        """Record which events the stored profile already reflects."""
        await self._write(user_id, "merged_events", event_ids)

    async def load_merged_event_ids(self, user_id: str) -> set[str] | None:
        data = await self._read(user_id, "merged_events")
        return set(data) if isinstance(data, list) else None

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def cleanup_old_data(
        self, user_id: str, days_to_keep: int = 30, now: datetime | None = None
    ) -> None:
        """Drop events and sessions older than the cutoff and expired product sets."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days_to_keep)

        events = await self.get_events(user_id)
        kept_events = [e for e in events if e.timestamp >= cutoff]
        await self.store_events(user_id, kept_events)

        sessions = await self.load_sessions(user_id)
        kept_sessions = [s for s in sessions if s.start_time >= cutoff]
        await self._write_models(user_id, "sessions", kept_sessions)

        product_sets = await self.load_product_sets(user_id)
        kept_sets = [s for s in product_sets if s.expires_at is None or s.expires_at > now]
        await self.save_product_sets(user_id, kept_sets)

        logger.info(
            "Cleaned up old data",
            user_id=user_id,
            events_removed=len(events) - len(kept_events),
            sessions_removed=len(sessions) - len(kept_sessions),
            sets_removed=len(product_sets) - len(kept_sets),
        )

    async def export_user_data(self, user_id: str) -> str:
        profile = await self.load_profile(user_id)
        last_sync = await self.load_last_sync_time(user_id)
        payload = {
            "version": STORAGE_VERSION,
            "user_id": user_id,
            "events": [e.model_dump(mode="json") for e in await self.get_events(user_id)],
            "sessions": [s.model_dump(mode="json") for s in await self.load_sessions(user_id)],
            "profile": profile.model_dump(mode="json") if profile else None,
            "product_sets": [
                s.model_dump(mode="json") for s in await self.load_product_sets(user_id)
            ],
            "preferences": await self.load_user_preferences(user_id),
            "last_sync": last_sync.isoformat() if last_sync else None,
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }
        return orjson.dumps(payload).decode()

    async def import_user_data(self, user_id: str, data: str | bytes) -> bool:
        """Load an export produced by ``export_user_data``. Returns False on bad input."""
        try:
            payload = orjson.loads(data)
            if not isinstance(payload, dict):
                raise ValueError("export payload must be an object")

            if payload.get("version") != STORAGE_VERSION:
                logger.warning(
                    "Storage version mismatch on import",
                    user_id=user_id,
                    expected=STORAGE_VERSION,
                    found=payload.get("version"),
                )

            events = [BehaviorEvent.model_validate(e) for e in payload.get("events") or []]
            sessions = [ShoppingSession.model_validate(s) for s in payload.get("sessions") or []]
            product_sets = [ProductSet.model_validate(s) for s in payload.get("product_sets") or []]
            profile = (
                StyleProfile.model_validate(payload["profile"]) if payload.get("profile") else None
            )
        except (ValueError, TypeError) as e:
            logger.warning("Failed to import user data", user_id=user_id, error=str(e))
            return False

        await self.store_events(user_id, events)
        await self._call("delete", self._key(user_id, "merged_events"))
        await self._write_models(user_id, "sessions", sessions[: self.max_sessions])
        await self.save_product_sets(user_id, product_sets)
        if profile is not None:
            await self.save_profile(profile)
        if isinstance(payload.get("preferences"), dict):
            await self._write(user_id, "preferences", payload["preferences"])
        if payload.get("last_sync"):
            await self._write(user_id, "last_sync", payload["last_sync"])

        logger.info("Imported user data", user_id=user_id, events=len(events))
        return True

    async def clear_all(self, user_id: str) -> None:
        await self._call("delete", *(self._key(user_id, kind) for kind in STORAGE_KINDS))

    async def get_storage_stats(self, user_id: str) -> dict[str, int]:
        """Stored byte size per kind plus a ``total``."""
        stats: dict[str, int] = {}
        for kind in STORAGE_KINDS:
            raw = await self._call("get", self._key(user_id, kind))
            stats[kind] = len(raw) if raw else 0
        stats["total"] = sum(stats.values())
        return stats


_memory_backend = MemoryBackend()


async def get_event_store() -> EventStore:
    """FastAPI dependency: Redis-backed store when reachable, shared memory store otherwise."""
    settings = get_settings()
    client = await get_redis_client()
    return EventStore(
        client if client is not None else _memory_backend,
        prefix=settings.store_key_prefix,
        max_events=settings.max_events_stored,
        max_sessions=settings.max_sessions_stored,
        fallback=_memory_backend,
        on_backend_failure=mark_redis_unavailable,
    )

"""Behavior event tracking endpoints."""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from shop_story.exceptions import NoActiveSessionError
from shop_story.infrastructure.event_store import EventStore, get_event_store
from shop_story.models import BehaviorEvent, BehaviorMetadata, EventType
from shop_story.services.analytics_engine import (
    normalize_behavior_events,
    validate_behavior_events,
)
from shop_story.services.behavior_tracking import BehaviorTracker

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request / Response Models
# =============================================================================


class TrackEventRequest(BaseModel):
    """Request model for tracking a behavior event in the active session."""

    user_id: str = Field(..., min_length=1, description="User identifier")
    event_type: EventType = Field(..., description="Type of behavior event")
    product_id: str | None = Field(None, description="Product the event refers to")
    category_id: str | None = None
    brand_name: str | None = None
    metadata: BehaviorMetadata = Field(default_factory=BehaviorMetadata)


class TrackEventResponse(BaseModel):
    success: bool
    event_id: str
    session_id: str
    recorded_at: str


class BatchEventRequest(BaseModel):
    """Historical events to import, e.g. from another device."""

    events: list[BehaviorEvent] = Field(..., max_length=500, description="Events to import (max 500)")


class BatchEventResponse(BaseModel):
    success: bool
    recorded_count: int
    failed_count: int
    recorded_at: str


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=TrackEventResponse)
async def track_event(
    request: TrackEventRequest,
    store: EventStore = Depends(get_event_store),
) -> TrackEventResponse:
    """
    Track a single behavior event.

    The user must have an active session (``POST /sessions``); otherwise
    the request is rejected with 409.
    """
    tracker = BehaviorTracker(store)
    try:
        event = await tracker.track_event(
            request.user_id,
            request.event_type,
            request.product_id,
            request.metadata,
            category_id=request.category_id,
            brand_name=request.brand_name,
        )
    except NoActiveSessionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return TrackEventResponse(
        success=True,
        event_id=event.id,
        session_id=event.session_id,
        recorded_at=event.timestamp.isoformat(),
    )


@router.post("/batch", response_model=BatchEventResponse)
async def import_events(
    request: BatchEventRequest,
    store: EventStore = Depends(get_event_store),
) -> BatchEventResponse:
    """
    Import historical events.

    Events dated in the future or more than a year ago are counted as failed;
    the rest are normalized and appended to each user's event log.
    """
    if not request.events:
        raise HTTPException(status_code=400, detail="At least one event is required")

    valid, invalid = validate_behavior_events(request.events)
    by_user: dict[str, list[BehaviorEvent]] = defaultdict(list)
    for event in normalize_behavior_events(valid):
        by_user[event.user_id].append(event)

    for user_id, events in by_user.items():
        existing = await store.get_events(user_id)
        known = {e.id for e in existing}
        await store.store_events(user_id, existing + [e for e in events if e.id not in known])

    logger.info(
        "Imported event batch",
        recorded=len(valid),
        failed=len(invalid),
        users=len(by_user),
    )

    return BatchEventResponse(
        success=not invalid,
        recorded_count=len(valid),
        failed_count=len(invalid),
        recorded_at=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/user/{user_id}", response_model=list[BehaviorEvent])
async def get_user_events(
    user_id: str,
    event_type: Annotated[EventType | None, Query(description="Filter by event type")] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    store: EventStore = Depends(get_event_store),
) -> list[BehaviorEvent]:
    """Most recent events for a user, oldest first."""
    if event_type is not None:
        events = await store.get_events_by_type(user_id, event_type)
    else:
        events = await store.get_events(user_id)
    return events[-limit:]


@router.post("/user/{user_id}/cleanup")
async def cleanup_user_data(
    user_id: str,
    days_to_keep: Annotated[int, Query(ge=1, le=365)] = 30,
    store: EventStore = Depends(get_event_store),
) -> dict[str, int]:
    """
    Drop events and sessions older than ``days_to_keep`` and expired product sets.

    Returns the per-kind storage sizes after cleanup.
    """
    await store.cleanup_old_data(user_id, days_to_keep)
    return await store.get_storage_stats(user_id)

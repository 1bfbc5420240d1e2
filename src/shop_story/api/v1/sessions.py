"""Shopping session endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from shop_story.infrastructure.event_store import EventStore, get_event_store
from shop_story.models import ShoppingSession
from shop_story.services.behavior_tracking import BehaviorTracker

router = APIRouter()


class StartSessionRequest(BaseModel):
    """Request model for starting a shopping session."""

    user_id: str = Field(..., min_length=1, description="User identifier")


@router.post("", response_model=ShoppingSession)
async def start_session(
    request: StartSessionRequest,
    store: EventStore = Depends(get_event_store),
) -> ShoppingSession:
    """Start a new active session. Events are only tracked inside a session."""
    return await BehaviorTracker(store).start_session(request.user_id)


@router.post("/{user_id}/end", response_model=ShoppingSession)
async def end_session(
    user_id: str,
    store: EventStore = Depends(get_event_store),
) -> ShoppingSession:
    """End the active session and return it with its insights and totals."""
    session = await BehaviorTracker(store).end_session(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No active session for user {user_id}")
    return session


@router.get("/{user_id}/current", response_model=ShoppingSession)
async def current_session(
    user_id: str,
    store: EventStore = Depends(get_event_store),
) -> ShoppingSession:
    session = await store.get_current_session(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No active session for user {user_id}")
    return session

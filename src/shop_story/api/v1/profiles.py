"""Style DNA profile endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from shop_story.exceptions import InsufficientDataError
from shop_story.infrastructure.event_store import EventStore, get_event_store
from shop_story.infrastructure.redis import CacheService, get_cache
from shop_story.models import AnalyticsSummary, Insight, PatternResult, StyleProfile
from shop_story.services.style_dna import StyleDNAService

router = APIRouter()


@router.get("/{user_id}", response_model=StyleProfile)
async def get_profile(
    user_id: str,
    store: EventStore = Depends(get_event_store),
) -> StyleProfile:
    profile = await StyleDNAService(store).get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No style profile for user {user_id}")
    return profile


@router.post("/{user_id}/refresh", response_model=StyleProfile)
async def refresh_profile(
    user_id: str,
    store: EventStore = Depends(get_event_store),
    cache: CacheService = Depends(get_cache),
) -> StyleProfile:
    """
    Build or update the user's Style DNA from their recorded events.

    The first refresh processes every event; later refreshes merge only the
    events recorded since the profile was last updated.
    """
    try:
        return await StyleDNAService(store, cache).refresh_profile(user_id)
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{user_id}/insights", response_model=list[Insight])
async def get_insights(
    user_id: str,
    store: EventStore = Depends(get_event_store),
) -> list[Insight]:
    return await StyleDNAService(store).get_insights(user_id)


@router.get("/{user_id}/patterns", response_model=list[PatternResult])
async def get_patterns(
    user_id: str,
    store: EventStore = Depends(get_event_store),
) -> list[PatternResult]:
    """Behavior patterns across the user's stored sessions."""
    return await StyleDNAService(store).get_patterns(user_id)


@router.get("/{user_id}/summary", response_model=AnalyticsSummary)
async def get_summary(
    user_id: str,
    store: EventStore = Depends(get_event_store),
) -> AnalyticsSummary:
    return await StyleDNAService(store).get_summary(user_id)

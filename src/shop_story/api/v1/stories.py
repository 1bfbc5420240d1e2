"""Story generation endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from shop_story.api.v1.dependencies import get_story_generator
from shop_story.infrastructure.event_store import EventStore, get_event_store
from shop_story.models import StoryData
from shop_story.services.analytics_engine import AnalyticsEngine
from shop_story.services.story_generation import (
    StoryGenerationOptions,
    StoryGenerator,
    validate_story_data,
)

logger = structlog.get_logger()

router = APIRouter()


@router.get("/{user_id}", response_model=list[StoryData])
async def get_stories(
    user_id: str,
    include_products: Annotated[bool, Query(description="Attach shoppable products")] = False,
    max_insights: Annotated[int, Query(ge=1, le=10)] = 3,
    store: EventStore = Depends(get_event_store),
    generator: StoryGenerator = Depends(get_story_generator),
) -> list[StoryData]:
    """
    Render the user's story set from their Style DNA.

    A behavioral story is produced whenever there are insights, a monthly
    recap when the user was active recently, and a seasonal story when a
    seasonal shift was detected. Stories that fail validation are dropped.
    """
    profile = await store.load_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No style profile for user {user_id}")

    insights = AnalyticsEngine(user_id).generate_insights(profile)
    events = await store.get_events(user_id)
    options = StoryGenerationOptions(include_products=include_products, max_insights=max_insights)

    stories = []
    for story in generator.generate_story_set(profile, insights, events, options):
        valid, errors = validate_story_data(story)
        if valid:
            stories.append(story)
        else:
            logger.warning("Dropping invalid story", story_id=story.id, story_type=story.type, errors=errors)
    return stories

"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from shop_story.api.v1 import (
    curation,
    events,
    health,
    profiles,
    sessions,
    stories,
)

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    sessions.router,
    prefix="/sessions",
    tags=["Sessions"],
)

api_router.include_router(
    events.router,
    prefix="/events",
    tags=["Events"],
)

api_router.include_router(
    profiles.router,
    prefix="/profiles",
    tags=["Profiles"],
)

api_router.include_router(
    curation.router,
    prefix="/curation",
    tags=["Curation"],
)

api_router.include_router(
    stories.router,
    prefix="/stories",
    tags=["Stories"],
)

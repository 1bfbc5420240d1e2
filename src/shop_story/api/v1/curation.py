"""Commerce curation endpoints: product sets, recommendations, pricing and set performance."""

from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from shop_story.api.v1.dependencies import get_curation_engine
from shop_story.config import Settings, get_settings
from shop_story.infrastructure.event_store import EventStore, get_event_store
from shop_story.infrastructure.redis import (
    CacheService,
    curation_recommendations_key,
    curation_sets_key,
    get_cache,
)
from shop_story.models import (
    CommerceEvent,
    ProductRecommendation,
    ProductSet,
    PurchaseOption,
    SetInteractionData,
)
from shop_story.services.commerce_curation import CommerceCurationEngine, validate_product_set

logger = structlog.get_logger()

router = APIRouter()


class SetEventRequest(BaseModel):
    """An interaction with a curated product set."""

    type: Literal["view", "click", "add_to_cart", "purchase", "share"]
    user_id: str = Field(..., min_length=1)
    product_id: str | None = None
    value: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.get("/{user_id}/sets", response_model=list[ProductSet])
async def get_product_sets(
    user_id: str,
    store: EventStore = Depends(get_event_store),
    cache: CacheService = Depends(get_cache),
    engine: CommerceCurationEngine = Depends(get_curation_engine),
    settings: Settings = Depends(get_settings),
) -> list[ProductSet]:
    """Curated product sets for the user's current Style DNA."""
    key = curation_sets_key(user_id)
    cached = await cache.get_models(key, ProductSet)
    if cached is not None:
        logger.debug("Product sets served from cache", user_id=user_id)
        return cached

    profile = await store.load_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No style profile for user {user_id}")

    product_sets = []
    for product_set in engine.generate_sets(profile):
        valid, errors = validate_product_set(product_set)
        if valid:
            product_sets.append(product_set)
        else:
            logger.warning("Dropping invalid product set", set_id=product_set.id, errors=errors)

    await store.save_product_sets(user_id, product_sets)
    await cache.set_models(key, product_sets, settings.curation_cache_ttl_seconds)
    return product_sets


@router.get("/{user_id}/recommendations", response_model=list[ProductRecommendation])
async def get_recommendations(
    user_id: str,
    store: EventStore = Depends(get_event_store),
    cache: CacheService = Depends(get_cache),
    engine: CommerceCurationEngine = Depends(get_curation_engine),
    settings: Settings = Depends(get_settings),
) -> list[ProductRecommendation]:
    """Ranked recommendations from the user's recorded behavior."""
    key = curation_recommendations_key(user_id)
    cached = await cache.get_models(key, ProductRecommendation)
    if cached is not None:
        return cached

    events = await store.get_events(user_id)
    recommendations = engine.update_recommendations(user_id, events)
    await cache.set_models(key, recommendations, settings.curation_cache_ttl_seconds)
    return recommendations


@router.post("/pricing", response_model=list[PurchaseOption])
async def get_pricing_options(
    product_set: ProductSet,
    engine: CommerceCurationEngine = Depends(get_curation_engine),
) -> list[PurchaseOption]:
    """Individual, bundle and (when eligible) subscription prices for a set."""
    return engine.optimize_pricing(product_set)


@router.post("/sets/{set_id}/events", response_model=SetInteractionData)
async def track_set_event(
    set_id: str,
    request: SetEventRequest,
    engine: CommerceCurationEngine = Depends(get_curation_engine),
) -> SetInteractionData:
    event = CommerceEvent(set_id=set_id, **request.model_dump())
    return engine.track_performance(set_id, event)


@router.get("/sets/{set_id}/performance", response_model=SetInteractionData)
async def get_set_performance(
    set_id: str,
    engine: CommerceCurationEngine = Depends(get_curation_engine),
) -> SetInteractionData:
    return engine.get_performance(set_id)

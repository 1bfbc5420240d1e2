"""Shared FastAPI dependencies for the v1 API."""

from functools import lru_cache

import structlog

from shop_story.config import get_settings
from shop_story.models import Product
from shop_story.services.catalog import load_catalog
from shop_story.services.commerce_curation import CommerceCurationEngine
from shop_story.services.story_generation import StoryGenerator

logger = structlog.get_logger()


@lru_cache
def get_catalog() -> list[Product]:
    settings = get_settings()
    catalog = load_catalog(settings.catalog_path)
    logger.info("Product catalog ready", products=len(catalog), path=settings.catalog_path)
    return catalog


@lru_cache
def get_curation_engine() -> CommerceCurationEngine:
    """Process-wide engine; set performance counters live on it."""
    settings = get_settings()
    return CommerceCurationEngine(
        get_catalog(),
        {
            "parameters": {
                "min_confidence": settings.min_confidence,
                "max_sets_per_user": settings.max_sets_per_user,
                "bundle_discount_rate": settings.bundle_discount_rate,
                "max_recommendations": settings.max_recommendations,
            }
        },
    )


@lru_cache
def get_story_generator() -> StoryGenerator:
    return StoryGenerator(get_catalog())

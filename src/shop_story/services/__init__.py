"""Business logic services."""

from shop_story.services.analytics_engine import AnalyticsEngine
from shop_story.services.behavior_tracking import BehaviorTracker
from shop_story.services.commerce_curation import CommerceCurationEngine
from shop_story.services.story_generation import StoryGenerator
from shop_story.services.style_dna import StyleDNAService

__all__ = [
    "AnalyticsEngine",
    "BehaviorTracker",
    "CommerceCurationEngine",
    "StoryGenerator",
    "StyleDNAService",
]

"""Shared constants across the application."""

# Behavior event types recorded by the tracker
EVENT_TYPES = [
    "view",
    "add_to_cart",
    "purchase",
    "share",
    "save",
    "search",
    "filter",
]

EVENT_SOURCES = ["story", "browse", "search", "recommendation"]

SEASONS = ["spring", "summer", "fall", "winter"]

# Month (1-12) -> season
SEASON_BY_MONTH = {
    12: "winter",
    1: "winter",
    2: "winter",
    3: "spring",
    4: "spring",
    5: "spring",
    6: "summer",
    7: "summer",
    8: "summer",
    9: "fall",
    10: "fall",
    11: "fall",
}

# Story types
STORY_TYPES = ["behavioral", "style-evolution", "recap", "seasonal"]

# Profile size caps
MAX_DOMINANT_COLORS = 5
MAX_PREFERRED_BRANDS = 10
MAX_CATEGORY_PREFERENCES = 8
MAX_SEASONAL_TRENDS = 4

# Store caps
MAX_EVENTS_STORED = 1000
MAX_SESSIONS_STORED = 50
STORAGE_VERSION = "1.0.0"

# Seconds to wait before reconnecting after a Redis failure
REDIS_RETRY_SECONDS = 30

# Merge decay factors: (existing decay, new-data blend)
COLOR_MERGE_FACTORS = (0.7, 0.3)
COLOR_CONFIDENCE_DECAY = 0.8
BRAND_MERGE_FACTORS = (0.8, 0.2)
CATEGORY_MERGE_FACTORS = (0.8, 0.2)

# Time windows
RECENT_WINDOW_DAYS = 30
SYNC_INTERVAL_HOURS = 1
EXTENDED_SESSION_MINUTES = 10
EVENT_MAX_AGE_DAYS = 365

DEFAULT_CURRENCY = "USD"

# Hex code -> human readable color name
COLOR_NAMES = {
    "#000000": "Black",
    "#FFFFFF": "White",
    "#FF0000": "Red",
    "#00FF00": "Green",
    "#0000FF": "Blue",
    "#FFFF00": "Yellow",
    "#FF00FF": "Magenta",
    "#00FFFF": "Cyan",
    "#2D5016": "Forest Green",
    "#8B4513": "Saddle Brown",
    "#4169E1": "Royal Blue",
    "#000080": "Navy",
    "#808080": "Gray",
}

# Hex code -> product text keywords used for color matching
COLOR_KEYWORDS = {
    "#90EE90": ["green", "mint", "sage", "olive"],
    "#FFB6C1": ["pink", "rose", "blush", "coral"],
    "#F0E68C": ["yellow", "gold", "cream", "butter"],
    "#DDA0DD": ["purple", "lavender", "plum", "violet"],
    "#87CEEB": ["blue", "sky", "azure", "powder"],
    "#FF6347": ["red", "tomato", "coral", "salmon"],
    "#32CD32": ["green", "lime", "forest", "emerald"],
    "#D2691E": ["orange", "rust", "copper", "burnt"],
    "#8B4513": ["brown", "chocolate", "coffee", "mocha"],
    "#CD853F": ["tan", "beige", "camel", "sand"],
    "#A0522D": ["brown", "sienna", "chestnut", "mahogany"],
    "#2D5016": ["green", "forest", "olive", "sage"],
    "#000000": ["black", "onyx", "jet"],
    "#FFFFFF": ["white", "ivory", "cream"],
    "#4169E1": ["blue", "royal", "cobalt"],
    "#000080": ["navy", "blue", "indigo"],
}

# Season -> product text keywords
SEASONAL_KEYWORDS = {
    "spring": ["light", "fresh", "cotton", "linen", "pastel"],
    "summer": ["shorts", "tank", "sandals", "swimwear", "light"],
    "fall": ["sweater", "jacket", "boots", "warm", "cozy"],
    "winter": ["coat", "wool", "warm", "thermal", "heavy"],
}

# Season -> palette used when no color data exists for a season
SEASONAL_PALETTES = {
    "spring": ["#90EE90", "#FFB6C1", "#F0E68C", "#DDA0DD"],
    "summer": ["#87CEEB", "#F0E68C", "#FF6347", "#32CD32"],
    "fall": ["#D2691E", "#8B4513", "#CD853F", "#A0522D"],
    "winter": ["#2F4F4F", "#708090", "#B22222", "#000080"],
}

# Words recognised as colors in product titles
COLOR_WORDS = [
    "red", "blue", "green", "yellow", "black", "white", "pink", "purple",
    "orange", "brown", "gray", "grey", "navy", "teal", "coral", "mint",
    "ivory", "cream", "beige", "tan", "khaki", "olive", "maroon", "burgundy",
    "magenta", "cyan", "lime", "gold", "silver", "bronze", "sage", "blush",
]

TRENDING_TAGS = ["trending", "bestseller", "popular"]
SUBSCRIPTION_CATEGORIES = ["basics", "skincare", "supplements"]

# Category -> chart color used in story visuals
CATEGORY_COLORS = {
    "clothing": "#ff6b6b",
    "shoes": "#4ecdc4",
    "accessories": "#45b7d1",
    "beauty": "#f9ca24",
    "home": "#6c5ce7",
    "electronics": "#a0a0a0",
}

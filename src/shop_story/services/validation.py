"""Input validation and sanitizing helpers."""

import html
import re
from datetime import datetime

_HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


def validate_hex_color(color: str) -> bool:
    return bool(_HEX_COLOR.match(color))


def validate_price_range(minimum: float, maximum: float) -> bool:
    return minimum >= 0 and maximum >= minimum


def validate_date_range(start: datetime, end: datetime) -> bool:
    return start <= end


def sanitize_string(value: str) -> str:
    """Escape ``< > " ' &`` for safe display."""
    return html.escape(value, quote=True)

"""Display formatting for prices, percentages, times and text."""

from datetime import datetime, timezone

from shop_story.models import Price

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "CAD": "CA$", "AUD": "A$"}


def format_price(price: Price) -> str:
    symbol = CURRENCY_SYMBOLS.get(price.currency_code)
    amount = f"{price.value:,.2f}"
    if symbol is None:
        return f"{price.currency_code} {amount}"
    return f"{symbol}{amount}"


def format_percentage(value: float, decimals: int = 0) -> str:
    return f"{value * 100:.{decimals}f}%"


def format_relative_time(date: datetime, now: datetime | None = None) -> str:
    """``just now``, ``5m ago``, ``3h ago``, ``2d ago``, then a short date."""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - date).total_seconds())

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 604800:
        return f"{seconds // 86400}d ago"
    return f"{date.strftime('%b')} {date.day}"


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:].lower()


def format_hashtags(tags: list[str]) -> str:
    return " ".join(f"#{''.join(tag.split())}" for tag in tags)

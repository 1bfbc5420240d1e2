"""Domain errors raised by the Style DNA services."""


class ShopStoryError(Exception):
    """Base class for Shop Story errors."""


class InsufficientDataError(ShopStoryError):
    """Raised when there are no behavior events to build a profile from."""


class UserMismatchError(ShopStoryError):
    """Raised when data for one user is handed to another user's engine."""


class NoActiveSessionError(ShopStoryError):
    """Raised when an event is tracked outside of a shopping session."""


class TemplateNotFoundError(ShopStoryError):
    """Raised when no story template exists for a story type."""

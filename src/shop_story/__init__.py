"""Shop Story Style DNA service."""

__version__ = "1.0.0"

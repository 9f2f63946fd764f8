"""Gateway API policy inspector."""

__version__ = "0.1.0"

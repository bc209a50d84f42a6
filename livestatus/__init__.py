"""Live-status tracker for a single YouTube channel."""

__version__ = "0.1.0"

"""
Logging utilities for the bridge service.

Provides a consistent logging format and configuration.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request line at INFO, including challenge query strings.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def truncate(value: str | None, limit: int = 24) -> str:
    """Shorten opaque tokens before they reach a log line."""
    if not value:
        return "<empty>"
    if len(value) <= limit:
        return value
    return f"{value[:limit]}..."


__all__ = ["configure_logging", "truncate"]

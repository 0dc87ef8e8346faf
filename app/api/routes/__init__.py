"""API routes package."""

from . import analytics, health, scoring, snapshots


__all__ = [
    "analytics",
    "health",
    "scoring",
    "snapshots",
]

"""API router package."""

from app.routers import coins, lessons, matching, notifications

__all__ = [
    "coins",
    "lessons",
    "matching",
    "notifications",
]

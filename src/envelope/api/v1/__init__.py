# src/envelope/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    comments_router,
    devices_router,
    feed_router,
    posts_router,
)

__all__ = [
    "devices_router",
    "posts_router",
    "feed_router",
    "comments_router",
]

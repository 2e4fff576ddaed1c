"""API endpoint modules for version 1."""

from .comments import router as comments_router
from .devices import router as devices_router
from .feed import router as feed_router
from .posts import router as posts_router

__all__ = [
    "comments_router",
    "devices_router",
    "feed_router",
    "posts_router",
]

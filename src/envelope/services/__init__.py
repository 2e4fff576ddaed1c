"""Business logic services for the Envelope application."""

from .container import AppServices
from .credentials import CredentialStore, InMemoryKeyValueStore, RedisKeyValueStore
from .feed import Direction, FeedResolver
from .region import IpapiRegionResolver

__all__ = [
    "AppServices",
    "CredentialStore",
    "Direction",
    "FeedResolver",
    "InMemoryKeyValueStore",
    "IpapiRegionResolver",
    "RedisKeyValueStore",
]

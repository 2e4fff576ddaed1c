"""Cursor pagination over the post log.

The feed is ordered by post id. A post's timestamp only marks the page boundary
for anchored queries:

- ``latest``: newest posts, id descending.
- ``after``: posts with ``timestamp >= t`` and ``id >= anchor``, id ascending,
  anchor included.
- ``before``: posts with ``timestamp < t`` and ``id <= anchor``, id descending,
  anchor excluded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from envelope.models import Post
from envelope.repositories.post_repo import PostRepository
from envelope.schemas.post import PostView

LATEST_TAG = "latest"


class Direction(str, Enum):
    """Side of the anchor an anchored page is read from."""

    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class PageLimit:
    """Page size after normalization."""

    value: int
    requested: int | None = None
    clamped: bool = False


def normalize_limit(raw: str | None, *, default: int, maximum: int) -> PageLimit:
    """Parse a raw ``limit`` query value.

    Absent, unparseable or non-positive values fall back to ``default``; values
    above ``maximum`` are clamped to it.
    """
    try:
        requested = int(raw) if raw is not None else 0
    except ValueError:
        requested = 0
    if requested <= 0:
        return PageLimit(value=min(default, maximum))
    if requested > maximum:
        return PageLimit(value=maximum, requested=requested, clamped=True)
    return PageLimit(value=requested, requested=requested)


@dataclass
class FeedPage:
    """A resolved page. ``anchor_found`` is False when the anchor post is absent."""

    posts: list[Post] = field(default_factory=list)
    anchor_found: bool = True


class FeedResolver:
    """Produces bounded, deterministically ordered slices of the post log."""

    def __init__(self, repo: PostRepository) -> None:
        self._repo = repo

    async def fetch_latest(self, limit: int) -> FeedPage:
        return FeedPage(posts=await self._repo.list_latest(limit))

    async def fetch_from_anchor(self, anchor_id: int, limit: int, direction: Direction) -> FeedPage:
        """Return the page adjacent to ``anchor_id``.

        A missing anchor yields an empty page with ``anchor_found=False`` rather
        than an error.
        """
        timestamp = await self._repo.get_timestamp(anchor_id)
        if timestamp is None:
            return FeedPage(anchor_found=False)

        if direction is Direction.AFTER:
            posts = await self._repo.list_after(anchor_id, timestamp, limit)
        else:
            posts = await self._repo.list_before(anchor_id, timestamp, limit)
        return FeedPage(posts=posts)

    async def present(self, posts: list[Post], viewer_device_id: str | None) -> list[PostView]:
        """Attach like and comment counts plus the viewer's like flag, keeping order."""
        ids = [post.id for post in posts]
        likes = await self._repo.like_counts(ids)
        comments = await self._repo.comment_counts(ids)
        liked = await self._repo.liked_by(ids, viewer_device_id) if viewer_device_id else set()
        return [
            PostView(
                postid=post.id,
                post=post.text,
                timestamp=post.timestamp,
                likes=likes.get(post.id, 0),
                comments=comments.get(post.id, 0),
                liked=post.id in liked,
            )
            for post in posts
        ]

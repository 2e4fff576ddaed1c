"""Data access helpers for working with posts, likes and reports."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from envelope.core.errors import AlreadyLikedError, PostNotFoundError
from envelope.models import Comment, Post, PostLike, PostReport

__all__ = ["PostRepository"]

logger = logging.getLogger(__name__)


class PostRepository:
    """Thin wrapper around database access for the post log.

    Every mutation is a single insert committed on its own.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    # --- Posts --------------------------------------------------------------------
    async def create(self, *, device_id: str, text: str, timestamp: int, ip_addr: str) -> Post:
        """Insert a new post and return it with its assigned id.

        Args:
            device_id: Resolved device id of the author.
            text: Non-empty post body.
            timestamp: Acceptance time in seconds since the epoch.
            ip_addr: Origin address, stored but never served.
        """
        post = Post(device_id=device_id, text=text, timestamp=timestamp, ip_addr=ip_addr)
        self.session.add(post)
        await self.session.commit()
        logger.info("saved post %d from %s", post.id, device_id)
        return post

    async def get_by_id(self, post_id: int) -> Post | None:
        """Return a post by identifier."""
        result = await self.session.execute(select(Post).where(Post.id == post_id))
        return result.scalars().first()

    async def exists(self, post_id: int) -> bool:
        result = await self.session.execute(select(Post.id).where(Post.id == post_id))
        return result.scalar_one_or_none() is not None

    async def get_timestamp(self, post_id: int) -> int | None:
        """Return the creation timestamp of a post, or None if it does not exist."""
        result = await self.session.execute(select(Post.timestamp).where(Post.id == post_id))
        return result.scalar_one_or_none()

    async def list_latest(self, limit: int) -> list[Post]:
        """Return the newest posts by descending id."""
        result = await self.session.execute(select(Post).order_by(Post.id.desc()).limit(limit))
        return list(result.scalars())

    async def list_after(self, anchor_id: int, timestamp: int, limit: int) -> list[Post]:
        """Return posts at or after the anchor by ascending id, anchor included."""
        result = await self.session.execute(
            select(Post)
            .where(Post.timestamp >= timestamp, Post.id >= anchor_id)
            .order_by(Post.id.asc())
            .limit(limit)
        )
        return list(result.scalars())

    async def list_before(self, anchor_id: int, timestamp: int, limit: int) -> list[Post]:
        """Return posts strictly older than the anchor's second by descending id."""
        result = await self.session.execute(
            select(Post)
            .where(Post.timestamp < timestamp, Post.id <= anchor_id)
            .order_by(Post.id.desc())
            .limit(limit)
        )
        return list(result.scalars())

    # --- Likes --------------------------------------------------------------------
    async def like(self, post_id: int, device_id: str) -> None:
        """Record that ``device_id`` liked ``post_id``.

        Raises:
            PostNotFoundError: If the post does not exist.
            AlreadyLikedError: If the device already liked the post.
        """
        if not await self.exists(post_id):
            raise PostNotFoundError(post_id)

        self.session.add(PostLike(post_id=post_id, device_id=device_id))
        try:
            await self.session.commit()
        except IntegrityError as err:
            await self.session.rollback()
            raise AlreadyLikedError(post_id, device_id) from err

    async def count_likes(self, post_id: int) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id)
        )
        return int(result.scalar_one())

    async def like_counts(self, post_ids: Iterable[int]) -> dict[int, int]:
        """Return like counts keyed by post id; posts without likes are omitted."""
        return await self._grouped_counts(PostLike.post_id, post_ids)

    async def liked_by(self, post_ids: Iterable[int], device_id: str) -> set[int]:
        """Return the subset of ``post_ids`` liked by ``device_id``."""
        ids = list(post_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(PostLike.post_id).where(
                PostLike.post_id.in_(ids),
                PostLike.device_id == device_id,
            )
        )
        return set(result.scalars())

    # --- Reports ------------------------------------------------------------------
    async def report(self, post_id: int, device_id: str, reason: str) -> PostReport:
        """File a report against an existing post.

        Raises:
            PostNotFoundError: If the post does not exist; nothing is written.
        """
        if not await self.exists(post_id):
            raise PostNotFoundError(post_id)

        report = PostReport(post_id=post_id, device_id=device_id, reason=reason)
        self.session.add(report)
        await self.session.commit()
        logger.info("saved report for post %d from %s", post_id, device_id)
        return report

    async def count_reports(self, post_id: int) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(PostReport).where(PostReport.post_id == post_id)
        )
        return int(result.scalar_one())

    # --- Shared helpers -----------------------------------------------------------
    async def comment_counts(self, post_ids: Iterable[int]) -> dict[int, int]:
        """Return comment counts keyed by post id; posts without comments are omitted."""
        return await self._grouped_counts(Comment.post_id, post_ids)

    async def _grouped_counts(
        self, column: InstrumentedAttribute[int], post_ids: Iterable[int]
    ) -> dict[int, int]:
        ids = list(post_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(column, func.count()).where(column.in_(ids)).group_by(column)
        )
        return {int(post_id): int(count) for post_id, count in result.all()}

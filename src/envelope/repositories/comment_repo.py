"""Data access helpers for comments."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from envelope.core.errors import PostNotFoundError
from envelope.models import Comment, Post

__all__ = ["CommentRepository"]

logger = logging.getLogger(__name__)


class CommentRepository:
    """Thin wrapper around database access for comments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, *, post_id: int, device_id: str, text: str, timestamp: int) -> Comment:
        """Attach a comment to an existing post.

        Raises:
            PostNotFoundError: If the post does not exist; nothing is written.
        """
        found = await self.session.execute(select(Post.id).where(Post.id == post_id))
        if found.scalar_one_or_none() is None:
            raise PostNotFoundError(post_id)

        comment = Comment(post_id=post_id, device_id=device_id, text=text, timestamp=timestamp)
        self.session.add(comment)
        await self.session.commit()
        logger.info("saved comment %d on post %d from %s", comment.id, post_id, device_id)
        return comment

    async def list_for_post(self, post_id: int) -> list[Comment]:
        """Return the comments of a post, oldest first."""
        result = await self.session.execute(
            select(Comment).where(Comment.post_id == post_id).order_by(Comment.id.asc())
        )
        return list(result.scalars())

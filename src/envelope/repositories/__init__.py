"""Repositories over the relational post log."""

from .comment_repo import CommentRepository
from .post_repo import PostRepository

__all__ = ["CommentRepository", "PostRepository"]

"""SQLAlchemy models for the Envelope application."""

from .comment import Comment
from .like import PostLike
from .post import Post
from .report import PostReport

__all__ = [
    "Comment",
    "Post",
    "PostLike",
    "PostReport",
]

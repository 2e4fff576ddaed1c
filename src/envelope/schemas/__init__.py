"""
Pydantic schemas for API response bodies.

These schemas define the JSON written by the terminal stage of each pipeline.
"""

from .post import CommentView, PostView
from .responses import (
    CommentsResponse,
    FeedResponse,
    GenericResponse,
    LikePostResponse,
    PostResponse,
    RegisterDeviceResponse,
    SubmitCommentResponse,
    SubmitPostResponse,
)

__all__ = [
    "CommentView", "PostView",
    "CommentsResponse", "FeedResponse", "GenericResponse", "LikePostResponse",
    "PostResponse", "RegisterDeviceResponse", "SubmitCommentResponse", "SubmitPostResponse",
]

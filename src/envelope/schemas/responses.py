"""Success envelopes written by the terminal pipeline stages."""
from __future__ import annotations

from http import HTTPStatus

from pydantic import BaseModel

from .post import CommentView, PostView

OK = "OK"


class GenericResponse(BaseModel):
    """Fields shared by every response body."""

    status: str = OK
    status_code: int = int(HTTPStatus.OK)


class RegisterDeviceResponse(GenericResponse):
    hash: str


class SubmitPostResponse(GenericResponse):
    postid: int
    timestamp: int
    likes: int = 0


class LikePostResponse(GenericResponse):
    likes: int


class SubmitCommentResponse(GenericResponse):
    commentid: int
    timestamp: int


class FeedResponse(GenericResponse):
    posts: list[PostView]


class PostResponse(GenericResponse):
    post: PostView


class CommentsResponse(GenericResponse):
    comments: list[CommentView]

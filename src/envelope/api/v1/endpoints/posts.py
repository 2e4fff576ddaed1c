# src/envelope/api/v1/endpoints/posts.py
"""Post-related endpoints: submit, like, report and single-post view."""

from http import HTTPStatus

from fastapi import APIRouter

from envelope.core.errors import (
    AlreadyLikedError,
    ErrorCode,
    ErrorLevel,
    PostNotFoundError,
    TieredError,
)
from envelope.db.time import unix_now
from envelope.pipeline import (
    ExtractDeviceId,
    ParseForm,
    Pipeline,
    RequestContext,
    Stage,
    VerifyDeviceRegistered,
)
from envelope.pipeline.stages import STORE_ERRORS, parse_post_id, required_form_value
from envelope.schemas import GenericResponse, LikePostResponse, PostResponse, SubmitPostResponse
from envelope.services.feed import FeedResolver
from envelope.services.region import client_address

router = APIRouter(tags=["posts"])


class SubmitPost(Stage):
    """Append a post to the log; the server assigns id and timestamp.

    Input: ``post`` form field. Output: ``postid`` and ``timestamp``.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        text = await required_form_value(rc, "post")
        if isinstance(text, TieredError):
            return text

        try:
            post = await rc.posts.create(
                device_id=rc.device_id,
                text=text,
                timestamp=unix_now(),
                ip_addr=client_address(rc.request),
            )
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(SubmitPostResponse(postid=post.id, timestamp=post.timestamp))
        return None


class LikePost(Stage):
    """Record a like; a second like from the same device is refused.

    Input: ``postid`` form field. Output: the post's like count.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        raw = await required_form_value(rc, "postid")
        if isinstance(raw, TieredError):
            return raw
        post_id = parse_post_id(raw)
        if post_id is None:
            return TieredError.invalid_field("postid")

        try:
            await rc.posts.like(post_id, rc.device_id)
            likes = await rc.posts.count_likes(post_id)
        except PostNotFoundError:
            return TieredError.invalid_field("postid")
        except AlreadyLikedError:
            return TieredError(ErrorLevel.CLIENT, ErrorCode.ALREADY_LIKED, HTTPStatus.CONFLICT)
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(LikePostResponse(likes=likes))
        return None


class ReportPost(Stage):
    """File a report against an existing post.

    Input: ``postid`` and ``reason`` form fields.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        raw = await required_form_value(rc, "postid")
        if isinstance(raw, TieredError):
            return raw
        reason = await required_form_value(rc, "reason")
        if isinstance(reason, TieredError):
            return reason

        post_id = parse_post_id(raw)
        if post_id is None:
            return TieredError.missing_field("postid")

        try:
            await rc.posts.report(post_id, rc.device_id, reason)
        except PostNotFoundError:
            return TieredError.missing_field("postid")
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(GenericResponse())
        return None


class FetchPost(Stage):
    """Serve one post with its like and comment counts."""

    async def run(self, rc: RequestContext) -> TieredError | None:
        post_id = parse_post_id(rc.request.path_params.get("postid", ""))
        if post_id is None:
            return TieredError.invalid_field("postid")

        try:
            post = await rc.posts.get_by_id(post_id)
            if post is None:
                return TieredError(
                    ErrorLevel.CLIENT,
                    ErrorCode.NOT_FOUND,
                    HTTPStatus.NOT_FOUND,
                    field="postid",
                )
            [view] = await FeedResolver(rc.posts).present([post], rc.device_id)
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(PostResponse(post=view))
        return None


SUBMIT_POST = Pipeline(
    "submit-post",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    ParseForm(),
    SubmitPost(),
)

LIKE_POST = Pipeline(
    "like-post",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    ParseForm(),
    LikePost(),
)

REPORT_POST = Pipeline(
    "report",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    ParseForm(),
    ReportPost(),
)

FETCH_POST = Pipeline(
    "fetch-post",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    FetchPost(),
)

router.add_api_route("/submit-post", SUBMIT_POST.handle, methods=["POST"], name="submit_post")
router.add_api_route("/like-post", LIKE_POST.handle, methods=["POST"], name="like_post")
router.add_api_route("/report", REPORT_POST.handle, methods=["POST"], name="report_post")
router.add_api_route("/post/{postid}", FETCH_POST.handle, methods=["GET"], name="fetch_post")

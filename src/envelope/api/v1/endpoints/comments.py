"""Comment endpoints."""

from fastapi import APIRouter

from envelope.core.errors import PostNotFoundError, TieredError
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
from envelope.schemas import CommentsResponse, CommentView, SubmitCommentResponse

router = APIRouter(tags=["comments"])


class SubmitComment(Stage):
    """Attach a comment to an existing post.

    Input: ``postid`` and ``comment`` form fields.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        raw = await required_form_value(rc, "postid")
        if isinstance(raw, TieredError):
            return raw
        text = await required_form_value(rc, "comment")
        if isinstance(text, TieredError):
            return text

        post_id = parse_post_id(raw)
        if post_id is None:
            return TieredError.missing_field("postid")

        try:
            comment = await rc.comments.create(
                post_id=post_id,
                device_id=rc.device_id,
                text=text,
                timestamp=unix_now(),
            )
        except PostNotFoundError:
            return TieredError.missing_field("postid")
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(SubmitCommentResponse(commentid=comment.id, timestamp=comment.timestamp))
        return None


class FetchComments(Stage):
    """List a post's comments oldest first; an unknown post has none.

    Input: ``postid`` query parameter.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        raw = rc.request.query_params.get("postid", "")
        if not raw:
            return TieredError.missing_field("postid")
        post_id = parse_post_id(raw)
        if post_id is None:
            return TieredError.invalid_field("postid")

        try:
            comments = await rc.comments.list_for_post(post_id)
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(
            CommentsResponse(comments=[CommentView.model_validate(c) for c in comments])
        )
        return None


SUBMIT_COMMENT = Pipeline(
    "comment",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    ParseForm(),
    SubmitComment(),
)

FETCH_COMMENTS = Pipeline(
    "fetch-comments",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    FetchComments(),
)

router.add_api_route("/comment", SUBMIT_COMMENT.handle, methods=["POST"], name="submit_comment")
router.add_api_route(
    "/fetch-comments",
    FETCH_COMMENTS.handle,
    methods=["GET"],
    name="fetch_comments",
)

"""Feed endpoint: latest posts or a page anchored on a post id."""

from fastapi import APIRouter

from envelope.core.errors import TieredError
from envelope.pipeline import (
    ExtractDeviceId,
    ParsePageLimit,
    Pipeline,
    RequestContext,
    Stage,
    VerifyDeviceRegistered,
)
from envelope.pipeline.stages import STORE_ERRORS, exceeds_post_id_range, parse_post_id
from envelope.schemas import FeedResponse
from envelope.services.feed import LATEST_TAG, Direction, FeedResolver

router = APIRouter(tags=["feed"])


class FetchFeed(Stage):
    """Serve ``/fetch/latest`` or ``/fetch/{postid}?direction=before|after``.

    ``prop`` is accepted as an alias of ``direction``. An anchor that does not
    exist yields an empty page.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        tag = rc.request.path_params.get("tag", "")
        limit = rc.limit.value
        resolver = FeedResolver(rc.posts)

        if tag == LATEST_TAG:
            fetch = resolver.fetch_latest(limit)
        else:
            anchor_id = parse_post_id(tag)
            if anchor_id is None and not exceeds_post_id_range(tag):
                return TieredError.invalid_field("postid")

            query = rc.request.query_params
            raw_direction = query.get("direction") or query.get("prop")
            if not raw_direction:
                return TieredError.missing_field("direction")
            try:
                direction = Direction(raw_direction)
            except ValueError:
                return TieredError.invalid_field("direction")
            if anchor_id is None:
                # Too large to be stored, so no such anchor.
                rc.sink.write(FeedResponse(posts=[]))
                return None
            fetch = resolver.fetch_from_anchor(anchor_id, limit, direction)

        try:
            page = await fetch
            posts = await resolver.present(page.posts, rc.device_id)
        except STORE_ERRORS as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(FeedResponse(posts=posts))
        return None


FETCH_FEED = Pipeline(
    "fetch",
    ExtractDeviceId(),
    VerifyDeviceRegistered(),
    ParsePageLimit(),
    FetchFeed(),
)

router.add_api_route("/fetch/{tag}", FETCH_FEED.handle, methods=["GET"], name="fetch_feed")

# tests/test_feed.py
"""Tests for cursor pagination over the post log."""

import pytest

from envelope.repositories import PostRepository
from envelope.services.feed import Direction, FeedResolver, normalize_limit


@pytest.fixture()
def resolver(post_repo: PostRepository) -> FeedResolver:
    return FeedResolver(post_repo)


async def test_latest_is_newest_first(resolver: FeedResolver, make_post) -> None:
    for ts in (100, 101, 102):
        await make_post(f"post at {ts}", timestamp=ts)

    page = await resolver.fetch_latest(2)

    assert [post.text for post in page.posts] == ["post at 102", "post at 101"]
    assert page.anchor_found is True


async def test_latest_on_empty_log(resolver: FeedResolver) -> None:
    page = await resolver.fetch_latest(20)
    assert page.posts == []


async def test_before_excludes_anchor(resolver: FeedResolver, make_post) -> None:
    first = await make_post("one", timestamp=100)
    second = await make_post("two", timestamp=101)
    third = await make_post("three", timestamp=102)

    page = await resolver.fetch_from_anchor(third.id, 20, Direction.BEFORE)

    assert [post.id for post in page.posts] == [second.id, first.id]


async def test_after_includes_anchor_first(resolver: FeedResolver, make_post) -> None:
    await make_post("one", timestamp=100)
    second = await make_post("two", timestamp=101)
    third = await make_post("three", timestamp=102)

    page = await resolver.fetch_from_anchor(second.id, 20, Direction.AFTER)

    assert [post.id for post in page.posts] == [second.id, third.id]


async def test_before_skips_posts_sharing_anchor_second(resolver: FeedResolver, make_post) -> None:
    await make_post("one", timestamp=100)
    second = await make_post("two", timestamp=100)
    await make_post("three", timestamp=101)

    page = await resolver.fetch_from_anchor(second.id, 20, Direction.BEFORE)

    assert page.posts == []
    assert page.anchor_found is True


async def test_after_respects_limit(resolver: FeedResolver, make_post) -> None:
    posts = [await make_post(str(i), timestamp=100 + i) for i in range(5)]

    page = await resolver.fetch_from_anchor(posts[1].id, 2, Direction.AFTER)

    assert [post.id for post in page.posts] == [posts[1].id, posts[2].id]


async def test_missing_anchor_yields_empty_page(resolver: FeedResolver, make_post) -> None:
    await make_post()

    page = await resolver.fetch_from_anchor(9_999, 20, Direction.AFTER)

    assert page.posts == []
    assert page.anchor_found is False


async def test_present_attaches_counts_and_viewer_flag(
    resolver: FeedResolver, post_repo: PostRepository, make_post
) -> None:
    liked = await make_post("liked", timestamp=100)
    other = await make_post("other", timestamp=101)
    await post_repo.like(liked.id, "viewer")
    await post_repo.like(liked.id, "someone-else")

    views = await resolver.present([other, liked], "viewer")

    assert [view.postid for view in views] == [other.id, liked.id]
    assert views[0].likes == 0
    assert views[0].liked is False
    assert views[1].likes == 2
    assert views[1].liked is True


@pytest.mark.parametrize(
    ("raw", "value", "clamped"),
    [
        (None, 20, False),
        ("", 20, False),
        ("abc", 20, False),
        ("0", 20, False),
        ("-5", 20, False),
        ("7", 7, False),
        ("100", 100, False),
        ("500", 100, True),
    ],
)
def test_normalize_limit(raw, value, clamped) -> None:
    limit = normalize_limit(raw, default=20, maximum=100)
    assert limit.value == value
    assert limit.clamped is clamped

# tests/test_pipeline.py
"""Tests for the fail-fast request pipeline."""

import asyncio
import logging

import pytest

from envelope.core.errors import ErrorCode, ErrorLevel, TieredError
from envelope.core.logging import setup_logging
from envelope.core.settings import Settings
from envelope.pipeline.engine import (
    Pipeline,
    RequestContext,
    ResponseAlreadyWrittenError,
    ResponseSink,
    Stage,
)
from envelope.pipeline.stages import POST_ID_MAX, exceeds_post_id_range, parse_post_id


class Record(Stage):
    """Appends its tag to a shared list."""

    def __init__(self, calls: list[str], tag: str) -> None:
        self.calls = calls
        self.tag = tag

    async def run(self, rc: RequestContext) -> TieredError | None:
        self.calls.append(self.tag)
        return None


class Fail(Stage):
    def __init__(self, calls: list[str], err: TieredError) -> None:
        self.calls = calls
        self.err = err

    async def run(self, rc: RequestContext) -> TieredError | None:
        self.calls.append("fail")
        return self.err


class Write(Stage):
    async def run(self, rc: RequestContext) -> TieredError | None:
        rc.sink.write({"status": "OK", "status_code": 200})
        return None


class Raise(Stage):
    async def run(self, rc: RequestContext) -> TieredError | None:
        raise LookupError("backend exploded")


class Sleep(Stage):
    async def run(self, rc: RequestContext) -> TieredError | None:
        await asyncio.sleep(5)
        return None


@pytest.fixture()
def rc(test_settings: Settings) -> RequestContext:
    return RequestContext(settings=test_settings)


def _server_error(cause: BaseException) -> TieredError:
    return TieredError(ErrorLevel.SERVER, ErrorCode.INTERNAL, 500, cause=cause)


async def test_stages_run_in_order(rc: RequestContext) -> None:
    calls: list[str] = []
    await Pipeline("ordered", Record(calls, "a"), Record(calls, "b"), Write()).run(rc)

    assert calls == ["a", "b"]
    assert rc.sink.status_code == 200


async def test_client_error_stops_chain_without_logging(rc, caplog) -> None:
    calls: list[str] = []
    pipeline = Pipeline(
        "client",
        Fail(calls, TieredError.invalid_field("postid")),
        Record(calls, "after"),
    )

    with caplog.at_level(logging.INFO, logger="envelope.pipeline.engine"):
        await pipeline.run(rc)

    assert calls == ["fail"]
    assert rc.sink.status_code == 400
    assert rc.sink.body == {
        "status": "Bad Request",
        "status_code": 400,
        "error_code": "INVALID_DATA",
        "field": "postid",
    }
    assert caplog.records == []


async def test_warning_is_logged_and_chain_continues(rc, caplog) -> None:
    calls: list[str] = []
    warning = TieredError(ErrorLevel.WARNING, ErrorCode.INVALID_DATA, 400, field="limit")
    pipeline = Pipeline("warn", Fail(calls, warning), Record(calls, "after"), Write())

    with caplog.at_level(logging.WARNING, logger="envelope.pipeline.engine"):
        await pipeline.run(rc)

    assert calls == ["fail", "after"]
    assert rc.sink.status_code == 200
    assert any(record.levelno == logging.WARNING for record in caplog.records)


async def test_server_error_stops_chain_and_hides_cause(rc, caplog) -> None:
    calls: list[str] = []
    pipeline = Pipeline(
        "server",
        Fail(calls, _server_error(RuntimeError("db password is hunter2"))),
        Record(calls, "after"),
    )

    with caplog.at_level(logging.ERROR, logger="envelope.pipeline.engine"):
        await pipeline.run(rc)

    assert calls == ["fail"]
    assert rc.sink.status_code == 500
    assert rc.sink.body["error_code"] == "INTERNAL_ERROR"
    assert "hunter2" not in str(rc.sink.body)
    assert any("hunter2" in record.getMessage() for record in caplog.records)


async def test_timeout_cause_is_rewritten(rc: RequestContext) -> None:
    calls: list[str] = []
    await Pipeline("slow-store", Fail(calls, _server_error(TimeoutError()))).run(rc)

    assert rc.sink.status_code == 408
    assert rc.sink.body["error_code"] == "TIMEOUT"


async def test_unexpected_exception_becomes_internal_error(rc: RequestContext) -> None:
    await Pipeline("boom", Raise()).run(rc)

    assert rc.sink.status_code == 500
    assert rc.sink.body["error_code"] == "INTERNAL_ERROR"


async def test_deadline_writes_single_timeout(test_settings: Settings) -> None:
    settings = test_settings.model_copy(update={"request_timeout_seconds": 0.05})
    rc = RequestContext(settings=settings)
    calls: list[str] = []

    await Pipeline("deadline", Sleep(), Record(calls, "never")).run(rc)

    assert calls == []
    assert rc.sink.status_code == 408
    assert rc.sink.body["error_code"] == "TIMEOUT"


async def test_error_after_write_is_dropped(rc, caplog) -> None:
    calls: list[str] = []
    pipeline = Pipeline("late-failure", Write(), Fail(calls, _server_error(RuntimeError("late"))))

    with caplog.at_level(logging.ERROR, logger="envelope.pipeline.engine"):
        await pipeline.run(rc)

    assert rc.sink.status_code == 200
    assert any("already written" in record.getMessage() for record in caplog.records)


async def test_missing_response_is_an_empty_ok(rc: RequestContext) -> None:
    calls: list[str] = []
    await Pipeline("silent", Record(calls, "a")).run(rc)

    response = rc.sink.to_response()
    assert response.status_code == 200
    assert response.body == b""


def test_sink_rejects_second_write() -> None:
    sink = ResponseSink()
    sink.write({"status": "OK"})
    with pytest.raises(ResponseAlreadyWrittenError):
        sink.write({"status": "again"})
    assert sink.body == {"status": "OK"}


def test_pipeline_requires_a_stage() -> None:
    with pytest.raises(ValueError):
        Pipeline("empty")


def test_setup_logging_installs_one_handler() -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        setup_logging("debug")
        setup_logging("debug")
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert root.level == logging.DEBUG
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1", 1),
        ("2147483647", 2_147_483_647),
        ("2147483648", None),
        ("99999999999999999999", None),
        ("0", None),
        ("-3", None),
        ("abc", None),
        ("", None),
    ],
)
def test_parse_post_id(raw, expected) -> None:
    assert parse_post_id(raw) == expected


def test_exceeds_post_id_range() -> None:
    assert exceeds_post_id_range(str(POST_ID_MAX + 1)) is True
    assert exceeds_post_id_range(str(POST_ID_MAX)) is False
    assert exceeds_post_id_range("nope") is False

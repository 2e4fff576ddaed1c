"""Fail-fast request pipeline.

Every endpoint is a `Pipeline`: an ordered tuple of `Stage` objects run one after
another against a shared `RequestContext`. A stage either returns None to let the
chain continue or a `TieredError`, whose level decides what happens next (see
`envelope.core.errors`). The whole chain runs under a single deadline, and the
response sink accepts exactly one body per request.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from envelope.core.errors import ErrorCode, ErrorLevel, TieredError
from envelope.core.settings import Settings
from envelope.db.session import get_db
from envelope.repositories import CommentRepository, PostRepository
from envelope.services.container import AppServices
from envelope.services.credentials import CredentialStore
from envelope.services.feed import PageLimit
from envelope.services.region import RegionResolver

logger = logging.getLogger(__name__)

SessionDep = Annotated[AsyncSession, Depends(get_db)]


class ResponseAlreadyWrittenError(RuntimeError):
    """Raised when a second body is written for the same request."""


class ResponseSink:
    """Holds the single terminal body of a request."""

    def __init__(self) -> None:
        self.status_code: int | None = None
        self.body: dict[str, Any] | list[Any] | None = None

    @property
    def written(self) -> bool:
        return self.status_code is not None

    def write(self, body: BaseModel | dict[str, Any], status_code: int = HTTPStatus.OK) -> None:
        """Record the response body.

        Raises:
            ResponseAlreadyWrittenError: If a body was already written.
        """
        if self.written:
            raise ResponseAlreadyWrittenError(
                f"response already written with status {self.status_code}"
            )
        if isinstance(body, BaseModel):
            body = body.model_dump(mode="json")
        self.status_code = int(status_code)
        self.body = body

    def to_response(self) -> Response:
        if self.status_code is None:
            return Response(status_code=HTTPStatus.OK)
        return JSONResponse(content=self.body, status_code=self.status_code)


@dataclass
class RequestContext:
    """State shared by the stages of one request."""

    settings: Settings
    request: Request | None = None
    posts: PostRepository | None = None
    comments: CommentRepository | None = None
    credentials: CredentialStore | None = None
    region_resolver: RegionResolver | None = None
    sink: ResponseSink = field(default_factory=ResponseSink)

    # Filled in by stages.
    device_id: str | None = None
    form: Mapping[str, str] | None = None
    limit: PageLimit | None = None

    async def load_form(self) -> Mapping[str, str]:
        """Parse the request form once and cache it; parser errors propagate."""
        if self.form is None:
            if self.request is None:
                self.form = {}
            else:
                form = await self.request.form()
                self.form = {key: value for key, value in form.items() if isinstance(value, str)}
        return self.form


class Stage(ABC):
    """One step of a pipeline."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def run(self, rc: RequestContext) -> TieredError | None:
        """Do this stage's work; return a TieredError to report a failure."""


class Pipeline:
    """Ordered, immutable chain of stages behind one endpoint."""

    def __init__(self, name: str, *stages: Stage) -> None:
        if not stages:
            raise ValueError("a pipeline needs at least one stage")
        self.name = name
        self.stages: tuple[Stage, ...] = stages

    def __repr__(self) -> str:
        return f"Pipeline({self.name!r}, {', '.join(s.name for s in self.stages)})"

    async def handle(self, request: Request, session: SessionDep) -> Response:
        """FastAPI endpoint: build the request context, run the chain, return the body."""
        services: AppServices = request.app.state.services
        rc = RequestContext(
            settings=services.settings,
            request=request,
            posts=PostRepository(session),
            comments=CommentRepository(session),
            credentials=services.credentials,
            region_resolver=services.region_resolver,
        )
        await self.run(rc)
        return rc.sink.to_response()

    async def run(self, rc: RequestContext) -> None:
        """Run every stage in order under the request deadline."""
        try:
            async with asyncio.timeout(rc.settings.request_timeout_seconds):
                for stage in self.stages:
                    err = await self._run_stage(stage, rc)
                    if err is None:
                        continue
                    if err.level is ErrorLevel.WARNING:
                        self._log(logging.WARNING, err, rc)
                        continue
                    self._finish(err, rc)
                    return
        except TimeoutError as exc:
            self._finish(TieredError.timeout(exc, rc.device_id), rc)
            return

        if not rc.sink.written:
            logger.warning("pipeline %s completed without writing a response", self.name)

    async def _run_stage(self, stage: Stage, rc: RequestContext) -> TieredError | None:
        try:
            return await stage.run(rc)
        except TieredError as err:
            return err
        except Exception as exc:
            # Stages report failures as values; anything escaping one is a server fault.
            return TieredError.internal(exc, rc.device_id)

    def _finish(self, err: TieredError, rc: RequestContext) -> None:
        if err.level is ErrorLevel.SERVER:
            if err.code is not ErrorCode.TIMEOUT and err.is_timeout:
                err = err.as_timeout()
            self._log(logging.ERROR, err, rc)

        if rc.sink.written:
            logger.error(
                "pipeline %s: dropping %s, a response was already written",
                self.name,
                err.code.value,
            )
            return
        rc.sink.write(err.to_response(), err.status_code)

    def _log(self, level: int, err: TieredError, rc: RequestContext) -> None:
        device_id = err.device_id or rc.device_id
        exc_info = err.cause if err.cause is not None and not err.is_timeout else None
        if device_id:
            logger.log(level, "[%s] %s", device_id, err.describe(), exc_info=exc_info)
        else:
            logger.log(level, "%s", err.describe(), exc_info=exc_info)

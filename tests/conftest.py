# tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from itertools import count

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from envelope.core.errors import RegionLookupError
from envelope.core.settings import Settings
from envelope.db.session import create_engine, create_session_factory, create_tables, drop_tables
from envelope.main import create_app
from envelope.models import Post
from envelope.repositories import CommentRepository, PostRepository
from envelope.services.credentials import CredentialStore, InMemoryKeyValueStore

WORKING_REGION = "Uttarakhand"
_DEVICE_COUNTER = count(1)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticRegionResolver:
    """Region resolver returning a fixed answer and recording lookups."""

    def __init__(self, region: str = WORKING_REGION, *, fail: bool = False) -> None:
        self.region = region
        self.fail = fail
        self.calls: list[str] = []

    async def resolve(self, ip_addr: str) -> str:
        self.calls.append(ip_addr)
        if self.fail:
            raise RegionLookupError(f"lookup failed for {ip_addr}")
        return self.region


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        redis_url=None,
        region_gate_enabled=False,
        working_region=WORKING_REGION,
        credential_ttl_seconds=3600,
        request_timeout_seconds=5.0,
    )


@pytest.fixture()
async def engine(test_settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(test_settings)
    await create_tables(engine)
    try:
        yield engine
    finally:
        await drop_tables(engine)
        await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        yield session


@pytest.fixture()
def post_repo(db_session: AsyncSession) -> PostRepository:
    return PostRepository(db_session)


@pytest.fixture()
def comment_repo(db_session: AsyncSession) -> CommentRepository:
    return CommentRepository(db_session)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv_store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture()
def credentials(kv_store: InMemoryKeyValueStore, test_settings: Settings) -> CredentialStore:
    return CredentialStore(kv_store, test_settings)


@pytest.fixture()
def region_resolver() -> StaticRegionResolver:
    return StaticRegionResolver()


@pytest.fixture()
def app(
    test_settings: Settings,
    engine: AsyncEngine,
    kv_store: InMemoryKeyValueStore,
    region_resolver: StaticRegionResolver,
) -> FastAPI:
    return create_app(
        test_settings,
        engine=engine,
        key_value_store=kv_store,
        region_resolver=region_resolver,
    )


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
async def device(credentials: CredentialStore) -> dict[str, str]:
    """Register a fresh device and return its id and token."""
    device_id = f"device-{next(_DEVICE_COUNTER)}"
    token = await credentials.issue(device_id)
    return {"deviceid": device_id, "hash": token}


@pytest.fixture()
def device_headers(device: dict[str, str]) -> dict[str, str]:
    return {"deviceid": device["deviceid"]}


@pytest.fixture()
def make_post(post_repo: PostRepository) -> Callable[..., Awaitable[Post]]:
    """Return a factory that appends posts with explicit timestamps."""

    async def _make_post(
        text: str = "hello envelope",
        *,
        timestamp: int = 1_000,
        device_id: str = "author-device",
    ) -> Post:
        return await post_repo.create(
            device_id=device_id,
            text=text,
            timestamp=timestamp,
            ip_addr="127.0.0.1",
        )

    return _make_post


@pytest.fixture()
def make_app(test_settings: Settings, engine: AsyncEngine, kv_store: InMemoryKeyValueStore):
    """Return a factory building an app with settings overrides and a fixed region."""

    def _make_app(
        *, region: str = WORKING_REGION, fail: bool = False, **overrides
    ) -> tuple[FastAPI, StaticRegionResolver]:
        resolver = StaticRegionResolver(region, fail=fail)
        app = create_app(
            test_settings.model_copy(update=overrides),
            engine=engine,
            key_value_store=kv_store,
            region_resolver=resolver,
        )
        return app, resolver

    return _make_app

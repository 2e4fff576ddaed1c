"""Stages shared by several endpoints: identity, region gate and input parsing."""

from __future__ import annotations

from http import HTTPStatus

from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from envelope.core.errors import (
    CredentialStoreError,
    DeviceNotRegisteredError,
    ErrorCode,
    ErrorLevel,
    RegionLookupError,
    TieredError,
)
from envelope.services.feed import normalize_limit
from envelope.services.region import client_address

from .engine import RequestContext, Stage


DEVICE_ID_FIELD = "deviceid"
POST_ID_MAX = 2**31 - 1
_READ_METHODS = frozenset({"GET", "HEAD"})
_FORM_ERRORS = (HTTPException, MultiPartException, UnicodeDecodeError, ValueError)

# Failures of the relational or key-value store; stages report them as Level 3.
STORE_ERRORS = (SQLAlchemyError, CredentialStoreError)


def not_registered() -> TieredError:
    return TieredError(ErrorLevel.CLIENT, ErrorCode.NOT_REGISTERED, HTTPStatus.UNAUTHORIZED)


async def required_form_value(rc: RequestContext, name: str) -> str | TieredError:
    """Return a non-blank form field or the tiered error describing why it is unusable."""
    try:
        form = await rc.load_form()
    except _FORM_ERRORS as err:
        return TieredError.parsing(err)
    value = form.get(name, "")
    if not value.strip():
        return TieredError.missing_field(name)
    return value


def _as_int(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def parse_post_id(raw: str) -> int | None:
    """Return ``raw`` as a post id, or None when it cannot be one.

    Post ids are positive and fit the 32-bit ``Integer`` primary key.
    """
    post_id = _as_int(raw)
    if post_id is None or not 0 < post_id <= POST_ID_MAX:
        return None
    return post_id


def exceeds_post_id_range(raw: str) -> bool:
    """Return True if ``raw`` is an integer above the largest storable post id."""
    post_id = _as_int(raw)
    return post_id is not None and post_id > POST_ID_MAX


class ParseForm(Stage):
    """Parse the request body once so later stages can read fields from it."""

    async def run(self, rc: RequestContext) -> TieredError | None:
        try:
            await rc.load_form()
        except _FORM_ERRORS as err:
            return TieredError.parsing(err)
        return None


class ExtractDeviceId(Stage):
    """Resolve the caller's device id.

    Reads the ``deviceid`` header on GET/HEAD. On mutating methods the form field
    wins and the header is the fallback.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        request = rc.request
        device_id = ""
        if request is not None:
            if request.method not in _READ_METHODS:
                try:
                    form = await rc.load_form()
                except _FORM_ERRORS as err:
                    return TieredError.parsing(err)
                device_id = form.get(DEVICE_ID_FIELD, "")
            if not device_id.strip():
                device_id = request.headers.get(DEVICE_ID_FIELD, "")

        device_id = device_id.strip()
        if not device_id:
            return TieredError.missing_field(DEVICE_ID_FIELD)
        rc.device_id = device_id
        return None


class VerifyDeviceRegistered(Stage):
    """Allow only devices holding a live credential through."""

    async def run(self, rc: RequestContext) -> TieredError | None:
        try:
            await rc.credentials.verify(rc.device_id)
        except DeviceNotRegisteredError:
            return not_registered()
        except CredentialStoreError as err:
            return TieredError.internal(err, rc.device_id)
        return None


class RegionGate(Stage):
    """Reject callers outside the configured working region.

    This is a business rule, not a retryable condition: both a failed lookup and
    a foreign region stop the request as Level 3 errors.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        if not rc.settings.region_gate_enabled:
            return None

        address = client_address(rc.request)
        try:
            region = await rc.region_resolver.resolve(address)
        except RegionLookupError as err:
            return TieredError.internal(err, rc.device_id)

        if region != rc.settings.working_region:
            return TieredError(
                ErrorLevel.SERVER,
                ErrorCode.OUT_OF_REGION,
                HTTPStatus.UNAUTHORIZED,
                device_id=rc.device_id,
                message=f"{address} is from {region}",
            )
        return None


class ParsePageLimit(Stage):
    """Normalize the ``limit`` query parameter into ``rc.limit``.

    An oversized limit is clamped and reported as a Level 2 warning, so the request
    still goes through.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        raw = rc.request.query_params.get("limit") if rc.request is not None else None
        rc.limit = normalize_limit(
            raw,
            default=rc.settings.feed_default_limit,
            maximum=rc.settings.feed_max_limit,
        )
        if rc.limit.clamped:
            return TieredError(
                ErrorLevel.WARNING,
                ErrorCode.INVALID_DATA,
                HTTPStatus.OK,
                field="limit",
                device_id=rc.device_id,
                message=f"limit {rc.limit.requested} clamped to {rc.limit.value}",
            )
        return None

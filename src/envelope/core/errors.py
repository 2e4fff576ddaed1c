"""Error types shared by the request pipeline and the storage layers.

Stages report failures as `TieredError` values. The level decides what the
pipeline does with them:

- Level 1 (client fault): nothing is logged; the error body is written and the
  chain stops.
- Level 2 (soft warning): the error is logged and the chain continues.
- Level 3 (server fault): the error is logged, the error body is written and the
  chain stops. A deadline cause is reported as ``TIMEOUT``.

The storage layers below the stages raise the plain domain exceptions defined at
the bottom of this module; stages translate those into tiered errors.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from http import HTTPStatus
from typing import Any


class ErrorLevel(IntEnum):
    """Severity tier of a pipeline error."""

    CLIENT = 1
    WARNING = 2
    SERVER = 3


class ErrorCode(str, Enum):
    """Stable machine-readable codes returned to clients."""

    INVALID_DATA = "INVALID_DATA"
    INTERNAL = "INTERNAL_ERROR"
    PARSING = "PARSING_ERROR"
    OUT_OF_REGION = "OUT_OF_REGION"
    NOT_REGISTERED = "NOT_REGISTERED"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    EXPIRED = "EXPIRED"
    ALREADY_LIKED = "ALREADY_LIKED"


class TieredError(Exception):
    """Failure produced by a pipeline stage."""

    def __init__(
        self,
        level: ErrorLevel,
        code: ErrorCode,
        status_code: int,
        *,
        field: str | None = None,
        device_id: str | None = None,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(message or code.value)
        self.level = level
        self.code = code
        self.status_code = status_code
        self.field = field
        self.device_id = device_id
        self.cause = cause
        self.__cause__ = cause

    def __repr__(self) -> str:
        return (
            f"TieredError(level={int(self.level)}, code={self.code.value}, "
            f"status_code={self.status_code})"
        )

    @property
    def is_timeout(self) -> bool:
        """Return True if the underlying cause is an elapsed deadline."""
        return isinstance(self.cause, TimeoutError)

    def describe(self) -> str:
        """Return the server-side description used in log lines."""
        if self.cause is not None:
            return f"{self.code.value}: {self.cause!r}"
        return f"{self.code.value}: {self}"

    def as_timeout(self) -> TieredError:
        """Return a copy of this error rewritten to the dedicated timeout code."""
        return TieredError(
            ErrorLevel.SERVER,
            ErrorCode.TIMEOUT,
            HTTPStatus.REQUEST_TIMEOUT,
            device_id=self.device_id,
            cause=self.cause,
        )

    def to_response(self) -> dict[str, Any]:
        """Return the client-visible body; causes are never included."""
        body: dict[str, Any] = {
            "status": HTTPStatus(self.status_code).phrase,
            "status_code": int(self.status_code),
            "error_code": self.code.value,
        }
        if self.field is not None:
            body["field"] = self.field
        return body

    # --- Constructors for the common cases -----------------------------------------
    @classmethod
    def missing_field(cls, field: str) -> TieredError:
        """A required request field is absent or empty."""
        return cls(ErrorLevel.CLIENT, ErrorCode.NOT_FOUND, HTTPStatus.BAD_REQUEST, field=field)

    @classmethod
    def invalid_field(cls, field: str) -> TieredError:
        """A request field is present but its value is unusable."""
        return cls(ErrorLevel.CLIENT, ErrorCode.INVALID_DATA, HTTPStatus.BAD_REQUEST, field=field)

    @classmethod
    def parsing(cls, cause: BaseException) -> TieredError:
        return cls(ErrorLevel.CLIENT, ErrorCode.PARSING, HTTPStatus.BAD_REQUEST, cause=cause)

    @classmethod
    def internal(cls, cause: BaseException, device_id: str | None = None) -> TieredError:
        """Storage or transport failure; the cause is only ever logged."""
        return cls(
            ErrorLevel.SERVER,
            ErrorCode.INTERNAL,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            device_id=device_id,
            cause=cause,
        )

    @classmethod
    def timeout(cls, cause: BaseException, device_id: str | None = None) -> TieredError:
        return cls(
            ErrorLevel.SERVER,
            ErrorCode.TIMEOUT,
            HTTPStatus.REQUEST_TIMEOUT,
            device_id=device_id,
            cause=cause,
        )


class EnvelopeError(RuntimeError):
    """Base exception raised by the storage and lookup layers."""


class CredentialStoreError(EnvelopeError):
    """The credential key-value store could not be reached or failed."""


class DeviceNotRegisteredError(EnvelopeError):
    """No live credential exists for the device id."""

    def __init__(self, device_id: str) -> None:
        super().__init__(f"device {device_id!r} is not registered")
        self.device_id = device_id


class PostNotFoundError(EnvelopeError):
    """The referenced post does not exist."""

    def __init__(self, post_id: int) -> None:
        super().__init__(f"post {post_id} does not exist")
        self.post_id = post_id


class AlreadyLikedError(EnvelopeError):
    """The device has already liked the post."""

    def __init__(self, post_id: int, device_id: str) -> None:
        super().__init__(f"post {post_id} already liked by {device_id!r}")
        self.post_id = post_id
        self.device_id = device_id


class RegionLookupError(EnvelopeError):
    """The address-to-region resolver failed."""

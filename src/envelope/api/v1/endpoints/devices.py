# src/envelope/api/v1/endpoints/devices.py
"""Device registration and verification endpoints."""

from http import HTTPStatus

from fastapi import APIRouter

from envelope.core.errors import (
    CredentialStoreError,
    DeviceNotRegisteredError,
    ErrorCode,
    ErrorLevel,
    TieredError,
)
from envelope.pipeline import ExtractDeviceId, Pipeline, RegionGate, RequestContext, Stage
from envelope.pipeline.stages import not_registered
from envelope.schemas import GenericResponse, RegisterDeviceResponse

router = APIRouter(tags=["devices"])


class RegisterDevice(Stage):
    """Issue a fresh token for the device, replacing any previous one."""

    async def run(self, rc: RequestContext) -> TieredError | None:
        try:
            token = await rc.credentials.issue(rc.device_id)
        except CredentialStoreError as err:
            return TieredError.internal(err, rc.device_id)

        rc.sink.write(RegisterDeviceResponse(hash=token))
        return None


class VerifyDeviceCredential(Stage):
    """Compare the caller's token against the live one.

    Input: ``deviceid`` header and ``hash`` query parameter.
    """

    async def run(self, rc: RequestContext) -> TieredError | None:
        token = rc.request.query_params.get("hash", "")
        if not token:
            return TieredError.missing_field("hash")

        try:
            matches = await rc.credentials.matches(rc.device_id, token)
        except DeviceNotRegisteredError:
            return not_registered()
        except CredentialStoreError as err:
            return TieredError.internal(err, rc.device_id)

        if not matches:
            return TieredError(ErrorLevel.CLIENT, ErrorCode.EXPIRED, HTTPStatus.BAD_REQUEST)

        rc.sink.write(GenericResponse())
        return None


REGISTER_DEVICE = Pipeline(
    "register-device",
    ExtractDeviceId(),
    RegionGate(),
    RegisterDevice(),
)

VERIFY_DEVICE = Pipeline(
    "verify-device",
    ExtractDeviceId(),
    VerifyDeviceCredential(),
)

router.add_api_route(
    "/register-device",
    REGISTER_DEVICE.handle,
    methods=["POST"],
    name="register_device",
    summary="Register a device and receive its token",
)
router.add_api_route(
    "/verify-device",
    VERIFY_DEVICE.handle,
    methods=["GET"],
    name="verify_device",
    summary="Check a device token",
)

"""Request pipeline: stage chain, error policy and single-write response sink."""

from .engine import Pipeline, RequestContext, ResponseAlreadyWrittenError, ResponseSink, Stage
from .stages import (
    ExtractDeviceId,
    ParseForm,
    ParsePageLimit,
    RegionGate,
    VerifyDeviceRegistered,
)

__all__ = [
    "ExtractDeviceId",
    "ParseForm",
    "ParsePageLimit",
    "Pipeline",
    "RegionGate",
    "RequestContext",
    "ResponseAlreadyWrittenError",
    "ResponseSink",
    "Stage",
    "VerifyDeviceRegistered",
]

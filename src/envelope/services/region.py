"""Resolution of caller addresses to coarse regions."""

from __future__ import annotations

import ipaddress
from typing import Protocol

import httpx
from starlette.requests import Request

from envelope.core.errors import RegionLookupError
from envelope.core.settings import Settings

LOOPBACK_V4 = "127.0.0.1"


class RegionResolver(Protocol):
    """Maps a network address to a region label."""

    async def resolve(self, ip_addr: str) -> str:
        """Return the region of ``ip_addr``; raise RegionLookupError on failure."""


def client_address(request: Request) -> str:
    """Return the caller address, preferring the first X-Forwarded-For entry."""
    forwarded = request.headers.get("x-forwarded-for", "")
    address = forwarded.split(",")[0].strip()
    if not address and request.client is not None:
        address = request.client.host
    return normalize_address(address)


def normalize_address(address: str) -> str:
    """Collapse the IPv6 loopback forms onto 127.0.0.1."""
    if address.strip("[]") == "::1":
        return LOOPBACK_V4
    return address


def _is_loopback(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).is_loopback
    except ValueError:
        return False


class IpapiRegionResolver:
    """Region lookups against ipapi.co's plain-text region endpoint.

    Loopback callers resolve to the working region so local clients can register.
    No retries; a failed lookup is reported to the caller as-is.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._url_template = settings.region_lookup_url
        self._loopback_region = settings.working_region
        self._client = client or httpx.AsyncClient(timeout=settings.region_lookup_timeout_seconds)

    async def resolve(self, ip_addr: str) -> str:
        if _is_loopback(ip_addr):
            return self._loopback_region
        try:
            response = await self._client.get(self._url_template.format(ip=ip_addr))
            response.raise_for_status()
        except httpx.HTTPError as err:
            raise RegionLookupError(f"region lookup failed for {ip_addr}") from err
        region = response.text.strip()
        if not region:
            raise RegionLookupError(f"empty region for {ip_addr}")
        return region

    async def close(self) -> None:
        await self._client.aclose()

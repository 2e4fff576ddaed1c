"""Long-lived collaborators shared by every request."""

from __future__ import annotations

from dataclasses import dataclass

from envelope.core.settings import Settings
from envelope.services.credentials import CredentialStore, KeyValueStore
from envelope.services.region import RegionResolver


@dataclass(frozen=True)
class AppServices:
    """Settings plus the stores and resolvers the pipeline stages consult."""

    settings: Settings
    key_value_store: KeyValueStore
    credentials: CredentialStore
    region_resolver: RegionResolver

    async def close(self) -> None:
        """Release network clients held by the collaborators."""
        for resource in (self.key_value_store, self.region_resolver):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

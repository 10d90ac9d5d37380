"""Public interface for the provider API adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .client import API_PREFIX, ProviderClient

if TYPE_CHECKING:
    from dbfleet.config import ProviderConfig


def build_provider_client(config: ProviderConfig | None = None) -> ProviderClient:
    """Return a provider client configured from ``config`` or the environment."""

    if config is None:
        return ProviderClient()
    return ProviderClient(config=config)


__all__ = ["API_PREFIX", "ProviderClient", "build_provider_client"]

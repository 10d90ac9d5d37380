"""Provider API configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import positive_number_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

PROVIDER_BASE_URL = "https://cloud.mongodb.com"
PROVIDER_API_VERSION = "application/vnd.atlas.2024-08-05+json"
PROVIDER_TIMEOUT_SECONDS = 30.0
PROVIDER_CALLS_PER_SECOND = 10.0


@dataclass(frozen=True)
class ProviderConfig:
    """Holds provider API credentials and client settings."""

    public_key: str
    private_key: str
    resilience: ResilienceConfig


def default_resilience_config(
    base_url: str = PROVIDER_BASE_URL,
    *,
    calls_per_second: float = PROVIDER_CALLS_PER_SECOND,
    timeout_seconds: float = PROVIDER_TIMEOUT_SECONDS,
) -> ResilienceConfig:
    # fractional rates become one call per longer window
    ratelimit = (
        RateLimit(max_calls=int(calls_per_second), per_seconds=1.0)
        if calls_per_second >= 1
        else RateLimit(max_calls=1, per_seconds=1.0 / calls_per_second)
    )
    return ResilienceConfig(
        name="provider",
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        ratelimit=ratelimit,
        default_headers={
            "Accept": PROVIDER_API_VERSION,
            "Content-Type": PROVIDER_API_VERSION,
        },
    )


def get_provider_config(*, resilience: ResilienceConfig | None = None) -> ProviderConfig:
    values = require_env_vars(("DBFLEET_PROVIDER_PUBLIC_KEY", "DBFLEET_PROVIDER_PRIVATE_KEY"))
    if resilience is None:
        base_url = os.getenv("DBFLEET_PROVIDER_BASE_URL") or PROVIDER_BASE_URL
        resilience = default_resilience_config(
            base_url.rstrip("/"),
            calls_per_second=positive_number_env(
                "DBFLEET_PROVIDER_CALLS_PER_SECOND", PROVIDER_CALLS_PER_SECOND
            ),
            timeout_seconds=positive_number_env(
                "DBFLEET_PROVIDER_TIMEOUT_SECONDS", PROVIDER_TIMEOUT_SECONDS
            ),
        )
    return ProviderConfig(
        public_key=values["DBFLEET_PROVIDER_PUBLIC_KEY"],
        private_key=values["DBFLEET_PROVIDER_PRIVATE_KEY"],
        resilience=resilience,
    )

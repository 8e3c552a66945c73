"""Vercel API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

VERCEL_BASE_URL = "https://api.vercel.com"
VERCEL_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class VercelConfig:
    """Holds Vercel API configuration values."""

    api_token: str
    resilience: ResilienceConfig
    default_team_id: str | None = None


def get_vercel_config(*, resilience: ResilienceConfig | None = None) -> VercelConfig:
    values = require_env_vars(("VERCEL_API_TOKEN",))
    base_url = optional_env_var("VERCEL_API_BASE_URL") or VERCEL_BASE_URL
    return VercelConfig(
        api_token=values["VERCEL_API_TOKEN"],
        default_team_id=optional_env_var("VERCEL_TEAM_ID"),
        resilience=resilience
        or ResilienceConfig(
            name="vercel",
            base_url=base_url,
            timeout_seconds=VERCEL_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=4),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        ),
    )

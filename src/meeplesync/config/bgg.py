"""BoardGameGeek catalog configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, optional_env_var
from .errors import ConfigurationError
from .http_resilience import CacheConfig, ResilienceConfig, RetryPolicy

DEFAULT_BGG_BASE_URL = "https://boardgamegeek.com/xmlapi2"
DEFAULT_BGG_MIN_INTERVAL_SECONDS = 1.1
BGG_TIMEOUT_SECONDS = 20.0
# the thing endpoint rejects requests with more ids than this
BGG_MAX_IDS_PER_REQUEST = 20


@dataclass(frozen=True, slots=True)
class BggConfig:
    resilience: ResilienceConfig
    batch_size: int = BGG_MAX_IDS_PER_REQUEST


def _cache_config() -> CacheConfig | None:
    backend = optional_env_var("BGG_HTTP_CACHE")
    if backend is None:
        return None
    if backend not in {"sqlite", "memory"}:
        raise ConfigurationError(f"BGG_HTTP_CACHE must be 'sqlite' or 'memory', got {backend!r}")
    return CacheConfig(enabled=True, backend=backend)


def get_bgg_config() -> BggConfig:
    min_interval = env_float("BGG_MIN_INTERVAL_SECONDS", DEFAULT_BGG_MIN_INTERVAL_SECONDS)
    if min_interval < 0:
        raise ConfigurationError("BGG_MIN_INTERVAL_SECONDS must be non-negative")

    headers = {"User-Agent": "meeplesync (catalog reconciliation)"}
    token = optional_env_var("BGG_API_TOKEN")
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"

    resilience = ResilienceConfig(
        name="bgg",
        base_url=optional_env_var("BGG_BASE_URL") or DEFAULT_BGG_BASE_URL,
        timeout_seconds=BGG_TIMEOUT_SECONDS,
        # failed fetches surface as missing records, the caller decides what to do
        retry=RetryPolicy(total=0),
        min_interval_seconds=min_interval,
        cache=_cache_config(),
        default_headers=headers,
    )
    return BggConfig(resilience=resilience)

"""
Google Maps MCP Configuration
-----------------------------
Centralized configuration for the stdio server, the upstream client and the
request-shaping pipeline (cache, rate limiter, retry policy).

Values come from environment variables; the CLI may override individual
fields afterwards. Invalid numeric values are logged and ignored so a typo in
an MCP host config never prevents the server from starting.
"""

import os
import logging
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger("GMapsMCP.Config")

DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_RATE_LIMIT_CAPACITY = 100
DEFAULT_RATE_LIMIT_REFILL_RATE = 10.0
DEFAULT_RATE_LIMIT_MAX_KEYS = 10000
DEFAULT_REQUEST_TIMEOUT_MS = 10000


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_positive_env(name: str, cast=int) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = cast(raw)
        if value <= 0:
            raise ValueError
        return value
    except ValueError:
        logger.warning(
            "Invalid %s value '%s'; expected positive number. Ignoring.",
            name,
            raw,
        )
        return None


class CacheConfig(BaseModel):
    """Upstream response cache configuration."""
    enabled: bool = True
    ttl_ms: int = DEFAULT_CACHE_TTL_MS
    max_size: int = DEFAULT_CACHE_MAX_SIZE


class RateLimitConfig(BaseModel):
    """Per-tool token bucket configuration."""
    capacity: int = DEFAULT_RATE_LIMIT_CAPACITY
    refill_rate: float = DEFAULT_RATE_LIMIT_REFILL_RATE
    max_keys: int = DEFAULT_RATE_LIMIT_MAX_KEYS


class RetryConfig(BaseModel):
    """Retry policy applied to every upstream HTTP call."""
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    jitter: bool = True


class LoggingConfig(BaseModel):
    """Diagnostics go to stderr (and optionally a file), never stdout."""
    level: str = "INFO"
    file: Optional[str] = None
    tool_call_warn_ms: float = 5000.0


class ServerConfig(BaseModel):
    """Root configuration for the Google Maps MCP server."""
    google_maps_api_key: str = ""
    ip_override_enabled: bool = False
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Load configuration from environment variables.

        - GOOGLE_MAPS_API_KEY: API key (required when the server is built)
        - IP_OVERRIDE_ENABLED: allow ip_geolocate to forward an override IP
        - CACHE_ENABLED / CACHE_TTL_MS / CACHE_MAX_SIZE
        - RATE_LIMIT_CAPACITY / RATE_LIMIT_REFILL_RATE / RATE_LIMIT_MAX_KEYS
        - REQUEST_TIMEOUT_MS
        - RETRY_MAX_ATTEMPTS / RETRY_BASE_DELAY_MS / RETRY_MAX_DELAY_MS
        - GMAPS_MCP_LOG_LEVEL / GMAPS_MCP_LOG_FILE / GMAPS_MCP_TOOL_CALL_WARN_MS
        """
        cache = CacheConfig(
            enabled=_env_bool("CACHE_ENABLED", True),
            ttl_ms=_parse_positive_env("CACHE_TTL_MS") or DEFAULT_CACHE_TTL_MS,
            max_size=_parse_positive_env("CACHE_MAX_SIZE") or DEFAULT_CACHE_MAX_SIZE,
        )
        rate_limit = RateLimitConfig(
            capacity=_parse_positive_env("RATE_LIMIT_CAPACITY") or DEFAULT_RATE_LIMIT_CAPACITY,
            refill_rate=(
                _parse_positive_env("RATE_LIMIT_REFILL_RATE", float)
                or DEFAULT_RATE_LIMIT_REFILL_RATE
            ),
            max_keys=_parse_positive_env("RATE_LIMIT_MAX_KEYS") or DEFAULT_RATE_LIMIT_MAX_KEYS,
        )
        retry_defaults = RetryConfig()
        retry = RetryConfig(
            max_attempts=_parse_positive_env("RETRY_MAX_ATTEMPTS") or retry_defaults.max_attempts,
            base_delay_ms=_parse_positive_env("RETRY_BASE_DELAY_MS") or retry_defaults.base_delay_ms,
            max_delay_ms=_parse_positive_env("RETRY_MAX_DELAY_MS") or retry_defaults.max_delay_ms,
            jitter=_env_bool("RETRY_JITTER", True),
        )
        log_defaults = LoggingConfig()
        logging_config = LoggingConfig(
            level=os.environ.get("GMAPS_MCP_LOG_LEVEL", log_defaults.level).upper(),
            file=os.environ.get("GMAPS_MCP_LOG_FILE") or None,
            tool_call_warn_ms=(
                _parse_positive_env("GMAPS_MCP_TOOL_CALL_WARN_MS", float)
                or log_defaults.tool_call_warn_ms
            ),
        )
        return cls(
            google_maps_api_key=os.environ.get("GOOGLE_MAPS_API_KEY", "").strip(),
            ip_override_enabled=_env_bool("IP_OVERRIDE_ENABLED", False),
            request_timeout_ms=(
                _parse_positive_env("REQUEST_TIMEOUT_MS") or DEFAULT_REQUEST_TIMEOUT_MS
            ),
            cache=cache,
            rate_limit=rate_limit,
            retry=retry,
            logging=logging_config,
        )

"""Unified timeout values for adapters and the HTTP pool.

Key Components
--------------
TimeoutConfig
    Normalized timeout values in seconds.

get_timeout_config()
    Returns a process-cached configuration, parsing environment overrides on
    first use and again only when one of them changes. Supported environment
    variables (all optional, positive floats):
        SUTRA_TIMEOUT_CONNECT_SECONDS
        SUTRA_TIMEOUT_HTTP_SECONDS
        SUTRA_TIMEOUT_STREAM_SECONDS
        SUTRA_TIMEOUT_OVERALL_SECONDS

Cancellation of in-flight work is cooperative (cancellation tokens and
asyncio task cancellation); this module only supplies the numbers.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

_ENV_VARS = (
    "SUTRA_TIMEOUT_CONNECT_SECONDS",
    "SUTRA_TIMEOUT_HTTP_SECONDS",
    "SUTRA_TIMEOUT_STREAM_SECONDS",
    "SUTRA_TIMEOUT_OVERALL_SECONDS",
)


@dataclass(frozen=True)
class TimeoutConfig:
    """Container for normalized timeout values (seconds).

    Attributes:
        connect_timeout_seconds: Time allowed to establish a connection.
        http_timeout_seconds: Read/write timeout for non-streaming calls.
        stream_timeout_seconds: Idle timeout between streamed fragments.
        overall_timeout_seconds: Optional absolute cap applied by adapters.
    """

    connect_timeout_seconds: float = 10.0
    http_timeout_seconds: float = 60.0
    stream_timeout_seconds: float = 120.0
    overall_timeout_seconds: float | None = None


_CACHED: TimeoutConfig | None = None
_ENV_GUARD: str | None = None


def _parse_env_float(name: str, default: float | None) -> float | None:
    """Read ``name`` as a positive float, falling back to ``default``."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        val = float(raw)
    except ValueError:
        return default
    return val if val > 0 else default


def get_timeout_config() -> TimeoutConfig:
    """Return the process-cached :class:`TimeoutConfig`."""
    global _CACHED, _ENV_GUARD  # noqa: PLW0603 - documented module cache
    guard = "/".join(os.getenv(name, "") for name in _ENV_VARS)
    if _CACHED is not None and _ENV_GUARD == guard:
        return _CACHED
    defaults = TimeoutConfig()
    _CACHED = TimeoutConfig(
        connect_timeout_seconds=float(_parse_env_float(_ENV_VARS[0], defaults.connect_timeout_seconds)),
        http_timeout_seconds=float(_parse_env_float(_ENV_VARS[1], defaults.http_timeout_seconds)),
        stream_timeout_seconds=float(_parse_env_float(_ENV_VARS[2], defaults.stream_timeout_seconds)),
        overall_timeout_seconds=_parse_env_float(_ENV_VARS[3], None),
    )
    _ENV_GUARD = guard
    return _CACHED


__all__ = ["TimeoutConfig", "get_timeout_config"]

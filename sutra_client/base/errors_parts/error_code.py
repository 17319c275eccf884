"""
Normalized client error codes (taxonomy).

Defines the `ErrorCode` enumeration used across the executor, registry,
middleware and provider adapters. Values are lowercase snake_case and are
considered a stable public contract for logging, analytics and retry policy.
"""
from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Enumerated normalized error codes representing failure categories."""

    PROVIDER_NOT_FOUND = "provider_not_found"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    MODEL_NOT_FOUND = "model_not_found"
    KEY_NOT_SET = "key_not_set"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    NETWORK = "network"
    TRANSIENT = "transient"
    SERVER_ERROR = "server_error"
    UNAVAILABLE = "unavailable"
    VALIDATION = "validation"
    CONTENT_FILTERED = "content_filtered"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    MIDDLEWARE = "middleware"
    STREAM_ABORTED = "stream_aborted"
    STREAM_ERROR = "stream_error"
    CACHE_KEY = "cache_key"
    TEMPLATE = "template"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


# Codes that are worth retrying when no explicit hint is present.
RETRYABLE_CODES = frozenset(
    {
        ErrorCode.PROVIDER_UNAVAILABLE,
        ErrorCode.RATE_LIMIT,
        ErrorCode.TIMEOUT,
        ErrorCode.NETWORK,
        ErrorCode.TRANSIENT,
        ErrorCode.SERVER_ERROR,
        ErrorCode.UNAVAILABLE,
    }
)


__all__ = ["ErrorCode", "RETRYABLE_CODES"]

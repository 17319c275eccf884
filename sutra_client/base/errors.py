"""Unified client error taxonomy public surface.

This module re-exports the one-class-per-file implementations under
``sutra_client.base.errors_parts`` to maintain a stable import path.
"""

from .errors_parts.error_code import ErrorCode, RETRYABLE_CODES
from .errors_parts.sutra_error import SutraError
from .errors_parts.specific_errors import (
    CacheKeyError,
    ContentFilteredError,
    KeyNotSetError,
    PipelineError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    RateLimitedError,
    StreamAbortedError,
    TemplateError,
)
from .errors_parts.classification import classify_exception, error_from_status, to_sutra_error

__all__ = [
    "ErrorCode",
    "RETRYABLE_CODES",
    "SutraError",
    "CacheKeyError",
    "ContentFilteredError",
    "KeyNotSetError",
    "PipelineError",
    "ProviderNotFoundError",
    "ProviderUnavailableError",
    "RateLimitedError",
    "StreamAbortedError",
    "TemplateError",
    "classify_exception",
    "error_from_status",
    "to_sutra_error",
]

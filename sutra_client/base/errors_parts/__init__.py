"""Errors parts package public surface.

Re-exports individual error taxonomy components for optional direct imports.
Prefer importing from `sutra_client.base.errors` for the stable surface.
"""

from .error_code import ErrorCode, RETRYABLE_CODES
from .sutra_error import SutraError
from .specific_errors import (
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
from .classification import classify_exception, error_from_status, to_sutra_error

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

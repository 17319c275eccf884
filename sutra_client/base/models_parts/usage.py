"""
Token usage and timing DTOs attached to responses.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class Usage:
    """Token accounting reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Timing:
    """Client-side timing for one call, in milliseconds.

    ``time_to_first_token_ms`` is only set for streamed responses.
    """

    start_ms: float
    end_ms: float
    duration_ms: float
    time_to_first_token_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


__all__ = ["Usage", "Timing"]

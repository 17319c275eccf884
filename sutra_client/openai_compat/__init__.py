"""OpenAI-compatible adapter shared by every built-in provider."""

from .client import OpenAICompatibleProvider
from .helpers import delta_from_payload, parse_sse_line, response_from_payload

__all__ = ["OpenAICompatibleProvider", "delta_from_payload", "parse_sse_line", "response_from_payload"]

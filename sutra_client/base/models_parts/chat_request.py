"""
ChatRequest DTO for provider-agnostic chat invocations.

The request names the target provider and model, carries the ordered
messages and sampling parameters, and holds the client-side control flags
(``stream``, ``skip_cache``, ``no_retry``) plus the cancellation token that
adapters observe.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..cancellation_parts.cancellation_token import CancellationToken
from .message import Message


@dataclass
class ChatRequest:
    """Normalized chat request routed through the pipeline to an adapter.

    Attributes:
        provider: Registered provider key (e.g. ``"openai"``).
        model: Target model identifier.
        messages: Ordered list of chat `Message` instances.
        temperature / top_p / max_tokens / stop / presence_penalty /
        frequency_penalty / seed: Sampling parameters, mapped by adapters.
        tools: Tool specifications in OpenAI function format.
        tool_choice: ``"auto"``, ``"none"`` or a specific tool selector.
        response_format: Response format hint (e.g. ``{"type": "json_object"}``).
        user: End-user identifier forwarded to the provider.
        stream: Set by the executor for streaming calls.
        skip_cache: Bypass the response cache for this call.
        no_retry: Do not honor retry signals (set by the batch retry budget).
        metadata: Caller-defined values visible to middleware; never sent.
        token: Cancellation token observed by the adapter call.
        extra: Adapter-specific payload fields merged verbatim.
    """

    provider: str
    model: str
    messages: List[Message]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Union[str, List[str], None] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    seed: Optional[int] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Union[str, Dict[str, Any], None] = None
    response_format: Optional[Dict[str, Any]] = None
    user: Optional[str] = None
    stream: bool = False
    skip_cache: bool = False
    no_retry: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    token: Optional[CancellationToken] = field(default=None, repr=False, compare=False)
    extra: Dict[str, Any] = field(default_factory=dict)

    def sampling_params(self) -> Dict[str, Any]:
        """Return the sampling parameters that are set, keyed by wire name."""
        params = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
            "stop": self.stop,
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "seed": self.seed,
            "tools": self.tools,
            "tool_choice": self.tool_choice,
            "response_format": self.response_format,
            "user": self.user,
        }
        return {k: v for k, v in params.items() if v is not None}


__all__ = ["ChatRequest"]

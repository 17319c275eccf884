"""
ChatResponse DTO returned by adapters and by the client.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .message import Message
from .usage import Timing, Usage


@dataclass
class ChatChoice:
    """One completion alternative."""

    index: int
    message: Message
    finish_reason: Optional[str] = None


@dataclass
class ChatResponse:
    """Normalized chat completion.

    Attributes:
        id: Provider response id (or a generated one for streams without id).
        model: Model that produced the response.
        provider: Provider key the response came from.
        choices: Completion alternatives sorted by index.
        usage: Token usage when reported.
        created: Unix timestamp (seconds) reported by the provider.
        timing: Client-side timing attached by the executor.
    """

    id: str
    model: str
    provider: str
    choices: List[ChatChoice] = field(default_factory=list)
    usage: Optional[Usage] = None
    created: int = 0
    timing: Optional[Timing] = None

    @property
    def text(self) -> str:
        """Text of the first choice, or ``""`` when there is none."""
        if not self.choices:
            return ""
        return self.choices[0].message.text()

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""
        return {
            "id": self.id,
            "object": "chat.completion",
            "model": self.model,
            "provider": self.provider,
            "created": self.created,
            "choices": [
                {
                    "index": c.index,
                    "message": c.message.to_dict(),
                    "finish_reason": c.finish_reason,
                }
                for c in self.choices
            ],
            "usage": self.usage.to_dict() if self.usage else None,
            "timing": self.timing.to_dict() if self.timing else None,
        }


__all__ = ["ChatChoice", "ChatResponse"]

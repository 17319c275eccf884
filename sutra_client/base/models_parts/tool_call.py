"""
Tool call DTOs shared by requests, responses and stream fragments.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class FunctionCall:
    """Function name plus its JSON-encoded argument text."""

    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    """A complete tool invocation requested by the model."""

    id: str
    function: FunctionCall = field(default_factory=FunctionCall)
    type: str = "function"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.function.name, "arguments": self.function.arguments},
        }


__all__ = ["FunctionCall", "ToolCall"]

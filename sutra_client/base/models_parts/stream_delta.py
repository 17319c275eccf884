"""
Stream fragment DTOs produced by ``chat_stream`` adapters.

A fragment mirrors the OpenAI chunk shape: per-choice deltas carrying text,
an optional role, tool-call fragments (keyed by id or position) and a finish
reason on the terminal fragment. Usage may arrive on any fragment, usually
the last.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .usage import Usage


@dataclass
class ToolCallDelta:
    """Partial tool call; ``arguments`` text is concatenated across fragments."""

    index: Optional[int] = None
    id: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[str] = None


@dataclass
class DeltaMessage:
    role: Optional[str] = None
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCallDelta]] = None


@dataclass
class StreamChoice:
    index: int = 0
    delta: DeltaMessage = field(default_factory=DeltaMessage)
    finish_reason: Optional[str] = None


@dataclass
class ChatStreamDelta:
    """One incremental piece of a streamed response."""

    id: str = ""
    model: str = ""
    provider: str = ""
    choices: List[StreamChoice] = field(default_factory=list)
    usage: Optional[Usage] = None
    created: int = 0

    @property
    def text(self) -> str:
        """Concatenated content of all choice deltas in this fragment."""
        return "".join(c.delta.content or "" for c in self.choices)


__all__ = ["ToolCallDelta", "DeltaMessage", "StreamChoice", "ChatStreamDelta"]

"""
Message DTO used across providers.

Defines the `Message` dataclass and the `Role` literal. Content is either
plain text or a list of `ContentPart` objects; assistant messages may carry
tool calls and tool messages reference the call they answer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Union

from .content_part import ContentPart
from .tool_call import ToolCall


Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class Message:
    """A chat message.

    Attributes:
        role: Author role.
        content: Plain text or structured parts (``None`` for pure tool-call
            assistant turns).
        name: Optional author name.
        tool_calls: Tool invocations requested by an assistant turn.
        tool_call_id: For ``"tool"`` messages, the call being answered.
    """

    role: Role
    content: Union[str, List[ContentPart], None] = ""
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None

    def text(self) -> str:
        """Return the textual content, joining text parts of structured messages."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text or "" for p in self.content if p.type == "text")

    def to_dict(self) -> Dict[str, Any]:
        """Return the OpenAI-style dictionary form, omitting unset optionals."""
        data: Dict[str, Any] = {"role": self.role}
        if isinstance(self.content, list):
            data["content"] = [p.to_dict() for p in self.content]
        else:
            data["content"] = self.content
        if self.name is not None:
            data["name"] = self.name
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


__all__ = ["Message", "Role"]

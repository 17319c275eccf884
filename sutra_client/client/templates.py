"""Prompt templates with ``{variable}`` placeholders.

Placeholders are word characters in single braces. Unknown placeholders are
left untouched so literal braces in prompts survive rendering.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..base.errors import TemplateError
from ..base.models import Message

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass
class TemplateVariable:
    name: str
    description: Optional[str] = None
    required: bool = False
    default: Optional[str] = None
    validate: Optional[Callable[[str], bool]] = None


@dataclass
class PromptTemplate:
    """Reusable prompt.

    Attributes:
        name: Registry key.
        user: User message text.
        system / assistant: Optional system message and assistant prefix.
        variables: Declared variables (required flags, defaults, validators).
        provider / model: Defaults used by ``execute_template``.
        options: Extra ``ChatRequest`` fields (e.g. ``temperature``).
    """

    name: str
    user: str
    system: Optional[str] = None
    assistant: Optional[str] = None
    description: Optional[str] = None
    variables: List[TemplateVariable] = field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def resolve_variables(self, values: Mapping[str, str]) -> Dict[str, str]:
        """Apply defaults and validators; raise :class:`TemplateError` on a problem."""
        resolved = dict(values)
        for var in self.variables:
            if var.name not in resolved:
                if var.default is not None:
                    resolved[var.name] = var.default
                elif var.required:
                    raise TemplateError(f"Missing required variable: {var.name}")
            if var.validate is not None and resolved.get(var.name):
                if not var.validate(resolved[var.name]):
                    raise TemplateError(f"Invalid value for variable: {var.name}")
        return resolved

    def render(self, values: Mapping[str, str]) -> List[Message]:
        resolved = self.resolve_variables(values)

        def _fill(text: str) -> str:
            return _PLACEHOLDER.sub(lambda m: str(resolved[m.group(1)]) if m.group(1) in resolved else m.group(0), text)

        messages: List[Message] = []
        if self.system:
            messages.append(Message(role="system", content=_fill(self.system)))
        messages.append(Message(role="user", content=_fill(self.user)))
        if self.assistant:
            messages.append(Message(role="assistant", content=_fill(self.assistant)))
        return messages


__all__ = ["PromptTemplate", "TemplateVariable"]

"""
Structured content part model for multi-modal messages.

Messages may carry a plain string or a list of parts (text and image
references). ``ContentPart`` is the normalized shape; adapters map it to the
remote API format.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional


ContentPartType = Literal["text", "image_url"]


@dataclass
class ContentPart:
    """A single piece of structured message content.

    Attributes:
        type: ``"text"`` or ``"image_url"``.
        text: Text for ``"text"`` parts.
        image_url: URL (or data URL) for ``"image_url"`` parts.
        detail: Optional image detail hint (``"low"``, ``"high"``, ``"auto"``).
    """

    type: ContentPartType
    text: Optional[str] = None
    image_url: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the OpenAI-style dictionary form of the part."""
        if self.type == "image_url":
            image: Dict[str, Any] = {"url": self.image_url}
            if self.detail:
                image["detail"] = self.detail
            return {"type": "image_url", "image_url": image}
        return {"type": "text", "text": self.text or ""}


__all__ = ["ContentPart", "ContentPartType"]

"""
ModelInfo DTO returned by ``list_models``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ModelInfo:
    """Description of one model offered by a provider.

    Attributes:
        id: Model identifier as accepted in ``ChatRequest.model``.
        provider: Provider key that serves the model.
        name: Human-readable name (defaults to ``id`` at the call site).
        context_length: Maximum context window in tokens when known.
        capabilities: Feature flags such as ``"streaming"`` or ``"tools"``.
        extra: Provider-specific metadata.
    """

    id: str
    provider: str
    name: Optional[str] = None
    context_length: Optional[int] = None
    capabilities: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


__all__ = ["ModelInfo"]

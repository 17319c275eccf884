"""
Embedding request/response DTOs for providers that advertise ``"embeddings"``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..cancellation_parts.cancellation_token import CancellationToken
from .usage import Usage


@dataclass
class EmbeddingRequest:
    """Embed one string or a batch of strings with ``model``.

    ``dimensions`` and ``encoding_format`` are forwarded only when set.
    """

    provider: str
    model: str
    input: Union[str, List[str]]
    encoding_format: Optional[str] = None
    dimensions: Optional[int] = None
    user: Optional[str] = None
    token: Optional[CancellationToken] = field(default=None, repr=False, compare=False)

    @property
    def inputs(self) -> List[str]:
        return [self.input] if isinstance(self.input, str) else list(self.input)


@dataclass
class EmbeddingData:
    index: int
    embedding: List[float]


@dataclass
class EmbeddingResponse:
    """Vectors in input order plus the provider's token accounting."""

    model: str
    provider: str
    data: List[EmbeddingData] = field(default_factory=list)
    usage: Optional[Usage] = None

    @property
    def vectors(self) -> List[List[float]]:
        return [d.embedding for d in sorted(self.data, key=lambda d: d.index)]


__all__ = ["EmbeddingRequest", "EmbeddingData", "EmbeddingResponse"]

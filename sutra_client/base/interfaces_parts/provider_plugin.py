"""Provider plugin descriptor (single-class module).

A plugin bundles a provider constructor with its default configuration so a
third-party package can register a provider in one call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..dto.provider_config import ProviderConfig
from .provider_adapter import ProviderConstructor


@dataclass
class ProviderPlugin:
    """Metadata and constructor for an externally supplied provider.

    Attributes:
        name: Provider key the plugin registers.
        constructor: Callable building the adapter.
        default_config: Defaults merged under the user's config.
        version: Plugin version string.
        description: Human-readable description.
        capabilities: Feature names the provider supports.
    """

    name: str
    constructor: ProviderConstructor
    default_config: Optional[ProviderConfig] = None
    version: str = "0.0.0"
    description: str = ""
    capabilities: List[str] = field(default_factory=list)


__all__ = ["ProviderPlugin"]

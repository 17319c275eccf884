"""Built-in provider registration table.

Maps canonical provider names to the adapter import path and class name.
Adapters are imported lazily with ``importlib`` on first use so importing
the client never pulls in every adapter module.
"""

from __future__ import annotations

from typing import Dict

from ...config.defaults import BUILTIN_PROVIDER_DEFAULTS, KEYLESS_PROVIDERS
from ..dto.provider_config import ProviderConfig

_OPENAI_COMPAT = {"module": "sutra_client.openai_compat.client", "class": "OpenAICompatibleProvider"}

BUILTIN_PROVIDERS: Dict[str, Dict[str, str]] = {name: dict(_OPENAI_COMPAT) for name in BUILTIN_PROVIDER_DEFAULTS}


def builtin_default_config(name: str) -> ProviderConfig:
    """Return the registered default config for a built-in provider."""
    base_url, model = BUILTIN_PROVIDER_DEFAULTS[name]
    return ProviderConfig(
        name=name,
        base_url=base_url,
        default_model=model,
        requires_key=name not in KEYLESS_PROVIDERS,
    )


__all__ = ["BUILTIN_PROVIDERS", "builtin_default_config"]

"""sutra_client.config.env
========================

Provider → environment variable mapping for API keys.

Design Notes
------------
- ``ENV_MAP`` holds the canonical variable per provider; ``ENV_ALIASES``
  lists accepted alternatives with the canonical name first.
- Helpers never raise on unknown providers or unset variables; callers
  (``KeysRepository``) decide how to proceed.
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, Optional, Tuple

ENV_MAP: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "together": "TOGETHER_API_KEY",
    "fireworks": "FIREWORKS_API_KEY",
    "perplexity": "PERPLEXITY_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "xai": "XAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

ENV_ALIASES: Dict[str, Tuple[str, ...]] = {
    "together": ("TOGETHER_API_KEY", "TOGETHERAI_API_KEY"),
    "perplexity": ("PERPLEXITY_API_KEY", "PPLX_API_KEY"),
}


def is_placeholder(val: Optional[str]) -> bool:
    """Return True if the value looks like a placeholder rather than a real key.

    Heuristics: contains 'placeholder', 'changeme' or 'example', or starts
    with 'test_' (case-insensitive, surrounding whitespace ignored).
    """
    if val is None:
        return False
    v = str(val).strip().lower()
    return "placeholder" in v or "changeme" in v or "example" in v or v.startswith("test_")


def get_env_var_name(provider: str) -> Optional[str]:
    """Return the canonical environment variable name for a provider."""
    return ENV_MAP.get(provider.lower()) if provider else None


def get_env_var_candidates(provider: str) -> Iterable[str]:
    """Yield acceptable environment variable names, canonical first."""
    p = (provider or "").lower()
    canonical = ENV_MAP.get(p)
    if canonical:
        yield canonical
    for alias in ENV_ALIASES.get(p, ()):
        if alias != canonical:
            yield alias
    if canonical is None and p:
        # Registered third-party providers follow the same convention.
        yield f"{p.upper().replace('-', '_')}_API_KEY"


def resolve_provider_key(provider: str) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(value, env_var_used)`` for the first non-placeholder value set."""
    for name in get_env_var_candidates(provider):
        val = os.environ.get(name)
        if val and not is_placeholder(val):
            return val, name
    return None, None


__all__ = [
    "ENV_MAP",
    "ENV_ALIASES",
    "is_placeholder",
    "get_env_var_name",
    "get_env_var_candidates",
    "resolve_provider_key",
]

"""Provider registry public surface."""

from .builtins import BUILTIN_PROVIDERS, builtin_default_config
from .provider_registry import CredentialResolver, ProviderRegistry, WarmupResult

__all__ = [
    "BUILTIN_PROVIDERS",
    "builtin_default_config",
    "CredentialResolver",
    "ProviderRegistry",
    "WarmupResult",
]

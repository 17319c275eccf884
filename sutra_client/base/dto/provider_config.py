"""Typed configuration for one provider adapter.

Purpose
-------
Carry the parameters every adapter understands (base URL, default model,
timeout, static headers) plus an ``extra`` bag for provider-specific fields.
The registry merges the registered default config with the user's config via
:meth:`ProviderConfig.merged_with` before constructing an adapter.

External dependencies
---------------------
- Pydantic v2 ``BaseModel`` for validation and ``model_copy``/``model_dump``.

Notes
-----
- Credentials are deliberately absent: adapters receive an async credential
  accessor instead of a raw key.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderConfig(BaseModel):
    """Common provider adapter configuration.

    Attributes
    ----------
    name:
        Provider key the config belongs to; filled in by the registry.
    base_url:
        API base URL (proxies and self-hosted gateways override it).
    default_model:
        Model used by ``complete`` helpers when the caller names none.
    timeout_seconds:
        Per-call network timeout enforced by the adapter's HTTP client.
    headers:
        Static HTTP headers added to every request.
    requires_key:
        Whether the adapter needs a credential (local daemons do not).
    extra:
        Provider-specific settings (documented by each adapter).
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    base_url: Optional[str] = None
    default_model: Optional[str] = None
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    headers: Dict[str, str] = Field(default_factory=dict)
    requires_key: bool = True
    extra: Dict[str, Any] = Field(default_factory=dict)

    def merged_with(self, override: Optional["ProviderConfig"]) -> "ProviderConfig":
        """Return a new config where fields explicitly set on ``override`` win.

        ``headers`` and ``extra`` are merged key by key instead of replaced.
        """
        if override is None:
            return self.model_copy(deep=True)
        updates = override.model_dump(exclude_unset=True)
        headers = {**self.headers, **updates.pop("headers", {})}
        extra = {**self.extra, **updates.pop("extra", {})}
        return self.model_copy(update={**updates, "headers": headers, "extra": extra}, deep=True)


__all__ = ["ProviderConfig"]

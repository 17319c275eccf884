"""Credential resolution: runtime keys, environment fallback, placeholders."""
from __future__ import annotations

import pytest

from sutra_client.base.errors import ErrorCode, KeyNotSetError
from sutra_client.base.repositories.keys import KeysRepository
from sutra_client.config.env import get_env_var_candidates, is_placeholder, resolve_provider_key


def test_memory_key_wins_over_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    repo = KeysRepository()
    assert repo.get_resolution("openai").source == "env"  # nosec B101 test assertion
    repo.set_key("OpenAI", " sk-mem ")
    res = repo.get_resolution("openai")
    assert (res.api_key, res.source) == ("sk-mem", "memory")  # nosec B101 test assertion
    assert repo.remove_key("openai") is True  # nosec B101 test assertion
    assert repo.get_api_key("openai") == "sk-env"  # nosec B101 test assertion


def test_env_lookup_can_be_disabled(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk-real")
    repo = KeysRepository(use_env=False)
    assert repo.has_key("groq") is False  # nosec B101 test assertion


def test_blank_key_rejected():
    with pytest.raises(ValueError):
        KeysRepository().set_key("openai", "   ")


def test_placeholders_are_ignored(monkeypatch):
    monkeypatch.setenv("MISTRAL_API_KEY", "changeme")
    assert is_placeholder("changeme") and is_placeholder("test_abc")  # nosec B101 test assertion
    assert not is_placeholder(None)  # nosec B101 test assertion
    assert resolve_provider_key("mistral") == (None, None)  # nosec B101 test assertion


def test_aliases_and_third_party_convention(monkeypatch):
    monkeypatch.delenv("TOGETHER_API_KEY", raising=False)
    monkeypatch.setenv("TOGETHERAI_API_KEY", "tk-1")
    assert resolve_provider_key("together") == ("tk-1", "TOGETHERAI_API_KEY")  # nosec B101
    assert list(get_env_var_candidates("my-llm")) == ["MY_LLM_API_KEY"]  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_require_key_raises_when_unresolved():
    repo = KeysRepository(use_env=False)
    with pytest.raises(KeyNotSetError) as info:
        await repo.require_key("openai")
    assert info.value.code is ErrorCode.KEY_NOT_SET  # nosec B101 test assertion
    repo.set_key("openai", "sk-1")
    assert await repo.require_key("openai") == "sk-1"  # nosec B101 test assertion

"""sutra_client.config.defaults
=============================

Default endpoints and models for the built-in providers, plus the client's
resilience defaults. Plain constants only; no imports from the rest of the
package so any layer can read them without cycles.
"""

from __future__ import annotations

from typing import Dict, Tuple

# ---- Built-in provider endpoints: name -> (base_url, default_model) ----
BUILTIN_PROVIDER_DEFAULTS: Dict[str, Tuple[str, str]] = {
    "openai": ("https://api.openai.com/v1", "gpt-4o-mini"),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.1-8b-instant"),
    "mistral": ("https://api.mistral.ai/v1", "mistral-small-latest"),
    "together": ("https://api.together.xyz/v1", "meta-llama/Llama-3.3-70B-Instruct-Turbo"),
    "fireworks": ("https://api.fireworks.ai/inference/v1", "accounts/fireworks/models/llama-v3p1-8b-instruct"),
    "perplexity": ("https://api.perplexity.ai", "sonar"),
    "deepseek": ("https://api.deepseek.com/v1", "deepseek-chat"),
    "xai": ("https://api.x.ai/v1", "grok-2-latest"),
    "openrouter": ("https://openrouter.ai/api/v1", "openrouter/auto"),
    "ollama": ("http://localhost:11434/v1", "llama3.2"),
}

# Providers that run locally and need no credential.
KEYLESS_PROVIDERS = frozenset({"ollama"})

# ---- Resilience defaults ----
CIRCUIT_FAILURE_THRESHOLD = 5
CIRCUIT_OPEN_DURATION_SECONDS = 30.0
CIRCUIT_HALF_OPEN_MAX_CALLS = 3
LATENCY_WINDOW_MAX_SAMPLES = 100
LATENCY_WINDOW_TTL_SECONDS = 300.0

# ---- Executor defaults ----
BATCH_DEFAULT_CONCURRENCY = 5
WARMUP_DEFAULT_TIMEOUT_SECONDS = 5.0

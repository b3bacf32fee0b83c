"""LLM provider factory with ``provider:model`` id resolution."""

import os

from .base import LLMError, LLMProvider

_PROVIDER_ENV_KEYS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

_AUTO_DETECT_ORDER = ["claude", "openai"]

# Bare model names are mapped to a provider by prefix
_MODEL_PREFIXES = {
    "claude": ("claude-",),
    "openai": ("gpt-", "o1", "o3", "o4", "chatgpt-"),
}


def parse_model_id(model_id: str) -> tuple[str | None, str]:
    """Split ``"openai:gpt-4o"`` into ``("openai", "gpt-4o")``.

    Bare names are matched against known prefixes; unknown bare names return
    ``(None, name)`` so the caller can fall back to auto-detection.
    """
    if ":" in model_id:
        provider, _, model = model_id.partition(":")
        provider = provider.strip().lower()
        if provider == "anthropic":
            provider = "claude"
        return provider, model.strip()

    for provider, prefixes in _MODEL_PREFIXES.items():
        if model_id.startswith(prefixes):
            return provider, model_id
    return None, model_id


def create_llm_provider(
    provider: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
) -> LLMProvider:
    """Create an async LLM provider instance.

    Args:
        provider: "claude", "openai", "auto", or None (infer from model, then env)
        api_key: Explicit API key (overrides env var)
        model: Model name or ``provider:model`` id (None = provider default)
        client: Pre-built async SDK client for testing/DI

    Returns:
        LLMProvider instance
    """
    resolved = provider or "auto"

    if model:
        inferred, model = parse_model_id(model)
        if resolved == "auto" and inferred:
            resolved = inferred

    if resolved == "auto":
        resolved = _auto_detect_provider(api_key)

    if not api_key and not client:
        env_var = _PROVIDER_ENV_KEYS.get(resolved)
        if env_var:
            api_key = os.getenv(env_var)

    if resolved == "claude":
        from .providers.claude import ClaudeProvider

        return ClaudeProvider(api_key=api_key, model=model, client=client)
    elif resolved == "openai":
        from .providers.openai import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model, client=client)
    else:
        raise LLMError(f"Unknown provider: {resolved}. Use: claude, openai")


def _detect_provider_from_key(api_key: str) -> str | None:
    """Infer provider from API key prefix."""
    if api_key.startswith("sk-ant-"):
        return "claude"
    if api_key.startswith("sk-"):
        return "openai"
    return None


def _auto_detect_provider(api_key: str | None = None) -> str:
    """Detect provider from explicit key prefix, then env vars."""
    if api_key:
        inferred = _detect_provider_from_key(api_key)
        if inferred:
            return inferred

    for name in _AUTO_DETECT_ORDER:
        if os.getenv(_PROVIDER_ENV_KEYS[name]):
            return name
    raise LLMError("No LLM API key found. Set one of: ANTHROPIC_API_KEY, OPENAI_API_KEY")

"""LLM provider registry with lazy loading.

Usage:
    from src.generation.llm import get_provider

    provider = get_provider("openai")
    raw = provider.complete(prompt, api_key=key)
"""

import importlib

from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider

__all__ = ["SYSTEM_PROMPT", "LLMProvider", "available_providers", "get_provider"]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("src.generation.llm.anthropic", "AnthropicProvider"),
    "openai": ("src.generation.llm.openai", "OpenAIProvider"),
    "gemini": ("src.generation.llm.gemini", "GeminiProvider"),
    "ollama": ("src.generation.llm.ollama", "OllamaProvider"),
}


def get_provider(name: str) -> LLMProvider:
    """Instantiate and return an LLM provider by name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)

"""Abstract base class for LLM providers and shared logic."""

import os
from abc import ABC, abstractmethod

from src.core.errors import GenerationError

SYSTEM_PROMPT = (
    "You are a helpful assistant that writes job application emails. "
    "You output valid JSON with exactly two string fields: subject and body."
)


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The user message.
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.
            api_key: Per-call key. None falls back to ``env_var``.
            temperature: Sampling temperature.
            max_tokens: Upper bound on generated tokens.

        Raises:
            GenerationError: If no API key is available.
            ImportError: If the provider SDK is not installed.
        """

    def resolve_api_key(self, override: str | None) -> str:
        """Return the explicit key, else the environment key."""
        if override:
            return override
        env_var = self.env_var
        key = os.environ.get(env_var) if env_var else None
        if not key:
            msg = f"{env_var} is not set and no API key was provided"
            raise GenerationError(msg)
        return key

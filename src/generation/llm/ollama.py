"""Ollama local provider (OpenAI-compatible API)."""

import logging

from src.core.errors import GenerationError
from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)

_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(LLMProvider):
    """LLM provider using a local Ollama instance. Needs no API key."""

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def resolve_api_key(self, override: str | None) -> str:
        return override or "ollama"

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
        try:
            import openai
        except ImportError:
            msg = "openai is required for Ollama (OpenAI-compatible API). Install with: pip install openai"
            raise ImportError(msg) from None

        client = openai.OpenAI(base_url=_OLLAMA_BASE_URL, api_key=self.resolve_api_key(api_key))
        use_model = model or self.default_model

        logger.info("Requesting email from Ollama (%s)...", use_model)
        response = client.chat.completions.create(
            model=use_model,
            messages=[
                {"role": "system", "content": system if system is not None else SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            msg = "No content from Ollama"
            raise GenerationError(msg)
        return content  # type: ignore[no-any-return]

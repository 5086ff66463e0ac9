"""OpenAI chat completions provider (the default)."""

import logging

from src.core.errors import GenerationError
from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

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
        key = self.resolve_api_key(api_key)

        try:
            import openai
        except ImportError:
            msg = "openai is required for email generation. Install with: pip install openai"
            raise ImportError(msg) from None

        client = openai.OpenAI(api_key=key)
        use_model = model or self.default_model

        logger.info("Requesting email from OpenAI API (%s)...", use_model)
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
            msg = "No content from OpenAI"
            raise GenerationError(msg)
        return content  # type: ignore[no-any-return]

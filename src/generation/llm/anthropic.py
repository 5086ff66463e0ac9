"""Anthropic Claude provider."""

import logging

from src.core.errors import GenerationError
from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """LLM provider using the Anthropic Messages API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

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
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for email generation. "
                "Install with: pip install 'job-mailer[anthropic]'"
            )
            raise ImportError(msg) from None

        client = anthropic.Anthropic(api_key=key)
        use_model = model or self.default_model

        logger.info("Requesting email from Anthropic API (%s)...", use_model)
        message = client.messages.create(
            model=use_model,
            max_tokens=max_tokens,
            temperature=min(temperature, 1.0),
            system=system if system is not None else SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )

        if not message.content:
            msg = "No content from Anthropic"
            raise GenerationError(msg)
        return message.content[0].text  # type: ignore[union-attr]

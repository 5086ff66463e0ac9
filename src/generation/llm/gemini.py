"""Google Gemini provider (google-genai SDK)."""

import logging

from src.core.errors import GenerationError
from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """LLM provider using the Google Gemini API."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

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
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            msg = (
                "google-genai is required for email generation. "
                "Install with: pip install 'job-mailer[gemini]'"
            )
            raise ImportError(msg) from None

        use_model = model or self.default_model

        logger.info("Requesting email from Gemini API (%s)...", use_model)
        client = genai.Client(api_key=key)
        response = client.models.generate_content(
            model=use_model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system if system is not None else SYSTEM_PROMPT,
                temperature=temperature,
                max_output_tokens=max_tokens,
                response_mime_type="application/json",
            ),
        )

        if not response.text:
            msg = "No content from Gemini"
            raise GenerationError(msg)
        return response.text  # type: ignore[no-any-return]

"""Generate a personalized email (subject + body) for a job application."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from src.core.config import LLMConfig
from src.core.errors import GenerationError
from src.core.schemas import EmailContent
from src.generation.llm import get_provider
from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)

_FENCE_START = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_END = re.compile(r"\n?```\s*$")


def build_prompt(job_description: str, prompt_template: str, resume_text: str) -> str:
    """Assemble the user prompt sent to the model."""
    return (
        f"{prompt_template}\n\n"
        f"Job Description:\n{job_description}\n\n"
        f"Resume Content:\n{resume_text}\n\n"
        'Please respond ONLY with a JSON object with two fields: "subject" and "body". '
        'The "subject" should be a concise professional subject line. '
        'The "body" should be a personalized professional email body.'
    )


def _first_json_object(text: str) -> dict[str, Any] | None:
    """Return the first brace-delimited JSON object embedded in ``text``."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(obj, dict):
                return obj
        start = text.find("{", start + 1)
    return None


def parse_email_response(raw_text: str) -> EmailContent:
    """Parse model output into EmailContent.

    Accepts plain JSON, markdown-fenced JSON, or JSON surrounded by prose.

    Raises:
        GenerationError: If no valid object can be recovered.
    """
    cleaned = _FENCE_START.sub("", raw_text.strip())
    cleaned = _FENCE_END.sub("", cleaned)

    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        data = _first_json_object(raw_text)
        if data is None:
            msg = "Failed to parse JSON from AI response"
            raise GenerationError(msg) from None

    if not isinstance(data, dict):
        msg = "AI response is not a JSON object"
        raise GenerationError(msg)

    try:
        return EmailContent.model_validate(data)
    except ValidationError as e:
        msg = f"AI response does not match the email schema: {e}"
        raise GenerationError(msg) from e


class EmailGenerator:
    """Calls the configured LLM provider and validates its answer.

    Usage::

        generator = EmailGenerator(LLMConfig(provider="openai"))
        content = generator.generate(description, template, resume_text, api_key=key)
    """

    def __init__(self, config: LLMConfig, provider: LLMProvider | None = None) -> None:
        self._config = config
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_provider(self._config.provider)
        return self._provider

    def generate(
        self,
        job_description: str,
        prompt_template: str,
        resume_text: str,
        api_key: str | None = None,
    ) -> EmailContent:
        """Return the generated email for one job.

        Raises:
            GenerationError: Missing credential, provider failure, or
                unusable output.
        """
        provider = self.provider
        prompt = build_prompt(job_description, prompt_template, resume_text)
        try:
            raw = provider.complete(
                prompt,
                model=self._config.model,
                system=SYSTEM_PROMPT,
                api_key=api_key,
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
            )
        except GenerationError:
            raise
        except Exception as e:
            msg = f"{provider.provider_id} request failed: {e}"
            raise GenerationError(msg) from e

        content = parse_email_response(raw)
        logger.debug("Generated email subject: %s", content.subject)
        return content

"""Tests for email generation: prompt building, output recovery, errors."""

from unittest.mock import MagicMock

import pytest

from src.core.config import LLMConfig
from src.core.errors import GenerationError
from src.generation.generator import EmailGenerator, build_prompt, parse_email_response
from src.generation.llm.base import SYSTEM_PROMPT, LLMProvider


def _provider(raw: str = '{"subject": "Hi", "body": "Hello"}') -> MagicMock:
    provider = MagicMock(spec=LLMProvider)
    provider.provider_id = "mock"
    provider.complete.return_value = raw
    return provider


class TestBuildPrompt:
    def test_sections_in_order(self) -> None:
        prompt = build_prompt("Build APIs", "Be brief.", "Jane Doe")
        assert prompt.startswith("Be brief.\n\nJob Description:\nBuild APIs")
        assert "Resume Content:\nJane Doe" in prompt
        assert prompt.index("Job Description") < prompt.index("Resume Content")
        assert '"subject" and "body"' in prompt


class TestParseEmailResponse:
    def test_plain_json(self) -> None:
        content = parse_email_response('{"subject": "Hi", "body": "Hello"}')
        assert (content.subject, content.body) == ("Hi", "Hello")

    def test_markdown_fenced(self) -> None:
        raw = '```json\n{"subject": "Hi", "body": "Hello"}\n```'
        assert parse_email_response(raw).subject == "Hi"

    def test_embedded_in_prose(self) -> None:
        raw = 'Sure! Here you go: {"subject":"Hi","body":"Hello"} thanks'
        content = parse_email_response(raw)
        assert (content.subject, content.body) == ("Hi", "Hello")

    def test_skips_non_json_braces(self) -> None:
        raw = 'Use {name} as placeholder. {"subject": "S", "body": "B"} {done}'
        assert parse_email_response(raw).body == "B"

    def test_body_with_braces(self) -> None:
        raw = 'Result: {"subject": "S", "body": "Use {curly} braces\\nThanks"}'
        assert parse_email_response(raw).body == "Use {curly} braces\nThanks"

    def test_no_json(self) -> None:
        with pytest.raises(GenerationError, match="Failed to parse JSON"):
            parse_email_response("I cannot help with that.")

    def test_not_an_object(self) -> None:
        with pytest.raises(GenerationError, match="not a JSON object"):
            parse_email_response('["subject", "body"]')

    def test_missing_field(self) -> None:
        with pytest.raises(GenerationError, match="email schema"):
            parse_email_response('{"subject": "Hi"}')

    def test_wrong_type(self) -> None:
        with pytest.raises(GenerationError, match="email schema"):
            parse_email_response('{"subject": "Hi", "body": 42}')


class TestEmailGenerator:
    def test_generate(self) -> None:
        provider = _provider()
        generator = EmailGenerator(LLMConfig(model="m1", temperature=0.3, max_tokens=500), provider)

        content = generator.generate("desc", "template", "resume", api_key="key")

        assert content.subject == "Hi"
        args, kwargs = provider.complete.call_args
        assert "template" in args[0]
        assert kwargs == {
            "model": "m1",
            "system": SYSTEM_PROMPT,
            "api_key": "key",
            "temperature": 0.3,
            "max_tokens": 500,
        }

    def test_generation_error_passes_through(self) -> None:
        provider = _provider()
        provider.complete.side_effect = GenerationError("OPENAI_API_KEY is not set")
        generator = EmailGenerator(LLMConfig(), provider)
        with pytest.raises(GenerationError, match="OPENAI_API_KEY is not set"):
            generator.generate("d", "t", "r")

    def test_provider_exception_wrapped(self) -> None:
        provider = _provider()
        provider.complete.side_effect = ConnectionError("network down")
        generator = EmailGenerator(LLMConfig(), provider)
        with pytest.raises(GenerationError, match="mock request failed: network down"):
            generator.generate("d", "t", "r")

    def test_missing_sdk_wrapped(self) -> None:
        provider = _provider()
        provider.complete.side_effect = ImportError("openai is required")
        generator = EmailGenerator(LLMConfig(), provider)
        with pytest.raises(GenerationError, match="openai is required"):
            generator.generate("d", "t", "r")

    def test_unparseable_output(self) -> None:
        generator = EmailGenerator(LLMConfig(), _provider("no json here"))
        with pytest.raises(GenerationError):
            generator.generate("d", "t", "r")

    def test_provider_from_config(self) -> None:
        generator = EmailGenerator(LLMConfig(provider="ollama"))
        assert generator.provider.provider_id == "ollama"

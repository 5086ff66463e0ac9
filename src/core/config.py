"""Configuration models and YAML loader for the job mailer."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

ALLOWED_PROVIDERS = {"anthropic", "gemini", "ollama", "openai"}


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/jobs.db"


class LLMConfig(BaseModel):
    """Text-generation provider used to write the emails."""

    provider: str = "openai"
    model: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)

    @field_validator("provider")
    @classmethod
    def provider_known(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ALLOWED_PROVIDERS:
            msg = f"provider must be one of {sorted(ALLOWED_PROVIDERS)}, got '{v}'"
            raise ValueError(msg)
        return v


class MailConfig(BaseModel):
    """SMTP relay settings. Credentials come from the environment or CLI."""

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = Field(default=465, ge=1, le=65535)
    use_ssl: bool = True
    timeout_sec: float = Field(default=30.0, gt=0)


class ResumeConfig(BaseModel):
    """Resume and attachment download settings."""

    timeout_sec: float = Field(default=30.0, gt=0)


class ProcessingConfig(BaseModel):
    """Knobs for the trigger loops that drive the processor."""

    batch_size: int = Field(default=5, ge=1)
    busy_wait_sec: float = Field(default=2.0, ge=0.0)
    max_duration_sec: float = Field(default=60.0, gt=0)
    poll_interval_sec: float = Field(default=10.0, gt=0)
    stale_after_minutes: int | None = Field(default=None, ge=1)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    mail: MailConfig = Field(default_factory=MailConfig)
    resume: ResumeConfig = Field(default_factory=ResumeConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

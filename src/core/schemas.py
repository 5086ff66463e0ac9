"""Core data models for the job mailer."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILURE)


# queued -> processing -> {success, failure}; terminal states have no exits.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.SUCCESS, JobStatus.FAILURE}),
    JobStatus.SUCCESS: frozenset(),
    JobStatus.FAILURE: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True if moving from ``current`` to ``target`` is a legal step."""
    return target in ALLOWED_TRANSITIONS[current]


class Job(BaseModel):
    """A single email-send task as stored in the job store.

    Frozen: changes go through the store, which returns a fresh copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    recruiter_email: str
    job_description: str
    ai_prompt: str
    resume_path: str
    status: JobStatus = JobStatus.QUEUED
    email_subject: str | None = None
    email_body: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class NewJob(BaseModel):
    """Validated input for creating a job. All four fields are required."""

    recruiter_email: str
    job_description: str
    ai_prompt: str
    resume_path: str

    @field_validator("recruiter_email", "job_description", "ai_prompt", "resume_path")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("recruiter_email")
    @classmethod
    def looks_like_email(cls, v: str) -> str:
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            msg = f"not a valid email address: '{v}'"
            raise ValueError(msg)
        return v


class Credentials(BaseModel):
    """Per-invocation credential overrides.

    Anything left as None falls back to the environment.
    """

    api_key: str | None = None
    mail_user: str | None = None
    mail_password: str | None = None


class EmailContent(BaseModel):
    """Generated email: exactly a subject and a body."""

    model_config = ConfigDict(strict=True)

    subject: str
    body: str

    @field_validator("subject", "body")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v


class OutcomeKind(str, Enum):
    NO_JOBS = "no_jobs"
    ALREADY_PROCESSING = "already_processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ProcessOutcome(BaseModel):
    """Result of one processor invocation."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    job_id: str | None = None
    error: str | None = None

    @classmethod
    def no_jobs(cls) -> "ProcessOutcome":
        return cls(kind=OutcomeKind.NO_JOBS)

    @classmethod
    def already_processing(cls) -> "ProcessOutcome":
        return cls(kind=OutcomeKind.ALREADY_PROCESSING)

    @classmethod
    def succeeded(cls, job_id: str) -> "ProcessOutcome":
        return cls(kind=OutcomeKind.SUCCEEDED, job_id=job_id)

    @classmethod
    def failed(cls, job_id: str, error: str) -> "ProcessOutcome":
        return cls(kind=OutcomeKind.FAILED, job_id=job_id, error=error)

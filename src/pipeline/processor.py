"""Job processor: drives one queued job through its lifecycle per call.

Flow of ``process_next``:
  1. Single-flight guard: a job already ``processing`` means no-op
  2. Nothing queued means no-op
  3. Atomic claim of the oldest queued job (store-level, cross-process)
  4. Resolve resume text
  5. Generate subject and body
  6. Send the email with the resume attached
  7. Record ``success`` or ``failure``

Errors from steps 4-6 end up in the job, never in the caller. Store errors
propagate.
"""

import logging
import sqlite3

from src.core.config import Settings
from src.core.db import claim_next_job, count_jobs_by_status, finish_job
from src.core.errors import JobMailerError
from src.core.schemas import Credentials, Job, JobStatus, ProcessOutcome
from src.generation.generator import EmailGenerator
from src.mail.dispatcher import MailDispatcher
from src.resume.extractor import default_extractor
from src.resume.resolver import ResumeResolver

logger = logging.getLogger(__name__)


class JobProcessor:
    """Processes at most one job per ``process_next`` call.

    Collaborators default to the ones described by ``settings`` and can be
    replaced for tests or alternative backends.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        settings: Settings,
        *,
        resolver: ResumeResolver | None = None,
        generator: EmailGenerator | None = None,
        dispatcher: MailDispatcher | None = None,
    ) -> None:
        self._conn = conn
        self._settings = settings
        self._resolver = resolver or ResumeResolver(
            extractor=default_extractor(),
            timeout_sec=settings.resume.timeout_sec,
        )
        self._generator = generator or EmailGenerator(settings.llm)
        self._dispatcher = dispatcher or MailDispatcher(
            settings.mail,
            timeout_sec=settings.resume.timeout_sec,
        )

    def process_next(self, credentials: Credentials | None = None) -> ProcessOutcome:
        creds = credentials or Credentials()

        if count_jobs_by_status(self._conn, JobStatus.PROCESSING) > 0:
            logger.info("A job is already processing, skipping")
            return ProcessOutcome.already_processing()

        if count_jobs_by_status(self._conn, JobStatus.QUEUED) == 0:
            logger.debug("No queued jobs to process")
            return ProcessOutcome.no_jobs()

        job = claim_next_job(self._conn)
        if job is None:
            # Lost the race between the checks above and the claim.
            if count_jobs_by_status(self._conn, JobStatus.PROCESSING) > 0:
                logger.info("Another invocation claimed a job first, skipping")
                return ProcessOutcome.already_processing()
            return ProcessOutcome.no_jobs()

        logger.info("Processing job %s for %s", job.id, job.recruiter_email)
        return self._run(job, creds)

    def _run(self, job: Job, creds: Credentials) -> ProcessOutcome:
        try:
            resume_text = self._resolver.resolve(job.resume_path)
            content = self._generator.generate(
                job.job_description,
                job.ai_prompt,
                resume_text,
                api_key=creds.api_key,
            )
            self._dispatcher.send(
                job.recruiter_email,
                content.subject,
                content.body,
                attachment_path=job.resume_path,
                user=creds.mail_user,
                password=creds.mail_password,
            )
        except JobMailerError as e:
            logger.warning("Job %s failed: %s", job.id, e)
            return self._fail(job, str(e))
        except Exception as e:
            logger.exception("Unexpected error while processing job %s", job.id)
            return self._fail(job, f"Unexpected error: {e}")

        if not finish_job(
            self._conn,
            job.id,
            JobStatus.SUCCESS,
            email_subject=content.subject,
            email_body=content.body,
        ):
            logger.warning("Job %s was finalized elsewhere before success was recorded", job.id)
        logger.info("Job %s completed successfully", job.id)
        return ProcessOutcome.succeeded(job.id)

    def _fail(self, job: Job, error: str) -> ProcessOutcome:
        if not finish_job(self._conn, job.id, JobStatus.FAILURE, error_message=error):
            logger.warning("Job %s was finalized elsewhere before failure was recorded", job.id)
        return ProcessOutcome.failed(job.id, error)


def process_next_job(
    conn: sqlite3.Connection,
    settings: Settings,
    credentials: Credentials | None = None,
) -> ProcessOutcome:
    """Process one job with collaborators built from ``settings``."""
    return JobProcessor(conn, settings).process_next(credentials)

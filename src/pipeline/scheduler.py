"""Trigger loops around the processor: batch (cron/manual), poller, on-create.

Every trigger only ever calls ``JobProcessor.process_next``; overlapping
triggers in separate processes are safe because the claim is atomic in the
store.
"""

import logging
import sqlite3
import time
from collections.abc import Callable
from datetime import timedelta

from pydantic import BaseModel, Field

from src.core.config import ProcessingConfig
from src.core.db import fail_stale_jobs
from src.core.schemas import Credentials, OutcomeKind, ProcessOutcome
from src.pipeline.processor import JobProcessor

logger = logging.getLogger(__name__)


class BatchResult(BaseModel):
    """Summary of one batch run."""

    outcomes: list[ProcessOutcome] = Field(default_factory=list)
    timed_out: bool = False

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for o in self.outcomes if o.kind is kind)

    @property
    def succeeded(self) -> int:
        return self.count(OutcomeKind.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeKind.FAILED)


def run_batch(
    processor: JobProcessor,
    config: ProcessingConfig,
    credentials: Credentials | None = None,
    *,
    max_jobs: int | None = None,
    stop_when_busy: bool = False,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResult:
    """Call the processor up to ``max_jobs`` times (default ``batch_size``).

    Stops on NO_JOBS. On ALREADY_PROCESSING either stops (manual trigger,
    ``stop_when_busy``) or waits ``busy_wait_sec`` and tries again (cron).
    Never starts a new call once ``max_duration_sec`` has elapsed.
    """
    limit = max_jobs if max_jobs is not None else config.batch_size
    deadline = clock() + config.max_duration_sec
    outcomes: list[ProcessOutcome] = []

    for _ in range(limit):
        if clock() >= deadline:
            logger.warning(
                "Batch stopped after %.0fs; remaining jobs are left for the next trigger",
                config.max_duration_sec,
            )
            return BatchResult(outcomes=outcomes, timed_out=True)

        outcome = processor.process_next(credentials)
        outcomes.append(outcome)

        if outcome.kind is OutcomeKind.NO_JOBS:
            logger.info("No more jobs to process")
            break
        if outcome.kind is OutcomeKind.ALREADY_PROCESSING:
            if stop_when_busy:
                logger.info("Job already processing, stopping")
                break
            logger.info("Job already processing, waiting %.1fs", config.busy_wait_sec)
            sleep(min(config.busy_wait_sec, max(0.0, deadline - clock())))
            continue
        if outcome.kind is OutcomeKind.SUCCEEDED:
            logger.info("Job processed successfully: %s", outcome.job_id)
        else:
            logger.info("Job %s failed: %s", outcome.job_id, outcome.error)

    return BatchResult(outcomes=outcomes)


def watch(
    processor: JobProcessor,
    config: ProcessingConfig,
    credentials: Credentials | None = None,
    *,
    max_iterations: int | None = None,
    before_poll: Callable[[], object] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[ProcessOutcome]:
    """Poll the processor every ``poll_interval_sec`` until interrupted.

    ``max_iterations`` bounds the loop (None runs forever). ``before_poll``
    runs ahead of every poll, e.g. stale recovery. Returns the outcomes of
    every poll that did something other than NO_JOBS.
    """
    outcomes: list[ProcessOutcome] = []
    iteration = 0
    logger.info("Polling for jobs every %.0fs", config.poll_interval_sec)
    try:
        while max_iterations is None or iteration < max_iterations:
            iteration += 1
            if before_poll is not None:
                before_poll()
            outcome = processor.process_next(credentials)
            if outcome.kind is not OutcomeKind.NO_JOBS:
                outcomes.append(outcome)
                logger.info("Poll %d: %s %s", iteration, outcome.kind.value, outcome.job_id or "")
            if max_iterations is not None and iteration >= max_iterations:
                break
            sleep(config.poll_interval_sec)
    except KeyboardInterrupt:
        logger.info("Polling stopped")
    return outcomes


def recover_stale(conn: sqlite3.Connection, minutes: int) -> list[str]:
    """Fail jobs stuck in ``processing`` for longer than ``minutes``."""
    failed = fail_stale_jobs(conn, timedelta(minutes=minutes))
    for job_id in failed:
        logger.warning("Failed stale job %s (processing > %d min)", job_id, minutes)
    return failed

"""CLI entry point for the job mailer."""

import argparse
import json
import logging
import sqlite3
import sys
from datetime import date
from functools import partial
from pathlib import Path

from pydantic import ValidationError

from src.core.config import Settings
from src.core.db import (
    create_job,
    get_job,
    init_db,
    list_jobs,
    list_jobs_by_date,
    list_jobs_by_status,
    list_today_jobs,
)
from src.core.errors import JobMailerError
from src.core.schemas import Credentials, Job, JobStatus, NewJob, ProcessOutcome
from src.pipeline.processor import JobProcessor
from src.pipeline.scheduler import recover_stale, run_batch, watch

DEFAULT_CONFIG = "config/settings.yaml"


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def _add_credentials(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--api-key", help="LLM API key (default: provider env var)")
    parser.add_argument("--mail-user", help="SMTP user (default: GMAIL_USER)")
    parser.add_argument("--mail-password", help="SMTP app password (default: GMAIL_APP_PASSWORD)")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job mailer - queue, generate and send job application emails",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- create ---
    create_parser = subparsers.add_parser("create", help="Queue a new job")
    _add_common(create_parser)
    _add_credentials(create_parser)
    create_parser.add_argument("--recruiter-email", required=True)
    create_parser.add_argument("--job-description", required=True)
    create_parser.add_argument("--prompt", required=True, help="AI prompt template")
    create_parser.add_argument("--resume", required=True, help="Resume URL or local path")
    create_parser.add_argument(
        "--process",
        action="store_true",
        help="Process the next job right after queueing (on-create trigger)",
    )

    # --- process (manual trigger) ---
    process_parser = subparsers.add_parser("process", help="Process queued jobs now")
    _add_common(process_parser)
    _add_credentials(process_parser)
    process_parser.add_argument(
        "--max-jobs", type=int, default=1, help="Maximum jobs to process (default: 1)",
    )

    # --- cron (scheduled batch) ---
    cron_parser = subparsers.add_parser("cron", help="Scheduled batch run")
    _add_common(cron_parser)
    _add_credentials(cron_parser)

    # --- watch (timed poller) ---
    watch_parser = subparsers.add_parser("watch", help="Poll for jobs until interrupted")
    _add_common(watch_parser)
    _add_credentials(watch_parser)
    watch_parser.add_argument(
        "--iterations", type=int, default=None, help="Stop after N polls",
    )

    # --- status ---
    status_parser = subparsers.add_parser("status", help="Show a single job")
    _add_common(status_parser)
    status_parser.add_argument("job_id")

    # --- list ---
    list_parser = subparsers.add_parser("list", help="List jobs")
    _add_common(list_parser)
    day_group = list_parser.add_mutually_exclusive_group()
    day_group.add_argument("--date", help="Daily partition to list (YYYY-MM-DD)")
    day_group.add_argument("--today", action="store_true", help="List today's partition")
    list_parser.add_argument("--status", choices=[s.value for s in JobStatus])
    list_parser.add_argument("--limit", type=int, default=50)
    list_parser.add_argument("--export", choices=["json"], help="Export results to format (json)")

    # --- recover-stale ---
    stale_parser = subparsers.add_parser(
        "recover-stale", help="Fail jobs stuck in processing",
    )
    _add_common(stale_parser)
    stale_parser.add_argument(
        "--minutes", type=int, default=None,
        help="Staleness threshold (default: processing.stale_after_minutes or 30)",
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Load YAML settings; the default path may be absent and yields defaults."""
    if path == DEFAULT_CONFIG and not Path(path).exists():
        return Settings()
    return Settings.from_yaml(path)


def _credentials(args: argparse.Namespace) -> Credentials:
    return Credentials(
        api_key=args.api_key,
        mail_user=args.mail_user,
        mail_password=args.mail_password,
    )


def _print_job(job: Job) -> None:
    print(f"{job.id}  [{job.status.value}]  {job.recruiter_email}  created {job.created_at:%Y-%m-%d %H:%M:%S}")
    if job.email_subject:
        print(f"  Subject: {job.email_subject}")
    if job.error_message:
        print(f"  Error: {job.error_message}")


def cmd_create(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    new_job = NewJob(
        recruiter_email=args.recruiter_email,
        job_description=args.job_description,
        ai_prompt=args.prompt,
        resume_path=args.resume,
    )
    job = create_job(conn, new_job)
    print(f"Queued job {job.id}")

    if args.process:
        outcome = JobProcessor(conn, settings).process_next(_credentials(args))
        print(f"Processing result: {outcome.kind.value} {outcome.job_id or ''}".rstrip())


def cmd_process(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    processor = JobProcessor(conn, settings)
    result = run_batch(
        processor,
        settings.processing,
        _credentials(args),
        max_jobs=args.max_jobs,
        stop_when_busy=True,
    )
    _print_batch(result.outcomes)


def cmd_cron(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    stale_minutes = settings.processing.stale_after_minutes
    if stale_minutes is not None:
        recover_stale(conn, stale_minutes)
    processor = JobProcessor(conn, settings)
    result = run_batch(processor, settings.processing, _credentials(args))
    _print_batch(result.outcomes)
    if result.timed_out:
        print("Time budget exhausted; remaining jobs are left for the next run.")


def cmd_watch(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    stale_minutes = settings.processing.stale_after_minutes
    before_poll = None
    if stale_minutes is not None:
        before_poll = partial(recover_stale, conn, stale_minutes)

    processor = JobProcessor(conn, settings)
    outcomes = watch(
        processor,
        settings.processing,
        _credentials(args),
        max_iterations=args.iterations,
        before_poll=before_poll,
    )
    _print_batch(outcomes)


def cmd_status(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    job = get_job(conn, args.job_id)
    _print_job(job)
    if job.email_body:
        print()
        print(job.email_body)


def cmd_list(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    if args.today:
        jobs = list_today_jobs(conn)
    elif args.date:
        jobs = list_jobs_by_date(conn, date.fromisoformat(args.date))
    elif args.status:
        jobs = list_jobs_by_status(conn, JobStatus(args.status))
    else:
        jobs = list_jobs(conn, limit=args.limit)
    if (args.today or args.date) and args.status:
        jobs = [j for j in jobs if j.status.value == args.status]

    if args.export == "json":
        print(export_jobs_json(jobs))
        return

    print(f"{len(jobs)} job(s)")
    for job in jobs:
        _print_job(job)


def cmd_recover_stale(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> None:
    minutes = args.minutes or settings.processing.stale_after_minutes or 30
    failed = recover_stale(conn, minutes)
    print(f"Failed {len(failed)} stale job(s)")


def export_jobs_json(jobs: list[Job]) -> str:
    """Export jobs as a JSON string."""
    return json.dumps([job.model_dump(mode="json") for job in jobs], indent=2)


def _print_batch(outcomes: list[ProcessOutcome]) -> None:
    print(f"{len(outcomes)} invocation(s)")
    for outcome in outcomes:
        line = f"  {outcome.kind.value}"
        if outcome.job_id:
            line += f" {outcome.job_id}"
        if outcome.error:
            line += f": {outcome.error}"
        print(line)


_COMMANDS = {
    "create": cmd_create,
    "process": cmd_process,
    "cron": cmd_cron,
    "watch": cmd_watch,
    "status": cmd_status,
    "list": cmd_list,
    "recover-stale": cmd_recover_stale,
}


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    conn: sqlite3.Connection | None = None
    try:
        conn = init_db(settings.database.path)
        _COMMANDS[args.command](args, settings, conn)
    except (JobMailerError, ValidationError, ValueError, OSError, sqlite3.Error) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if conn is not None:
            conn.close()


if __name__ == "__main__":
    main()

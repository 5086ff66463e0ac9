"""SQLite job store: creation, lookups, atomic claim and terminal writes.

Jobs are partitioned by the UTC day they were created (``created_date``).
Status queries always span every partition so that a job left in
``processing`` on a previous day still blocks new work.
"""

import sqlite3
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from src.core.errors import InvalidTransitionError, JobNotFoundError
from src.core.schemas import Job, JobStatus, NewJob, can_transition

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id              TEXT PRIMARY KEY,
    recruiter_email TEXT NOT NULL,
    job_description TEXT NOT NULL,
    ai_prompt       TEXT NOT NULL,
    resume_path     TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'queued',
    email_subject   TEXT,
    email_body      TEXT,
    error_message   TEXT,
    created_date    TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
"""

_STATUS_INDEX = "CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs (status, created_at);"
_DATE_INDEX = "CREATE INDEX IF NOT EXISTS idx_jobs_created_date ON jobs (created_date);"

_UPDATABLE_FIELDS = {"status", "email_subject", "email_body", "error_message"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    # Fixed precision keeps lexical and chronological order identical.
    return value.isoformat(timespec="microseconds")


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        recruiter_email=row["recruiter_email"],
        job_description=row["job_description"],
        ai_prompt=row["ai_prompt"],
        resume_path=row["resume_path"],
        status=JobStatus(row["status"]),
        email_subject=row["email_subject"],
        email_body=row["email_body"],
        error_message=row["error_message"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOBS_TABLE)
    conn.execute(_STATUS_INDEX)
    conn.execute(_DATE_INDEX)
    conn.commit()
    return conn


def create_job(
    conn: sqlite3.Connection,
    new_job: NewJob,
    created_at: datetime | None = None,
) -> Job:
    """Insert a new queued job and return it."""
    created = created_at or _now()
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    created = created.astimezone(timezone.utc)
    job_id = uuid.uuid4().hex
    conn.execute(
        """
        INSERT INTO jobs
            (id, recruiter_email, job_description, ai_prompt, resume_path,
             status, created_date, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            job_id,
            new_job.recruiter_email,
            new_job.job_description,
            new_job.ai_prompt,
            new_job.resume_path,
            JobStatus.QUEUED.value,
            created.date().isoformat(),
            _ts(created),
            _ts(created),
        ),
    )
    conn.commit()
    return get_job(conn, job_id)


def get_job(conn: sqlite3.Connection, job_id: str) -> Job:
    """Return a job by id, raising JobNotFoundError if it does not exist."""
    row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
    if row is None:
        msg = f"Job not found: {job_id}"
        raise JobNotFoundError(msg)
    return _row_to_job(row)


def list_jobs_by_status(conn: sqlite3.Connection, status: JobStatus) -> list[Job]:
    """Return every job with the given status, oldest first, across all days."""
    rows = conn.execute(
        "SELECT * FROM jobs WHERE status = ? ORDER BY created_at, id",
        (status.value,),
    ).fetchall()
    return [_row_to_job(r) for r in rows]


def count_jobs_by_status(conn: sqlite3.Connection, status: JobStatus) -> int:
    row = conn.execute(
        "SELECT COUNT(*) FROM jobs WHERE status = ?", (status.value,)
    ).fetchone()
    return int(row[0])


def list_jobs_by_date(conn: sqlite3.Connection, target_date: date) -> list[Job]:
    """Return the jobs of one daily partition, oldest first."""
    rows = conn.execute(
        "SELECT * FROM jobs WHERE created_date = ? ORDER BY created_at, id",
        (target_date.isoformat(),),
    ).fetchall()
    return [_row_to_job(r) for r in rows]


def list_today_jobs(conn: sqlite3.Connection) -> list[Job]:
    return list_jobs_by_date(conn, _now().date())


def list_jobs(conn: sqlite3.Connection, limit: int = 50) -> list[Job]:
    """Return the most recent jobs, newest first."""
    rows = conn.execute(
        "SELECT * FROM jobs ORDER BY created_at DESC, id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [_row_to_job(r) for r in rows]


def update_job(conn: sqlite3.Connection, job_id: str, **fields: Any) -> Job:
    """Merge ``fields`` into a job and refresh ``updated_at``.

    A status change must follow the job lifecycle; anything else raises
    InvalidTransitionError.
    """
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        msg = f"Cannot update job fields: {sorted(unknown)}"
        raise ValueError(msg)

    current = get_job(conn, job_id)
    if current.status.is_terminal:
        msg = f"Job {job_id} is {current.status.value} and can no longer change"
        raise InvalidTransitionError(msg)

    if "status" in fields:
        target = JobStatus(fields["status"])
        if target != current.status and not can_transition(current.status, target):
            msg = f"Illegal transition {current.status.value} -> {target.value} for job {job_id}"
            raise InvalidTransitionError(msg)
        fields["status"] = target.value

    assignments = ", ".join(f"{name} = ?" for name in fields)
    params = [*fields.values(), _ts(_now()), job_id]
    conn.execute(
        f"UPDATE jobs SET {assignments}, updated_at = ? WHERE id = ?",  # noqa: S608
        params,
    )
    conn.commit()
    return get_job(conn, job_id)


def claim_next_job(conn: sqlite3.Connection) -> Job | None:
    """Atomically move the oldest queued job to ``processing``.

    The check for an existing ``processing`` job and the claiming write run
    in one ``BEGIN IMMEDIATE`` transaction, so concurrent callers on separate
    connections cannot both claim. Returns None when a job is already
    processing or nothing is queued.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        busy = conn.execute(
            "SELECT 1 FROM jobs WHERE status = ? LIMIT 1",
            (JobStatus.PROCESSING.value,),
        ).fetchone()
        if busy is not None:
            conn.rollback()
            return None

        row = conn.execute(
            "SELECT id FROM jobs WHERE status = ? ORDER BY created_at, id LIMIT 1",
            (JobStatus.QUEUED.value,),
        ).fetchone()
        if row is None:
            conn.rollback()
            return None

        conn.execute(
            "UPDATE jobs SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (JobStatus.PROCESSING.value, _ts(_now()), row["id"], JobStatus.QUEUED.value),
        )
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    return get_job(conn, row["id"])


def finish_job(
    conn: sqlite3.Connection,
    job_id: str,
    status: JobStatus,
    *,
    email_subject: str | None = None,
    email_body: str | None = None,
    error_message: str | None = None,
) -> bool:
    """Write a terminal state, only if the job is still ``processing``.

    Returns True if the row was updated.
    """
    if not status.is_terminal:
        msg = f"finish_job needs a terminal status, got {status.value}"
        raise InvalidTransitionError(msg)
    if status is JobStatus.SUCCESS:
        error_message = None
    else:
        email_subject = None
        email_body = None

    cursor = conn.execute(
        """
        UPDATE jobs
        SET status = ?, email_subject = ?, email_body = ?, error_message = ?,
            updated_at = ?
        WHERE id = ? AND status = ?
        """,
        (
            status.value,
            email_subject,
            email_body,
            error_message,
            _ts(_now()),
            job_id,
            JobStatus.PROCESSING.value,
        ),
    )
    conn.commit()
    return cursor.rowcount == 1


def fail_stale_jobs(
    conn: sqlite3.Connection,
    older_than: timedelta,
    now: datetime | None = None,
) -> list[str]:
    """Fail ``processing`` jobs whose last update is older than ``older_than``.

    Returns the ids of the jobs that were failed.
    """
    cutoff = _ts((now or _now()) - older_than)
    rows = conn.execute(
        "SELECT id FROM jobs WHERE status = ? AND updated_at < ?",
        (JobStatus.PROCESSING.value, cutoff),
    ).fetchall()
    failed: list[str] = []
    for row in rows:
        minutes = int(older_than.total_seconds() // 60)
        if finish_job(
            conn,
            row["id"],
            JobStatus.FAILURE,
            error_message=f"Job was stale: processing for more than {minutes} minutes",
        ):
            failed.append(row["id"])
    return failed

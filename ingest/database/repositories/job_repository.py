from typing import Any

import psycopg
from psycopg.rows import dict_row

from ingest.database.connection import get_connection
from ingest.database.models import JobRecord

_JOB_COLUMNS = """
    id, uploaded_document_id, reprocess, status, attempts,
    error_message, locked_at, created_at, updated_at
"""


def _row_to_job(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        uploaded_document_id=row["uploaded_document_id"],
        reprocess=row["reprocess"],
        status=row["status"],
        attempts=row["attempts"],
        error_message=row["error_message"],
        locked_at=row["locked_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class JobRepository:
    """The ingest_jobs queue.

    A job only says "run the pipeline for this document"; the outcome of
    the run lives on the document. Job status tracks delivery:
    pending -> processing -> done, or failed after max_attempts.
    """

    def __init__(self, max_attempts: int) -> None:
        self._max_attempts = max_attempts

    def enqueue(
        self, conn: psycopg.Connection[Any], uploaded_document_id: int, reprocess: bool = False
    ) -> int:
        """Insert a pending job on the caller's connection. Caller commits."""
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO ingest_jobs (uploaded_document_id, reprocess)
                VALUES (%s, %s)
                RETURNING id
                """,
                (uploaded_document_id, reprocess),
            )
            row = cur.fetchone()
        if row is None:
            raise RuntimeError("INSERT into ingest_jobs returned no row")
        return int(row[0])

    def claim_next_job(self, conn: psycopg.Connection[Any]) -> JobRecord | None:
        """Lock the oldest pending job and move it to processing in one statement.

        Rows locked by another worker are skipped, so concurrent workers
        never claim the same job.
        """
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                UPDATE ingest_jobs
                SET status = 'processing', locked_at = NOW(), updated_at = NOW()
                WHERE id = (
                    SELECT id
                    FROM ingest_jobs
                    WHERE status = 'pending'
                      AND attempts < %s
                    ORDER BY created_at, id
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING {_JOB_COLUMNS}
                """,
                (self._max_attempts,),
            )
            row = cur.fetchone()
        conn.commit()
        return _row_to_job(row) if row is not None else None

    def mark_done(self, job_id: int) -> None:
        self._update(job_id, "status = 'done'", ())

    def mark_failed(self, job_id: int, error: str) -> None:
        """Give up on a job for good."""
        self._update(job_id, "status = 'failed', error_message = %s", (error,))

    def increment_attempts(self, job_id: int) -> None:
        """Count the attempt and put the job back in the queue."""
        self._update(
            job_id,
            "attempts = attempts + 1, status = 'pending', locked_at = NULL",
            (),
        )

    def find_by_id(self, job_id: int) -> JobRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_JOB_COLUMNS} FROM ingest_jobs WHERE id = %s",
                    (job_id,),
                )
                row = cur.fetchone()
        return _row_to_job(row) if row is not None else None

    def _update(self, job_id: int, assignments: str, params: tuple[Any, ...]) -> None:
        with get_connection() as conn:
            conn.execute(
                f"UPDATE ingest_jobs SET {assignments}, updated_at = NOW() WHERE id = %s",
                (*params, job_id),
            )
            conn.commit()

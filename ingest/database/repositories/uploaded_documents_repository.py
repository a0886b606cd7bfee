import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ingest.database.connection import get_connection
from ingest.processor.exceptions import DocumentNotFoundError, RunAbortedError
from ingest.processor.models import DocumentKind, DocumentStatus, LastError, UploadedDocument

_COLUMNS = """
    id, user_id, kind, status, storage_disk, storage_path, original_filename,
    content_type, file_size_bytes, account_id, transaction_id, bank_name,
    period_start, period_end, description, tags, extracted_text, extracted_data,
    statement_info, pdf_metadata,
    processing_message, error_kind, error_detail, scan_verdict, scanned_at,
    is_deleted, processed_at, created_at, updated_at
"""


@dataclass(frozen=True)
class NewDocument:
    user_id: int
    kind: str
    storage_disk: str
    storage_path: str
    original_filename: str
    content_type: str
    file_size_bytes: int
    account_id: int | None = None
    transaction_id: int | None = None
    bank_name: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    description: str | None = None
    tags: str | None = None


def _row_to_document(row: dict[str, Any]) -> UploadedDocument:
    last_error = None
    if row["error_kind"] is not None:
        last_error = LastError(kind=row["error_kind"], detail=row["error_detail"] or "")
    return UploadedDocument(
        id=row["id"],
        user_id=row["user_id"],
        kind=row["kind"],
        status=row["status"],
        storage_disk=row["storage_disk"],
        storage_path=row["storage_path"],
        original_filename=row["original_filename"],
        content_type=row["content_type"],
        file_size_bytes=row["file_size_bytes"],
        account_id=row["account_id"],
        transaction_id=row["transaction_id"],
        bank_name=row["bank_name"],
        period_start=row["period_start"],
        period_end=row["period_end"],
        description=row["description"],
        tags=row["tags"],
        extracted_text=row["extracted_text"],
        extracted_data=row["extracted_data"],
        statement_info=row["statement_info"],
        pdf_metadata=row["pdf_metadata"],
        processing_message=row["processing_message"],
        last_error=last_error,
        scan_verdict=row["scan_verdict"],
        scanned_at=row["scanned_at"],
        is_deleted=row["is_deleted"],
        processed_at=row["processed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UploadedDocumentsRepository:
    """Database operations for the uploaded_documents table.

    Every status change is a conditional UPDATE on the current status, so
    concurrent writers cannot both win the same transition. Writes made
    during a run also match the run id handed out by the claim, so a run
    that was reaped and superseded cannot touch its successor's state.
    """

    def find_by_id(self, document_id: int) -> UploadedDocument:
        """Find a live (not soft-deleted) document by ID.

        Raises:
            DocumentNotFoundError: if no such document exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM uploaded_documents
                    WHERE id = %s AND is_deleted = FALSE
                    """,
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _row_to_document(row)

    def insert(self, conn: psycopg.Connection[Any], document: NewDocument) -> UploadedDocument:
        """Insert a new document in ``Uploaded`` state. Caller commits."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                INSERT INTO uploaded_documents
                (user_id, kind, status, storage_disk, storage_path, original_filename,
                 content_type, file_size_bytes, account_id, transaction_id, bank_name,
                 period_start, period_end, description, tags, processing_message)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {_COLUMNS}
                """,
                (
                    document.user_id,
                    document.kind,
                    DocumentStatus.UPLOADED,
                    document.storage_disk,
                    document.storage_path,
                    document.original_filename,
                    document.content_type,
                    document.file_size_bytes,
                    document.account_id,
                    document.transaction_id,
                    document.bank_name,
                    document.period_start,
                    document.period_end,
                    document.description,
                    document.tags,
                    "Waiting for processing",
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise RuntimeError("INSERT into uploaded_documents returned no row")
        return _row_to_document(row)

    def has_recent_upload(
        self, user_id: int, filename: str, file_size_bytes: int, window_minutes: int
    ) -> bool:
        """True if the same user uploaded the same name and size inside the window."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1
                    FROM uploaded_documents
                    WHERE user_id = %s
                      AND original_filename = %s
                      AND file_size_bytes = %s
                      AND is_deleted = FALSE
                      AND created_at > NOW() - make_interval(mins => %s)
                    LIMIT 1
                    """,
                    (user_id, filename, file_size_bytes, window_minutes),
                )
                return cur.fetchone() is not None

    def claim_for_processing(
        self, document_id: int, allowed_from: tuple[str, ...]
    ) -> uuid.UUID | None:
        """Atomically move a document into ``Processing`` under a fresh run id.

        Returns the run id, or None if the document is not in one of
        ``allowed_from``, which means another run owns it or it is already
        terminal. Every later write of the run must present this id; once
        the reaper or a reprocess claim replaces it, those writes miss.
        """
        run_id = uuid.uuid4()
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE uploaded_documents
                    SET status = %s,
                        run_id = %s,
                        processing_message = 'Processing started',
                        error_kind = NULL,
                        error_detail = NULL,
                        processing_started_at = NOW(),
                        updated_at = NOW()
                    WHERE id = %s
                      AND is_deleted = FALSE
                      AND status = ANY(%s)
                    RETURNING id
                    """,
                    (DocumentStatus.PROCESSING, run_id, document_id, list(allowed_from)),
                )
                claimed = cur.fetchone() is not None
            conn.commit()
        return run_id if claimed else None

    def update_scan_result(
        self, document_id: int, run_id: uuid.UUID, verdict: str, scanned_at: datetime
    ) -> None:
        """Record the scan verdict of the current run.

        Raises:
            RunAbortedError: if the run no longer owns the document.
        """
        self._update_while_processing(
            document_id,
            run_id,
            "scan_verdict = %s, scanned_at = %s, processing_message = 'Scanned'",
            (verdict, scanned_at),
        )

    def update_extracted_text(
        self,
        document_id: int,
        run_id: uuid.UUID,
        extracted_text: str,
        pdf_metadata: dict[str, Any] | None = None,
    ) -> None:
        """Persist the extracted text and PDF metadata of the current run.

        Raises:
            RunAbortedError: if the run no longer owns the document.
        """
        self._update_while_processing(
            document_id,
            run_id,
            "extracted_text = %s, pdf_metadata = %s, processing_message = 'Text extracted'",
            (extracted_text, Jsonb(pdf_metadata) if pdf_metadata is not None else None),
        )

    def mark_processed(
        self,
        document_id: int,
        run_id: uuid.UUID,
        message: str,
        extracted_data: dict[str, Any] | None = None,
        statement_info: dict[str, Any] | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> bool:
        """``Processing -> Processed``. The uploader's period wins over a parsed one."""
        return self._finish(
            document_id,
            run_id,
            DocumentStatus.PROCESSED,
            """
            processing_message = %s,
            extracted_data = %s,
            statement_info = %s,
            period_start = COALESCE(period_start, %s),
            period_end = COALESCE(period_end, %s),
            processed_at = NOW()
            """,
            (
                message,
                Jsonb(extracted_data) if extracted_data is not None else None,
                Jsonb(statement_info) if statement_info is not None else None,
                period_start,
                period_end,
            ),
        )

    def mark_failed(
        self, document_id: int, run_id: uuid.UUID, message: str, error: LastError
    ) -> bool:
        """``Processing -> Failed``. Any partial extracted_data is dropped."""
        return self._finish(
            document_id,
            run_id,
            DocumentStatus.FAILED,
            "processing_message = %s, error_kind = %s, error_detail = %s, extracted_data = NULL",
            (message, error.kind, error.detail),
        )

    def mark_virus_detected(
        self,
        document_id: int,
        run_id: uuid.UUID,
        message: str,
        error: LastError,
        verdict: str,
    ) -> bool:
        """``Processing -> VirusDetected``."""
        return self._finish(
            document_id,
            run_id,
            DocumentStatus.VIRUS_DETECTED,
            """
            processing_message = %s, error_kind = %s, error_detail = %s,
            scan_verdict = %s, scanned_at = NOW(), extracted_data = NULL
            """,
            (message, error.kind, error.detail, verdict),
        )

    def mark_imported(
        self, document_id: int, message: str, extracted_data: dict[str, Any]
    ) -> bool:
        """``Processed -> Imported``, only for bank statements."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE uploaded_documents
                    SET status = %s,
                        processing_message = %s,
                        extracted_data = %s,
                        updated_at = NOW()
                    WHERE id = %s
                      AND is_deleted = FALSE
                      AND status = %s
                      AND kind = %s
                    """,
                    (
                        DocumentStatus.IMPORTED,
                        message,
                        Jsonb(extracted_data),
                        document_id,
                        DocumentStatus.PROCESSED,
                        DocumentKind.BANK_STATEMENT,
                    ),
                )
                updated = cur.rowcount > 0
            conn.commit()
        return updated

    def fail_stale_processing(self, timeout_seconds: int) -> list[int]:
        """Fail documents stuck in ``Processing`` longer than the time budget."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE uploaded_documents
                    SET status = %s,
                        processing_message = 'Processing timed out',
                        error_kind = 'Timeout',
                        error_detail = %s,
                        extracted_data = NULL,
                        run_id = NULL,
                        updated_at = NOW()
                    WHERE status = %s
                      AND processing_started_at < NOW() - make_interval(secs => %s)
                    RETURNING id
                    """,
                    (
                        DocumentStatus.FAILED,
                        f"No result within {timeout_seconds} seconds",
                        DocumentStatus.PROCESSING,
                        timeout_seconds,
                    ),
                )
                ids = [row[0] for row in cur.fetchall()]
            conn.commit()
        return ids

    def soft_delete(self, document_id: int, user_id: int) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE uploaded_documents
                    SET is_deleted = TRUE, updated_at = NOW()
                    WHERE id = %s AND user_id = %s AND is_deleted = FALSE
                    """,
                    (document_id, user_id),
                )
                deleted = cur.rowcount > 0
            conn.commit()
        return deleted

    def _update_while_processing(
        self,
        document_id: int,
        run_id: uuid.UUID,
        assignments: str,
        params: tuple[Any, ...],
    ) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE uploaded_documents
                    SET {assignments}, updated_at = NOW()
                    WHERE id = %s AND status = %s AND run_id = %s
                    """,
                    (*params, document_id, DocumentStatus.PROCESSING, run_id),
                )
                if cur.rowcount == 0:
                    raise RunAbortedError(
                        f"Document {document_id} is no longer processing under run {run_id}"
                    )
            conn.commit()

    def _finish(
        self,
        document_id: int,
        run_id: uuid.UUID,
        status: str,
        assignments: str,
        params: tuple[Any, ...],
    ) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE uploaded_documents
                    SET status = %s, {assignments}, updated_at = NOW()
                    WHERE id = %s AND status = %s AND run_id = %s
                    """,
                    (status, *params, document_id, DocumentStatus.PROCESSING, run_id),
                )
                finished = cur.rowcount > 0
            conn.commit()
        return finished

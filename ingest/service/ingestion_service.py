from datetime import date
from decimal import Decimal
from pathlib import Path

from ingest.categorization.learning import KeywordLearner
from ingest.categorization.models import CategorySuggestion, KeywordUpdate
from ingest.categorization.suggester import CategorySuggester, build_category_suggester
from ingest.config.settings import Settings
from ingest.database.connection import get_connection
from ingest.database.repositories.job_repository import JobRepository
from ingest.database.repositories.ledger_repository import LedgerRepository
from ingest.database.repositories.uploaded_documents_repository import (
    NewDocument,
    UploadedDocumentsRepository,
)
from ingest.duplicates.detector import build_duplicate_detector
from ingest.logging.logger import Log
from ingest.parsing.exceptions import PayloadValidationError
from ingest.parsing.models import ExtractedTransaction, TransactionType
from ingest.parsing.serializer import from_payload
from ingest.processor.exceptions import DocumentNotFoundError
from ingest.processor.models import DocumentStatus, UploadedDocument
from ingest.service.exceptions import InvalidStateError, PreviewNotAvailableError, UploadValidationError
from ingest.service.import_executor import ImportExecutor
from ingest.service.models import (
    ImportOptions,
    ImportResult,
    PreviewTotals,
    ProcessingStatus,
    StatementPreview,
    UploadMetadata,
)
from ingest.service.validation import normalize_tags, validate_upload
from ingest.storage.blob_store import BaseBlobStore, build_blob_store

ZERO = Decimal("0.00")


class IngestionService:
    """Operations the API layer calls.

    Uploads return as soon as the document row and its job are committed;
    the worker process does the rest.
    """

    def __init__(
        self,
        settings: Settings,
        doc_repo: UploadedDocumentsRepository,
        job_repo: JobRepository,
        blob_store: BaseBlobStore,
        import_executor: ImportExecutor,
        suggester: CategorySuggester,
        learner: KeywordLearner,
    ) -> None:
        self._settings = settings
        self._doc_repo = doc_repo
        self._job_repo = job_repo
        self._blob_store = blob_store
        self._import_executor = import_executor
        self._suggester = suggester
        self._learner = learner

    def upload_document(
        self, content: bytes, metadata: UploadMetadata, today: date | None = None
    ) -> UploadedDocument:
        """Validate, store and enqueue an upload.

        Raises:
            UploadValidationError: nothing is stored and no job is queued.
        """
        validate_upload(content, metadata, self._settings, today or date.today())
        if self._doc_repo.has_recent_upload(
            metadata.user_id,
            metadata.filename,
            len(content),
            self._settings.duplicate_upload_window_minutes,
        ):
            raise UploadValidationError(
                ["This file was already uploaded recently. Please wait before uploading it again."]
            )

        path = self._blob_store.store(content, metadata.filename, metadata.kind, metadata.user_id)
        new_document = NewDocument(
            user_id=metadata.user_id,
            kind=metadata.kind,
            storage_disk=self._settings.storage_disk,
            storage_path=path,
            original_filename=metadata.filename,
            content_type=metadata.content_type,
            file_size_bytes=len(content),
            account_id=metadata.account_id,
            transaction_id=metadata.transaction_id,
            bank_name=metadata.bank_name.strip() if metadata.bank_name else None,
            period_start=metadata.period_start,
            period_end=metadata.period_end,
            description=(metadata.description or "").strip() or None,
            tags=normalize_tags(metadata.tags),
        )
        try:
            with get_connection() as conn:
                document = self._doc_repo.insert(conn, new_document)
                job_id = self._job_repo.enqueue(conn, document.id)
                conn.commit()
        except Exception:
            self._blob_store.delete(path)
            raise

        Log.info(
            f"Uploaded {metadata.kind} document {document.id} for user {metadata.user_id} "
            f"({len(content)} bytes), job {job_id} queued"
        )
        return document

    def get_preview(self, user_id: int, document_id: int) -> StatementPreview:
        document = self._owned_document(user_id, document_id)
        if not document.is_statement or document.status != DocumentStatus.PROCESSED:
            raise PreviewNotAvailableError(
                f"Preview is only available for processed bank statements "
                f"(document {document_id} is a {document.status} {document.kind})"
            )
        try:
            payload = from_payload(document.extracted_data)
        except PayloadValidationError as exc:
            raise PreviewNotAvailableError(
                f"Stored transactions for document {document_id} are unreadable"
            ) from exc

        duplicates = sum(1 for t in payload.transactions if t.is_duplicate)
        return StatementPreview(
            document_id=document.id,
            filename=document.original_filename,
            bank_name=document.bank_name,
            period_start=document.period_start,
            period_end=document.period_end,
            transactions=payload.transactions,
            totals=_totals(payload.transactions),
            duplicate_count=duplicates,
            new_count=len(payload.transactions) - duplicates,
            warnings=payload.warnings,
            statement_info=document.statement_info,
        )

    def import_selected(
        self,
        user_id: int,
        document_id: int,
        selected_ids: list[str],
        options: ImportOptions | None = None,
    ) -> ImportResult:
        return self._import_executor.execute(
            user_id, document_id, selected_ids, options or ImportOptions()
        )

    def get_processing_status(self, user_id: int, document_id: int) -> ProcessingStatus:
        document = self._owned_document(user_id, document_id)
        transaction_count = None
        if document.extracted_data is not None:
            transactions = document.extracted_data.get("transactions")
            if isinstance(transactions, list):
                transaction_count = len(transactions)
        finished = document.status in (DocumentStatus.PROCESSED, DocumentStatus.IMPORTED)
        return ProcessingStatus(
            document_id=document.id,
            status=document.status,
            message=document.processing_message,
            processed_at=document.processed_at,
            transaction_count=transaction_count,
            last_error=document.last_error,
            scan_verdict=document.scan_verdict,
            extracted_text=document.extracted_text if finished else None,
            pdf_metadata=document.pdf_metadata,
        )

    def reprocess_document(self, user_id: int, document_id: int) -> int:
        """Queue another run for a failed document. Returns the job id."""
        document = self._owned_document(user_id, document_id)
        if document.status != DocumentStatus.FAILED:
            raise InvalidStateError(
                f"Only failed documents can be reprocessed (document {document_id} is {document.status})"
            )
        with get_connection() as conn:
            job_id = self._job_repo.enqueue(conn, document.id, reprocess=True)
            conn.commit()
        Log.info(f"Reprocess job {job_id} queued for document {document_id}")
        return job_id

    def delete_document(self, user_id: int, document_id: int) -> None:
        document = self._owned_document(user_id, document_id)
        if not self._doc_repo.soft_delete(document.id, user_id):
            raise DocumentNotFoundError(f"Document {document_id} not found")
        Log.info(f"Document {document_id} deleted by user {user_id}")

    def suggest_categories(
        self,
        user_id: int,
        description: str,
        merchant_name: str | None = None,
        amount: Decimal | None = None,
        transaction_type: str = TransactionType.EXPENSE,
    ) -> list[CategorySuggestion]:
        return self._suggester.suggest(
            user_id, description, merchant_name, amount, transaction_type
        )

    def confirm_category(
        self,
        user_id: int,
        category_id: int,
        description: str,
        merchant_name: str | None = None,
    ) -> KeywordUpdate | None:
        return self._learner.confirm(user_id, category_id, description, merchant_name)

    def _owned_document(self, user_id: int, document_id: int) -> UploadedDocument:
        document = self._doc_repo.find_by_id(document_id)
        if document.user_id != user_id:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document


def _totals(transactions: list[ExtractedTransaction]) -> PreviewTotals:
    income = sum(
        (t.amount for t in transactions if t.transaction_type == TransactionType.INCOME), ZERO
    )
    expenses = sum(
        (t.amount for t in transactions if t.transaction_type == TransactionType.EXPENSE), ZERO
    )
    return PreviewTotals(total_income=income, total_expenses=expenses, net_amount=income - expenses)


def build_ingestion_service(
    settings: Settings, files_root: Path | None = None
) -> IngestionService:
    """Build the service with the database-backed collaborators."""
    doc_repo = UploadedDocumentsRepository()
    ledger_repo = LedgerRepository()
    return IngestionService(
        settings=settings,
        doc_repo=doc_repo,
        job_repo=JobRepository(settings.max_job_attempts),
        blob_store=build_blob_store(settings, files_root),
        import_executor=ImportExecutor(
            doc_repo=doc_repo,
            ledger_writer=ledger_repo,
            detector=build_duplicate_detector(settings, ledger_repo),
        ),
        suggester=build_category_suggester(settings, ledger_repo),
        learner=KeywordLearner(ledger_repo, cap=settings.category_keyword_cap),
    )

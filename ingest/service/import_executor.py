from typing import Protocol

from ingest.database.models import NewLedgerTransaction
from ingest.database.repositories.uploaded_documents_repository import UploadedDocumentsRepository
from ingest.duplicates.detector import DuplicateDetector
from ingest.logging.logger import Log
from ingest.parsing.exceptions import PayloadValidationError
from ingest.parsing.models import ExtractedTransaction
from ingest.parsing.serializer import StatementPayload, from_payload, to_payload
from ingest.processor.exceptions import DocumentNotFoundError
from ingest.processor.models import DocumentStatus, UploadedDocument
from ingest.service.exceptions import InvalidStateError
from ingest.service.models import ImportOptions, ImportResult


class LedgerWriter(Protocol):
    def create_transaction(self, record: NewLedgerTransaction) -> int: ...


class ImportExecutor:
    """Turns the selected candidates of a processed statement into ledger rows.

    A failed candidate is recorded on the result and the batch goes on.
    The document moves to ``Imported`` once the batch has run, whatever
    the per-candidate outcome.
    """

    def __init__(
        self,
        doc_repo: UploadedDocumentsRepository,
        ledger_writer: LedgerWriter,
        detector: DuplicateDetector,
    ) -> None:
        self._doc_repo = doc_repo
        self._ledger_writer = ledger_writer
        self._detector = detector

    def execute(
        self,
        user_id: int,
        document_id: int,
        selected_ids: list[str],
        options: ImportOptions,
    ) -> ImportResult:
        document = self._doc_repo.find_by_id(document_id)
        if document.user_id != user_id:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if not document.is_statement:
            raise InvalidStateError("Only bank statements can be imported")
        if document.status != DocumentStatus.PROCESSED:
            raise InvalidStateError(
                f"Document {document_id} is {document.status}; only Processed statements can be imported"
            )
        try:
            payload = from_payload(document.extracted_data)
        except PayloadValidationError as exc:
            raise InvalidStateError(f"Stored transactions for document {document_id} are unreadable") from exc

        result = ImportResult()
        selected = self._select(payload.transactions, selected_ids, result)
        result.total = len(selected)

        fresh = [c for c in selected if not c.is_duplicate]
        newly_flagged = self._detector.flag(user_id, fresh)
        if newly_flagged:
            result.warnings.append(
                f"{newly_flagged} transactions now match existing ledger entries"
            )

        chosen = {c.id for c in selected}
        for candidate in payload.transactions:
            candidate.is_selected = candidate.id in chosen

        for candidate in selected:
            if options.skip_duplicates and candidate.is_duplicate:
                result.skipped_duplicates += 1
                continue
            self._import_one(document, candidate, options, result)

        message = (
            f"Imported {result.imported} of {result.total} transactions "
            f"({result.skipped_duplicates} duplicates skipped, {result.failed} failed)"
        )
        updated = self._doc_repo.mark_imported(
            document_id,
            message,
            to_payload(
                StatementPayload(
                    dialect=payload.dialect,
                    transactions=payload.transactions,
                    warnings=payload.warnings,
                )
            ),
        )
        if not updated:
            Log.warning(f"Document {document_id} left Processed during import")
            result.warnings.append("Document status changed during import")
        Log.info(f"Document {document_id}: {message}")
        return result

    def _select(
        self,
        transactions: list[ExtractedTransaction],
        selected_ids: list[str],
        result: ImportResult,
    ) -> list[ExtractedTransaction]:
        by_id = {t.id: t for t in transactions}
        selected: list[ExtractedTransaction] = []
        seen: set[str] = set()
        for candidate_id in selected_ids:
            if candidate_id in seen:
                continue
            seen.add(candidate_id)
            candidate = by_id.get(candidate_id)
            if candidate is None:
                result.warnings.append(f"Unknown transaction id {candidate_id} ignored")
                continue
            selected.append(candidate)
        return selected

    def _import_one(
        self,
        document: UploadedDocument,
        candidate: ExtractedTransaction,
        options: ImportOptions,
        result: ImportResult,
    ) -> None:
        category_id = _resolve_category(candidate, options)
        if category_id is None:
            result.failed += 1
            result.failed_ids.append(candidate.id)
            result.errors.append(f"Transaction {candidate.id}: no category selected")
            return

        record = NewLedgerTransaction(
            user_id=document.user_id,
            account_id=document.account_id,
            category_id=category_id,
            transaction_date=candidate.transaction_date,
            amount=candidate.amount,
            description=candidate.description,
            transaction_type=candidate.transaction_type,
            merchant_name=candidate.merchant_name,
            reference_number=candidate.reference_number,
            payment_method=candidate.payment_method,
            source_document_id=document.id,
            source_candidate_id=candidate.id,
        )
        try:
            ledger_id = self._ledger_writer.create_transaction(record)
        except Exception as exc:
            Log.warning(f"Import of candidate {candidate.id} from document {document.id} failed: {exc}")
            result.failed += 1
            result.failed_ids.append(candidate.id)
            result.errors.append(f"Transaction {candidate.id}: could not be saved")
            return

        result.imported += 1
        result.imported_ids.append(ledger_id)
        result.imported_amount += candidate.amount


def _resolve_category(candidate: ExtractedTransaction, options: ImportOptions) -> int | None:
    override = options.category_overrides.get(candidate.id)
    if override is not None:
        return override
    if options.auto_categorize and candidate.suggested_category_id is not None:
        return candidate.suggested_category_id
    return options.default_category_id

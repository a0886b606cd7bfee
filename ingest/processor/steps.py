import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TypeVar

from ingest.categorization.suggester import CategorySuggester
from ingest.database.repositories.uploaded_documents_repository import UploadedDocumentsRepository
from ingest.duplicates.detector import DuplicateDetector
from ingest.logging.logger import Log
from ingest.parsing.exceptions import NoTransactionsError
from ingest.parsing.parser import StatementParser
from ingest.parsing.serializer import StatementPayload, statement_info_to_dict, to_payload
from ingest.pdf.base import BasePdfExtractor
from ingest.pdf.exceptions import PdfExtractionError
from ingest.pdf.metadata import metadata_to_dict
from ingest.processor.exceptions import (
    ExtractionError,
    IngestionFailure,
    InvalidContentError,
    ProcessingTimeoutError,
    RunAbortedError,
    ScanRejectedError,
    StatementParseError,
    UnsupportedStorageDiskError,
)
from ingest.processor.models import LastError
from ingest.processor.pipeline import PipelineContext, PipelineStep
from ingest.scanning.base import BaseContentScanner
from ingest.scanning.content_scanner import REJECT_INVALID_HEADER
from ingest.storage.blob_store import BaseBlobStore

T = TypeVar("T")


class LoadDocumentStep(PipelineStep):
    def __init__(
        self,
        blob_store: BaseBlobStore,
        doc_repo: UploadedDocumentsRepository,
        storage_disk: str = "local",
    ) -> None:
        self._blob_store = blob_store
        self._doc_repo = doc_repo
        self._storage_disk = storage_disk

    def run(self, context: PipelineContext) -> PipelineContext:
        document = self._doc_repo.find_by_id(context.uploaded_document_id)
        if document.storage_disk != self._storage_disk:
            raise UnsupportedStorageDiskError(
                f"storage_disk '{document.storage_disk}' is not supported"
            )
        context.document = document
        context.raw_bytes = self._blob_store.read(document.storage_path)
        Log.info(
            f"Loaded {len(context.raw_bytes)} bytes for document {context.uploaded_document_id}"
        )
        return context


class ScanContentStep(PipelineStep):
    def __init__(
        self,
        scanner: BaseContentScanner,
        doc_repo: UploadedDocumentsRepository,
    ) -> None:
        self._scanner = scanner
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        result = self._scanner.scan(context.raw_bytes)
        context.scan_result = result
        if result.clean:
            self._doc_repo.update_scan_result(
                context.uploaded_document_id,
                context.require_run_id(),
                result.verdict,
                result.scanned_at,
            )
            Log.info(f"Document {context.uploaded_document_id} passed content scan")
            return context
        if result.rejection == REJECT_INVALID_HEADER:
            raise InvalidContentError(result.verdict)
        raise ScanRejectedError(result.verdict)


class ExtractTextStep(PipelineStep):
    """Reads the text layer and PDF metadata.

    The PDF library calls run on a worker thread and are abandoned when
    the run's deadline passes, so one pathological file cannot hold the
    worker past its time budget. An abandoned call keeps its thread until
    the library returns; its result is discarded.
    """

    def __init__(
        self,
        pdf_extractor: BasePdfExtractor,
        doc_repo: UploadedDocumentsRepository,
    ) -> None:
        self._pdf_extractor = pdf_extractor
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        raw = context.raw_bytes
        if not _before_deadline(context, "validate", lambda: self._pdf_extractor.validate(raw)):
            raise ExtractionError("document cannot be opened or has no pages")
        try:
            context.extracted_text = _before_deadline(
                context, "extract", lambda: self._pdf_extractor.extract(raw)
            )
        except PdfExtractionError as exc:
            raise ExtractionError(str(exc)) from exc

        try:
            context.pdf_metadata = _before_deadline(
                context, "metadata", lambda: self._pdf_extractor.metadata(raw)
            )
        except PdfExtractionError as exc:
            Log.warning(f"Metadata unavailable for document {context.uploaded_document_id}: {exc}")
        else:
            Log.info(
                f"Document {context.uploaded_document_id}: "
                f"{context.pdf_metadata.page_count} pages, "
                f"encrypted={context.pdf_metadata.is_encrypted}"
            )

        self._doc_repo.update_extracted_text(
            context.uploaded_document_id,
            context.require_run_id(),
            context.extracted_text,
            pdf_metadata=(
                metadata_to_dict(context.pdf_metadata) if context.pdf_metadata is not None else None
            ),
        )
        Log.info(
            f"Extracted {len(context.extracted_text)} chars from document "
            f"{context.uploaded_document_id}"
        )
        return context


class ParseStatementStep(PipelineStep):
    """Runs only for bank statements; other kinds pass through."""

    def __init__(self, parser: StatementParser) -> None:
        self._parser = parser

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        if not document.is_statement:
            return context
        if not context.extracted_text.strip():
            raise StatementParseError("statement has no text layer")
        try:
            context.parse_result = self._parser.parse(context.extracted_text, document.bank_name)
        except NoTransactionsError as exc:
            raise StatementParseError(str(exc)) from exc
        context.statement_info = self._parser.statement_info(
            context.extracted_text, document.bank_name
        )
        return context


class DetectDuplicatesStep(PipelineStep):
    def __init__(self, detector: DuplicateDetector) -> None:
        self._detector = detector

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.parse_result is None:
            return context
        document = context.require_document()
        context.duplicate_count = self._detector.flag(
            document.user_id, context.parse_result.transactions
        )
        return context


class SuggestCategoriesStep(PipelineStep):
    def __init__(self, suggester: CategorySuggester) -> None:
        self._suggester = suggester

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.parse_result is None:
            return context
        document = context.require_document()
        self._suggester.apply(document.user_id, context.parse_result.transactions)
        return context


class MarkProcessedStep(PipelineStep):
    def __init__(self, doc_repo: UploadedDocumentsRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.parse_result is None:
            message = "Text extracted" if context.extracted_text else "No text layer found"
            finished = self._doc_repo.mark_processed(
                context.uploaded_document_id, context.require_run_id(), message
            )
        else:
            result = context.parse_result
            info = context.statement_info
            message = (
                f"Extracted {len(result.transactions)} transactions "
                f"({context.duplicate_count} possible duplicates)"
            )
            finished = self._doc_repo.mark_processed(
                context.uploaded_document_id,
                context.require_run_id(),
                message,
                extracted_data=to_payload(
                    StatementPayload(
                        dialect=result.dialect,
                        transactions=result.transactions,
                        warnings=result.warnings,
                    )
                ),
                statement_info=statement_info_to_dict(info) if info is not None else None,
                period_start=info.period_start if info is not None else None,
                period_end=info.period_end if info is not None else None,
            )
        if not finished:
            raise RunAbortedError(
                f"Document {context.uploaded_document_id} left Processing before completion"
            )
        Log.info(f"Document {context.uploaded_document_id} processed: {message}")
        return context


class MarkFailedStep(PipelineStep):
    """Records the terminal status for ``context.failure``."""

    def __init__(self, doc_repo: UploadedDocumentsRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        failure = context.failure
        if failure is None:
            raise ValueError("PipelineContext.failure must be set before MarkFailedStep")
        if isinstance(failure, ScanRejectedError):
            error = LastError(kind=failure.kind, detail=failure.message)
            finished = self._doc_repo.mark_virus_detected(
                context.uploaded_document_id,
                context.require_run_id(),
                failure.message,
                error,
                verdict=str(failure),
            )
            status = "VirusDetected"
        else:
            error = LastError(kind=failure.kind, detail=_public_detail(failure))
            finished = self._doc_repo.mark_failed(
                context.uploaded_document_id, context.require_run_id(), failure.message, error
            )
            status = "Failed"
        if finished:
            Log.error(
                f"Document {context.uploaded_document_id} marked {status}: "
                f"{failure.kind}: {failure}"
            )
        else:
            Log.warning(
                f"Document {context.uploaded_document_id} already left Processing; "
                f"{status} not recorded"
            )
        return context


def _public_detail(failure: IngestionFailure) -> str:
    # Unexpected errors carry raw exception text; that stays in the logs.
    if type(failure) is IngestionFailure:
        return failure.message
    return str(failure)


def _before_deadline(context: PipelineContext, label: str, call: Callable[[], T]) -> T:
    """Run ``call`` on a worker thread and wait at most until the run's deadline.

    Raises:
        ProcessingTimeoutError: if the deadline passes first.
    """
    if context.deadline is None:
        return call()
    remaining = context.deadline - time.monotonic()
    if remaining <= 0:
        raise ProcessingTimeoutError(f"time budget exhausted before PDF {label}")
    # A fresh pool per call: a thread stuck in the PDF library must not
    # queue up the next document behind it.
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-extract")
    try:
        future = executor.submit(call)
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ProcessingTimeoutError(
                f"PDF {label} did not finish within the time budget"
            ) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

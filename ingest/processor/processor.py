import time
from pathlib import Path

from ingest.categorization.suggester import build_category_suggester
from ingest.config.settings import Settings
from ingest.database.repositories.ledger_repository import LedgerRepository
from ingest.database.repositories.uploaded_documents_repository import UploadedDocumentsRepository
from ingest.duplicates.detector import build_duplicate_detector
from ingest.logging.logger import Log
from ingest.parsing.parser import StatementParser
from ingest.pdf.factory import build_pdf_extractor
from ingest.processor.exceptions import IngestionFailure, ProcessingTimeoutError, RunAbortedError
from ingest.processor.models import DocumentStatus
from ingest.processor.pipeline import PipelineContext, PipelineStep
from ingest.processor.steps import (
    DetectDuplicatesStep,
    ExtractTextStep,
    LoadDocumentStep,
    MarkFailedStep,
    MarkProcessedStep,
    ParseStatementStep,
    ScanContentStep,
    SuggestCategoriesStep,
)
from ingest.scanning.content_scanner import build_scanner
from ingest.storage.blob_store import build_blob_store


class Processor:
    """Runs the document pipeline once per claimed document.

    Pipeline: claim -> load -> scan -> extract -> parse -> duplicates ->
    categories -> mark processed. A document is claimed with an atomic
    status check-and-set, so a second concurrent run for the same id is a
    no-op. The claim hands out a run id and every later write of the run
    is scoped to it. After the claim every failure ends in exactly one terminal
    status; only errors raised while claiming or recording that status
    reach the caller.
    """

    def __init__(
        self,
        doc_repo: UploadedDocumentsRepository,
        steps: list[PipelineStep],
        failed_step: PipelineStep,
        timeout_seconds: float = 300,
    ) -> None:
        self._doc_repo = doc_repo
        self._steps = steps
        self._failed_step = failed_step
        self._timeout_seconds = timeout_seconds

    def process(self, uploaded_document_id: int, job_id: int, reprocess: bool = False) -> bool:
        """Process one document. Returns False if the document was not claimable."""
        allowed_from = (DocumentStatus.FAILED,) if reprocess else (DocumentStatus.UPLOADED,)
        run_id = self._doc_repo.claim_for_processing(uploaded_document_id, allowed_from)
        if run_id is None:
            Log.warning(
                f"Document {uploaded_document_id} is not in {'/'.join(allowed_from)}; "
                f"job {job_id} skipped"
            )
            return False

        Log.info(f"Processing document {uploaded_document_id} for job {job_id} (run {run_id})")
        context = PipelineContext(
            uploaded_document_id=uploaded_document_id,
            job_id=job_id,
            run_id=run_id,
            deadline=time.monotonic() + self._timeout_seconds,
        )
        try:
            for step in self._steps:
                self._check_deadline(context, step)
                context = step.run(context)
        except RunAbortedError as exc:
            Log.warning(f"Job {job_id} stopped: {exc}")
        except IngestionFailure as exc:
            context.failure = exc
            self._failed_step.run(context)
        except Exception as exc:
            Log.exception(f"Unexpected error processing document {uploaded_document_id}: {exc!r}")
            context.failure = IngestionFailure(f"{type(exc).__name__}: {exc}")
            self._failed_step.run(context)
        return True

    def _check_deadline(self, context: PipelineContext, step: PipelineStep) -> None:
        if context.deadline is not None and time.monotonic() > context.deadline:
            raise ProcessingTimeoutError(
                f"time budget of {self._timeout_seconds}s exceeded before {type(step).__name__}"
            )


def build_processor(
    settings: Settings,
    files_root: Path | None = None,
) -> Processor:
    """Build a Processor with all required adapters."""
    doc_repo = UploadedDocumentsRepository()
    ledger_repo = LedgerRepository()
    steps: list[PipelineStep] = [
        LoadDocumentStep(
            blob_store=build_blob_store(settings, files_root),
            doc_repo=doc_repo,
            storage_disk=settings.storage_disk,
        ),
        ScanContentStep(scanner=build_scanner(settings), doc_repo=doc_repo),
        ExtractTextStep(pdf_extractor=build_pdf_extractor(settings), doc_repo=doc_repo),
        ParseStatementStep(parser=StatementParser()),
        DetectDuplicatesStep(detector=build_duplicate_detector(settings, ledger_repo)),
        SuggestCategoriesStep(suggester=build_category_suggester(settings, ledger_repo)),
        MarkProcessedStep(doc_repo=doc_repo),
    ]
    return Processor(
        doc_repo=doc_repo,
        steps=steps,
        failed_step=MarkFailedStep(doc_repo),
        timeout_seconds=settings.processing_timeout_seconds,
    )

import threading
import time
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from ingest.categorization.suggester import CategorySuggester
from ingest.database.models import LedgerTransaction
from ingest.database.repositories.uploaded_documents_repository import UploadedDocumentsRepository
from ingest.duplicates.detector import DuplicateDetector
from ingest.parsing.parser import StatementParser
from ingest.pdf.exceptions import PdfExtractionError
from ingest.pdf.metadata import PdfMetadata
from ingest.pdf.pdfplumber_adapter import PdfPlumberAdapter
from ingest.processor.exceptions import IngestionFailure, ProcessingTimeoutError, RunAbortedError
from ingest.processor.models import DocumentKind, DocumentStatus, LastError, UploadedDocument
from ingest.processor.pipeline import PipelineContext, PipelineStep
from ingest.processor.processor import Processor
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
from ingest.scanning.content_scanner import SignatureScanner
from ingest.storage.blob_store import BaseBlobStore

STATEMENT = (
    "10.03.2024 10.03.2024 KARTENZAHLUNG REWE SAGT DANKE 10.03 12:15 Berlin -49,99\n"
    "12.03.2024 12.03.2024 KARTENZAHLUNG ohne Betrag\n"
    "15.03.2024 15.03.2024 GUTSCHRIFT ACME GMBH GEHALT 2.500,00"
)
RUN_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")


def _make_document(kind: str = DocumentKind.BANK_STATEMENT) -> UploadedDocument:
    return UploadedDocument(
        id=1,
        user_id=10,
        kind=kind,
        status=DocumentStatus.PROCESSING,
        storage_disk="local",
        storage_path="bankstatement/10/statement.pdf",
        original_filename="statement.pdf",
        content_type="application/pdf",
        file_size_bytes=1024,
        bank_name="Deutsche Bank",
    )


class _Pipeline:
    def __init__(self, kind: str = DocumentKind.BANK_STATEMENT, text: str = STATEMENT) -> None:
        self.doc_repo = MagicMock(spec=UploadedDocumentsRepository)
        self.blob_store = MagicMock(spec=BaseBlobStore)
        self.pdf_extractor = MagicMock()
        self.ledger = MagicMock()
        self.categories = MagicMock()

        self.doc_repo.claim_for_processing.return_value = RUN_ID
        self.doc_repo.find_by_id.return_value = _make_document(kind)
        self.doc_repo.mark_processed.return_value = True
        self.doc_repo.mark_failed.return_value = True
        self.doc_repo.mark_virus_detected.return_value = True
        self.blob_store.read.return_value = b"%PDF-1.4 fake"
        self.pdf_extractor.validate.return_value = True
        self.pdf_extractor.extract.return_value = text
        self.pdf_extractor.metadata.return_value = PdfMetadata(
            page_count=2, is_encrypted=False, file_size_bytes=13
        )
        self.ledger.transactions_for_user.return_value = []
        self.categories.categories_by_type.return_value = []

        steps: list[PipelineStep] = [
            LoadDocumentStep(blob_store=self.blob_store, doc_repo=self.doc_repo),
            ScanContentStep(
                scanner=SignatureScanner(
                    max_bytes=1024, magic_header=b"%PDF-", blocklist=["<script"]
                ),
                doc_repo=self.doc_repo,
            ),
            ExtractTextStep(pdf_extractor=self.pdf_extractor, doc_repo=self.doc_repo),
            ParseStatementStep(parser=StatementParser()),
            DetectDuplicatesStep(detector=DuplicateDetector(self.ledger)),
            SuggestCategoriesStep(suggester=CategorySuggester(self.categories)),
            MarkProcessedStep(doc_repo=self.doc_repo),
        ]
        self.processor = Processor(
            doc_repo=self.doc_repo, steps=steps, failed_step=MarkFailedStep(self.doc_repo)
        )

    def failed_error(self) -> LastError:
        return self.doc_repo.mark_failed.call_args[0][3]

    def failed_message(self) -> str:
        return self.doc_repo.mark_failed.call_args[0][2]


class TestHappyPath:
    def test_statement_reaches_processed(self) -> None:
        pipeline = _Pipeline()

        assert pipeline.processor.process(uploaded_document_id=1, job_id=9) is True

        pipeline.doc_repo.claim_for_processing.assert_called_once_with(1, (DocumentStatus.UPLOADED,))
        pipeline.blob_store.read.assert_called_once_with("bankstatement/10/statement.pdf")
        pipeline.doc_repo.update_scan_result.assert_called_once()
        pipeline.doc_repo.update_extracted_text.assert_called_once_with(
            1,
            RUN_ID,
            STATEMENT,
            pdf_metadata={
                "page_count": 2,
                "is_encrypted": False,
                "file_size_bytes": 13,
                "version": None,
                "title": None,
                "author": None,
                "subject": None,
                "creator": None,
                "creation_date": None,
            },
        )
        pipeline.doc_repo.mark_processed.assert_called_once()
        pipeline.doc_repo.mark_failed.assert_not_called()

    def test_payload_holds_two_transactions_and_one_warning(self) -> None:
        pipeline = _Pipeline()

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        kwargs = pipeline.doc_repo.mark_processed.call_args.kwargs
        payload = kwargs["extracted_data"]
        assert payload["dialect"] == "Deutsche Bank"
        assert len(payload["transactions"]) == 2
        assert len(payload["warnings"]) == 1
        assert payload["transactions"][0]["amount"] == str(Decimal("49.99"))
        assert kwargs["statement_info"]["bank_name"] == "Deutsche Bank"

    def test_receipt_skips_statement_stages(self) -> None:
        pipeline = _Pipeline(kind=DocumentKind.RECEIPT, text="Kassenbon REWE 12,00")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        pipeline.doc_repo.mark_processed.assert_called_once_with(1, RUN_ID, "Text extracted")
        pipeline.ledger.transactions_for_user.assert_not_called()

    def test_receipt_without_text_is_processed(self) -> None:
        pipeline = _Pipeline(kind=DocumentKind.RECEIPT, text="")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        pipeline.doc_repo.mark_processed.assert_called_once_with(1, RUN_ID, "No text layer found")

    def test_duplicates_flagged_before_persisting(self) -> None:
        pipeline = _Pipeline()
        pipeline.ledger.transactions_for_user.return_value = [
            LedgerTransaction(
                id=42,
                user_id=10,
                transaction_date=date(2024, 3, 11),
                amount=Decimal("49.99"),
                description="REWE SAGT DANKE 10.03 12:15 Berlin",
                transaction_type="Expense",
            )
        ]

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        kwargs = pipeline.doc_repo.mark_processed.call_args.kwargs
        first = kwargs["extracted_data"]["transactions"][0]
        assert first["is_duplicate"] is True
        assert first["is_selected"] is False
        assert first["duplicate_transaction_id"] == 42


class TestClaim:
    def test_second_run_is_a_noop(self) -> None:
        pipeline = _Pipeline()
        pipeline.doc_repo.claim_for_processing.return_value = None

        assert pipeline.processor.process(uploaded_document_id=1, job_id=9) is False

        pipeline.doc_repo.find_by_id.assert_not_called()
        pipeline.doc_repo.mark_failed.assert_not_called()
        pipeline.doc_repo.mark_processed.assert_not_called()

    def test_reprocess_claims_from_failed(self) -> None:
        pipeline = _Pipeline()

        pipeline.processor.process(uploaded_document_id=1, job_id=9, reprocess=True)

        pipeline.doc_repo.claim_for_processing.assert_called_once_with(1, (DocumentStatus.FAILED,))

    def test_every_write_carries_the_run_id(self) -> None:
        pipeline = _Pipeline()

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.doc_repo.update_scan_result.call_args[0][:2] == (1, RUN_ID)
        assert pipeline.doc_repo.update_extracted_text.call_args[0][:2] == (1, RUN_ID)
        assert pipeline.doc_repo.mark_processed.call_args[0][:2] == (1, RUN_ID)


class TestFailures:
    def test_signature_hit_is_virus_detected(self) -> None:
        pipeline = _Pipeline()
        pipeline.blob_store.read.return_value = b"%PDF-1.4 <script>alert(1)</script>"

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        args = pipeline.doc_repo.mark_virus_detected.call_args
        assert args[0][1] == RUN_ID
        assert args[0][2] == "File rejected by security scan"
        assert args[0][3] == LastError(kind="ScanRejected", detail="File rejected by security scan")
        assert args.kwargs["verdict"] == "Threats detected: Suspicious pattern: <script"
        pipeline.pdf_extractor.extract.assert_not_called()
        pipeline.doc_repo.mark_processed.assert_not_called()

    def test_oversize_is_virus_detected(self) -> None:
        pipeline = _Pipeline()
        pipeline.blob_store.read.return_value = b"%PDF-" + b"0" * 2048

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        pipeline.doc_repo.mark_virus_detected.assert_called_once()

    def test_bad_header_is_failed(self) -> None:
        pipeline = _Pipeline()
        pipeline.blob_store.read.return_value = b"GIF89a"

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error().kind == "InvalidContent"
        pipeline.doc_repo.mark_virus_detected.assert_not_called()

    def test_unreadable_pdf_is_failed(self) -> None:
        pipeline = _Pipeline()
        pipeline.pdf_extractor.validate.return_value = False

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error().kind == "ExtractionFailure"
        assert pipeline.failed_message() == "Could not read text from this document"

    def test_extractor_error_is_failed(self) -> None:
        pipeline = _Pipeline()
        pipeline.pdf_extractor.extract.side_effect = PdfExtractionError("bad xref")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error() == LastError(kind="ExtractionFailure", detail="bad xref")

    def test_missing_metadata_does_not_fail(self) -> None:
        pipeline = _Pipeline()
        pipeline.pdf_extractor.metadata.side_effect = PdfExtractionError("no info")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        pipeline.doc_repo.mark_processed.assert_called_once()

    def test_statement_without_rows_is_parse_failure(self) -> None:
        pipeline = _Pipeline(text="Kontoauszug\n10.03.2024 unreadable")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error().kind == "ParseFailure"
        assert pipeline.failed_message() == "No transactions could be read from this statement"

    def test_statement_without_text_is_parse_failure(self) -> None:
        pipeline = _Pipeline(text="")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error().kind == "ParseFailure"

    def test_unexpected_error_is_generic(self) -> None:
        pipeline = _Pipeline()
        pipeline.blob_store.read.side_effect = OSError("disk on fire")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error() == LastError(
            kind="Unexpected", detail="Unexpected processing error"
        )
        assert pipeline.failed_message() == "Unexpected processing error"

    def test_timeout_between_steps(self) -> None:
        pipeline = _Pipeline()
        pipeline.processor = Processor(
            doc_repo=pipeline.doc_repo,
            steps=pipeline.processor._steps,
            failed_step=MarkFailedStep(pipeline.doc_repo),
            timeout_seconds=10,
        )

        with patch("ingest.processor.processor.time.monotonic", side_effect=[0.0, 1.0, 50.0]):
            pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.failed_error().kind == "Timeout"
        pipeline.pdf_extractor.extract.assert_not_called()


class TestExtractionDeadline:
    def test_hung_extractor_is_abandoned(self) -> None:
        pipeline = _Pipeline()
        release = threading.Event()
        pipeline.pdf_extractor.extract.side_effect = lambda _raw: release.wait(10) and STATEMENT
        pipeline.processor = Processor(
            doc_repo=pipeline.doc_repo,
            steps=pipeline.processor._steps,
            failed_step=MarkFailedStep(pipeline.doc_repo),
            timeout_seconds=0.2,
        )

        started = time.monotonic()
        try:
            pipeline.processor.process(uploaded_document_id=1, job_id=9)
        finally:
            release.set()

        assert time.monotonic() - started < 5
        assert pipeline.failed_error().kind == "Timeout"
        pipeline.doc_repo.update_extracted_text.assert_not_called()
        pipeline.doc_repo.mark_processed.assert_not_called()

    def test_step_raises_when_call_outlives_deadline(self) -> None:
        extractor = MagicMock()
        release = threading.Event()
        extractor.validate.side_effect = lambda _raw: release.wait(10)
        context = PipelineContext(
            uploaded_document_id=1,
            job_id=9,
            run_id=RUN_ID,
            deadline=time.monotonic() + 0.1,
            raw_bytes=b"%PDF-1.4",
        )

        try:
            with pytest.raises(ProcessingTimeoutError, match="PDF validate"):
                ExtractTextStep(extractor, MagicMock()).run(context)
        finally:
            release.set()

    def test_spent_budget_skips_the_call(self) -> None:
        extractor = MagicMock()
        context = PipelineContext(
            uploaded_document_id=1, job_id=9, run_id=RUN_ID, deadline=time.monotonic() - 1
        )

        with pytest.raises(ProcessingTimeoutError):
            ExtractTextStep(extractor, MagicMock()).run(context)

        extractor.validate.assert_not_called()


class TestPdfMetadataPersisted:
    def test_stored_with_extracted_text(self, statement_pdf_bytes: bytes) -> None:
        doc_repo = MagicMock(spec=UploadedDocumentsRepository)
        context = PipelineContext(
            uploaded_document_id=1, job_id=9, run_id=RUN_ID, raw_bytes=statement_pdf_bytes
        )

        ExtractTextStep(PdfPlumberAdapter(), doc_repo).run(context)

        stored = doc_repo.update_extracted_text.call_args.kwargs["pdf_metadata"]
        assert stored["page_count"] == 2
        assert stored["is_encrypted"] is False
        assert stored["title"] == "Kontoauszug 03-2024"
        assert stored["author"] == "Deutsche Bank"
        assert stored["file_size_bytes"] == len(statement_pdf_bytes)

    def test_missing_metadata_stores_none(self) -> None:
        pipeline = _Pipeline(kind=DocumentKind.RECEIPT, text="Kassenbon")
        pipeline.pdf_extractor.metadata.side_effect = PdfExtractionError("no info")

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        assert pipeline.doc_repo.update_extracted_text.call_args.kwargs["pdf_metadata"] is None


class TestLostOwnership:
    def test_aborted_run_writes_no_terminal_status(self) -> None:
        pipeline = _Pipeline()
        pipeline.doc_repo.update_extracted_text.side_effect = RunAbortedError("gone")

        assert pipeline.processor.process(uploaded_document_id=1, job_id=9) is True

        pipeline.doc_repo.mark_failed.assert_not_called()
        pipeline.doc_repo.mark_processed.assert_not_called()

    def test_reaped_before_finish(self) -> None:
        pipeline = _Pipeline()
        pipeline.doc_repo.mark_processed.return_value = False

        pipeline.processor.process(uploaded_document_id=1, job_id=9)

        pipeline.doc_repo.mark_failed.assert_not_called()


class TestMarkFailedStep:
    def test_requires_failure(self) -> None:
        step = MarkFailedStep(MagicMock())

        with pytest.raises(ValueError):
            step.run(PipelineContext(uploaded_document_id=1, job_id=9, run_id=RUN_ID))

    def test_custom_message(self) -> None:
        doc_repo = MagicMock()
        doc_repo.mark_failed.return_value = True
        context = PipelineContext(uploaded_document_id=1, job_id=9, run_id=RUN_ID)
        context.failure = IngestionFailure("raw", message="Something specific")

        MarkFailedStep(doc_repo).run(context)

        assert doc_repo.mark_failed.call_args[0][1] == RUN_ID
        assert doc_repo.mark_failed.call_args[0][2] == "Something specific"

import time

from ingest.config.settings import Settings
from ingest.database.connection import get_connection
from ingest.database.models import JobRecord
from ingest.database.repositories.job_repository import JobRepository
from ingest.database.repositories.uploaded_documents_repository import UploadedDocumentsRepository
from ingest.logging.logger import Log
from ingest.worker.job_runner import JobRunner


class Worker:
    """Poll loop: reap stale runs -> claim -> dispatch -> sleep when idle."""

    def __init__(
        self,
        job_repo: JobRepository,
        job_runner: JobRunner,
        doc_repo: UploadedDocumentsRepository,
        settings: Settings,
    ) -> None:
        self._job_repo = job_repo
        self._job_runner = job_runner
        self._doc_repo = doc_repo
        self._settings = settings

    def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs until interrupted.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        Log.info("Worker started, polling for jobs")
        jobs_done = 0
        try:
            while True:
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                self._reap_stale_documents()
                job = self._try_claim_job()
                if job:
                    self._job_runner.run(job)
                    jobs_done += 1
                else:
                    Log.debug("No jobs available, sleeping")
                    time.sleep(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")

    def _try_claim_job(self) -> JobRecord | None:
        """Attempt to claim the next pending job. Gracefully handle DB errors."""
        try:
            with get_connection() as conn:
                return self._job_repo.claim_next_job(conn)
        except Exception as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return None

    def _reap_stale_documents(self) -> None:
        """Fail documents whose run outlived the processing time budget."""
        try:
            reaped = self._doc_repo.fail_stale_processing(
                self._settings.processing_timeout_seconds
            )
        except Exception as exc:
            Log.warning(f"Could not reap stale documents: {exc}")
            return
        for document_id in reaped:
            Log.error(f"Document {document_id} timed out in Processing and was marked Failed")

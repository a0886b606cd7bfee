from ingest.config.settings import Settings
from ingest.database.models import JobRecord
from ingest.database.repositories.job_repository import JobRepository
from ingest.logging.logger import Log
from ingest.processor.processor import Processor


class JobRunner:
    """Run one job and retry what the processor could not settle.

    Pipeline failures are recorded on the document by the processor
    itself; anything reaching this class is an infrastructure error.
    """

    def __init__(
        self,
        processor: Processor,
        job_repo: JobRepository,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._job_repo = job_repo
        self._settings = settings

    def run(self, job: JobRecord) -> None:
        Log.info(f"Running job {job.id} (attempt {job.attempts + 1})")
        try:
            self._processor.process(job.uploaded_document_id, job.id, reprocess=job.reprocess)
            self._job_repo.mark_done(job.id)
            Log.info(f"Job {job.id} completed")
        except Exception as exc:
            self._handle_failure(job, exc)

    def _handle_failure(self, job: JobRecord, exc: Exception) -> None:
        """Increment attempts; mark failed if at max, otherwise back to pending."""
        Log.error(f"Job {job.id} failed: {exc}")
        if job.attempts + 1 >= self._settings.max_job_attempts:
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} permanently failed after {job.attempts + 1} attempts")
        else:
            self._job_repo.increment_attempts(job.id)
            Log.warning(f"Job {job.id} will be retried (attempt {job.attempts + 1})")

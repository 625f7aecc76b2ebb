import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from resume_screener.core.config import settings
from resume_screener.core.exceptions import (
    AppException,
    BatchCancelledError,
    ExtractionFailedError,
    InvalidJobDescriptionError,
)
from resume_screener.models.batch_job import BatchJob, BatchStatus
from resume_screener.models.job_description import JobDescription
from resume_screener.models.resume import ExtractionStatus, Resume
from resume_screener.schemas.analysis import AnalysisPayload
from resume_screener.schemas.job_description import JobDescriptionResponse
from resume_screener.schemas.pipeline import BatchCreate, OutcomeStatus, ResumeOutcome
from resume_screener.services import screening_service
from resume_screener.services.completion_provider import TextCompletionProvider
from resume_screener.services.file_store import FileStore
from resume_screener.services.pipeline_tracker import PipelineTracker
from resume_screener.services.resume_parser import parse_resume_text
from resume_screener.services.scoring import evaluate_resume, record_analysis
from resume_screener.services.text_extraction import (
    apply_extraction,
    extract_text,
    is_usable_text,
    mark_extraction_failed,
)

logger = logging.getLogger(__name__)


class StageFailed(Exception):
    def __init__(self, stage: str, error: AppException):
        self.stage = stage
        self.error = error
        super().__init__(f"{stage}: {error.message}")


def create_batch(db: Session, user_id: str, batch_in: BatchCreate) -> BatchJob:
    """Register a batch of resumes against one job description. Defaults to every resume filed under it."""
    job = screening_service.get_job_description(db, user_id, batch_in.job_description_id)
    if batch_in.resume_ids:
        resume_ids = [screening_service.get_resume(db, user_id, rid).id for rid in batch_in.resume_ids]
    else:
        resume_ids = [
            r.id for r in db.query(Resume)
            .filter(Resume.user_id == user_id, Resume.job_description_id == job.id)
            .order_by(Resume.id)
            .all()
        ]
    if not resume_ids:
        raise AppException("No resumes to process for this job description", status_code=422, error_code="EMPTY_BATCH")

    batch = BatchJob(
        user_id=user_id,
        job_description_id=job.id,
        resume_ids=resume_ids,
        total_resumes=len(resume_ids),
        processed_resumes=0,
        status=BatchStatus.PENDING.value,
    )
    db.add(batch)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(batch)
    logger.info(f"Batch {batch.id} created with {len(resume_ids)} resumes")
    return batch


class BatchOrchestrator:
    """
    Runs one batch through the six pipeline steps.

    Model and storage calls fan out over a bounded thread pool; every database
    write and every tracker transition happens on the calling thread. Workers
    only see plain values, never ORM objects.
    """

    def __init__(
        self,
        db: Session,
        provider: TextCompletionProvider,
        store: FileStore,
        tracker: Optional[PipelineTracker] = None,
        max_concurrency: Optional[int] = None,
        halt_on_error: Optional[bool] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.db = db
        self.provider = provider
        self.store = store
        self.tracker = tracker or PipelineTracker(settings.pipeline.progress_increment)
        self.max_concurrency = max(1, max_concurrency or settings.pipeline.max_concurrency)
        self.halt_on_error = settings.pipeline.halt_on_error if halt_on_error is None else halt_on_error
        self.cancel_event = cancel_event or threading.Event()

        self.batch: Optional[BatchJob] = None
        self.job: Optional[JobDescription] = None
        self.job_snapshot: Optional[JobDescriptionResponse] = None
        self.resumes: Dict[int, Resume] = {}
        self.outcomes: Dict[int, ResumeOutcome] = {}
        self._fresh_text: set = set()
        self._payloads: Dict[int, AnalysisPayload] = {}
        self._stage_failures: List[AppException] = []

    # --- public ---

    def run(self, batch: BatchJob) -> List[ResumeOutcome]:
        logger.info(f"Batch {batch.id}: starting run over {batch.total_resumes} resumes")
        self.batch = batch
        batch.status = BatchStatus.PROCESSING.value
        self._commit()

        stages = [
            ("parse-jd", self._parse_job_description),
            ("extract-resumes", self._extract_resumes),
            ("analyze-skills", self._analyze_skills),
            ("semantic-matching", self._semantic_matching),
            ("generate-scores", self._generate_scores),
            ("create-recommendations", self._create_recommendations),
        ]
        try:
            for step_id, handler in stages:
                self._run_stage(step_id, handler)
        except StageFailed as failure:
            batch.status = BatchStatus.FAILED.value
            batch.failed_stage = failure.stage
            batch.error = failure.error.message
            logger.error(f"Batch {batch.id} halted at {failure.stage}: {failure.error.message}")
        except BatchCancelledError as cancelled:
            batch.status = BatchStatus.CANCELLED.value
            current = self.tracker.current_step
            batch.failed_stage = current.id if current else None
            batch.error = cancelled.message
            if current:
                self.tracker.fail(current.id, cancelled.message)
            logger.warning(f"Batch {batch.id} cancelled")
        except Exception as exc:
            current = self.tracker.current_step
            if current:
                self.tracker.fail(current.id, "Unexpected server error")
            batch.status = BatchStatus.FAILED.value
            batch.failed_stage = current.id if current else None
            batch.error = "Unexpected server error"
            self._commit()
            logger.exception(f"Batch {batch.id} crashed: {exc}")
            raise
        else:
            batch.status = BatchStatus.COMPLETED.value
            logger.info(f"Batch {batch.id} completed")

        batch.completed_at = datetime.now(timezone.utc)
        self._commit()
        return self._final_outcomes()

    def cancel(self) -> None:
        self.cancel_event.set()

    # --- stage plumbing ---

    def _run_stage(self, step_id: str, handler: Callable[[str], None]) -> None:
        self._check_cancelled()
        self.tracker.start(step_id)
        self._stage_failures = []
        try:
            handler(step_id)
        except BatchCancelledError:
            raise
        except AppException as exc:
            self.tracker.fail(step_id, exc.message)
            raise StageFailed(step_id, exc) from exc

        if self._stage_failures and self.halt_on_error:
            first = self._stage_failures[0]
            message = f"{len(self._stage_failures)} resume(s) failed: {first.message}"
            self.tracker.fail(step_id, message)
            raise StageFailed(step_id, AppException(message, status_code=500, error_code=first.error_code))
        self.tracker.complete(step_id)

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise BatchCancelledError()

    def _active(self) -> List[Resume]:
        return [r for rid, r in self.resumes.items() if rid not in self.outcomes]

    def _fan_out(
        self,
        step_id: str,
        items: List[Resume],
        worker: Callable[..., Any],
        args_for: Callable[[Resume], tuple],
        on_result: Callable[[Resume, Any], None],
        on_error: Optional[Callable[[Resume, AppException], None]] = None,
    ) -> None:
        """
        Run `worker(*args_for(resume))` for each resume on the pool and hand results
        back to `on_result` on this thread. Any exception raised by a worker becomes
        a failed outcome for that resume; in halt mode the first one stops the
        remaining submissions.
        """
        total = len(items)
        if total == 0:
            self.tracker.report_progress(step_id, 0, 0)
            return

        done = 0
        with ThreadPoolExecutor(max_workers=min(self.max_concurrency, total)) as pool:
            futures = {pool.submit(worker, *args_for(resume)): resume for resume in items}
            for future in as_completed(futures):
                resume = futures[future]
                if future.cancelled():
                    continue
                try:
                    result = future.result()
                except Exception as exc:
                    if not isinstance(exc, AppException):
                        logger.exception(f"Unexpected error for resume {resume.id} at {step_id}")
                        exc = AppException(
                            f"Unexpected error: {exc}", status_code=500, error_code="UNEXPECTED_ERROR"
                        )
                    if on_error:
                        on_error(resume, exc)
                    self._fail_resume(resume, step_id, exc)
                    if self.halt_on_error:
                        self._cancel_pending(futures)
                else:
                    on_result(resume, result)
                done += 1
                self.tracker.report_progress(step_id, done, total)
                if self.cancel_event.is_set():
                    self._cancel_pending(futures)
        self._check_cancelled()

    @staticmethod
    def _cancel_pending(futures) -> None:
        for future in futures:
            future.cancel()

    def _fail_resume(self, resume: Resume, step_id: str, exc: AppException) -> None:
        logger.warning(f"Resume {resume.id} failed at {step_id}: {exc.message}")
        self._stage_failures.append(exc)
        self.outcomes[resume.id] = ResumeOutcome(
            resume_id=resume.id,
            file_name=resume.file_name,
            status=OutcomeStatus.FAILED,
            stage=step_id,
            error=exc.message,
            error_code=exc.error_code,
        )

    def _skip_resume(self, resume: Resume, step_id: str, reason: str) -> None:
        logger.info(f"Resume {resume.id} skipped at {step_id}: {reason}")
        self.outcomes[resume.id] = ResumeOutcome(
            resume_id=resume.id,
            file_name=resume.file_name,
            status=OutcomeStatus.SKIPPED,
            stage=step_id,
            error=reason,
        )

    # --- stages ---

    def _parse_job_description(self, step_id: str) -> None:
        batch = self.batch
        job = screening_service.get_job_description(self.db, batch.user_id, batch.job_description_id)
        if job.is_file_based and not is_usable_text(job.description):
            content = self.store.fetch(job.file_url)
            text = extract_text(content, job.file_name, self.provider)
            if not is_usable_text(text):
                raise InvalidJobDescriptionError(f"Could not read a job description from {job.file_name}")
            job.description = text
            self._commit()
        if not (job.title and is_usable_text(job.description)):
            raise InvalidJobDescriptionError("Job description needs a title and description text")
        self.job = job
        self.job_snapshot = JobDescriptionResponse.model_validate(job)

        for resume_id in batch.resume_ids or []:
            self.resumes[resume_id] = screening_service.get_resume(self.db, batch.user_id, resume_id)
        self.tracker.report_progress(step_id, 1, 1)

    def _extract_resumes(self, step_id: str) -> None:
        pending = [r for r in self._active() if r.extraction_status != ExtractionStatus.COMPLETED.value]

        def on_result(resume: Resume, text: str) -> None:
            apply_extraction(self.db, resume, text, resume.parsed_data)
            self._fresh_text.add(resume.id)

        def on_error(resume: Resume, exc: AppException) -> None:
            if isinstance(exc, ExtractionFailedError):
                mark_extraction_failed(self.db, resume, exc.message)

        self._fan_out(
            step_id,
            pending,
            worker=self._fetch_and_extract,
            args_for=lambda r: (r.file_url, r.file_name),
            on_result=on_result,
            on_error=on_error,
        )

    def _fetch_and_extract(self, file_url: str, file_name: str) -> str:
        return extract_text(self.store.fetch(file_url), file_name, self.provider)

    def _analyze_skills(self, step_id: str) -> None:
        pending = [r for r in self._active() if r.id in self._fresh_text or r.parsed_data is None]

        def on_result(resume: Resume, parsed: Dict[str, Any]) -> None:
            apply_extraction(self.db, resume, resume.extracted_text, parsed)

        self._fan_out(
            step_id,
            pending,
            worker=parse_resume_text,
            args_for=lambda r: (r.extracted_text, self.provider),
            on_result=on_result,
        )

    def _semantic_matching(self, step_id: str) -> None:
        for resume in self._active():
            if not is_usable_text(resume.extracted_text):
                self._skip_resume(resume, step_id, "No readable text was extracted from this file")

        def on_result(resume: Resume, payload: AnalysisPayload) -> None:
            self._payloads[resume.id] = payload

        self._fan_out(
            step_id,
            self._active(),
            worker=evaluate_resume,
            args_for=lambda r: (self.job_snapshot, r.extracted_text, self.provider),
            on_result=on_result,
        )

    def _generate_scores(self, step_id: str) -> None:
        scored = [r for r in self._active() if r.id in self._payloads]
        for done, resume in enumerate(scored, start=1):
            self._check_cancelled()
            analysis = record_analysis(self.db, resume.id, self.job.id, self._payloads[resume.id])
            self.batch.processed_resumes = (self.batch.processed_resumes or 0) + 1
            self._commit()
            self.outcomes[resume.id] = ResumeOutcome(
                resume_id=resume.id,
                file_name=resume.file_name,
                status=OutcomeStatus.SUCCEEDED,
                analysis_id=analysis.id,
                relevance_score=analysis.relevance_score,
                verdict=analysis.verdict,
            )
            self.tracker.report_progress(step_id, done, len(scored))
        if not scored:
            self.tracker.report_progress(step_id, 0, 0)

    def _create_recommendations(self, step_id: str) -> None:
        succeeded = [o for o in self.outcomes.values() if o.status == OutcomeStatus.SUCCEEDED]
        if succeeded:
            best = max(succeeded, key=lambda o: o.relevance_score or 0)
            logger.info(
                f"Batch {self.batch.id}: {len(succeeded)} scored, best resume {best.resume_id} "
                f"({best.relevance_score}, {best.verdict})"
            )
        self.tracker.report_progress(step_id, 1, 1)

    # --- helpers ---

    def _final_outcomes(self) -> List[ResumeOutcome]:
        failed_stage = self.batch.failed_stage
        for resume_id in self.batch.resume_ids or []:
            if resume_id not in self.outcomes:
                resume = self.resumes.get(resume_id)
                self.outcomes[resume_id] = ResumeOutcome(
                    resume_id=resume_id,
                    file_name=resume.file_name if resume else None,
                    status=OutcomeStatus.SKIPPED,
                    stage=failed_stage,
                )
        return sorted(
            self.outcomes.values(),
            key=lambda o: (o.status != OutcomeStatus.SUCCEEDED, -(o.relevance_score or 0), o.resume_id),
        )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

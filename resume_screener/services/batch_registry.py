import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from resume_screener.core.config import settings
from resume_screener.models.batch_job import BatchJob
from resume_screener.schemas.pipeline import ProcessingStep, ResumeOutcome
from resume_screener.services.batch_orchestrator import BatchOrchestrator
from resume_screener.services.completion_provider import TextCompletionProvider
from resume_screener.services.file_store import FileStore
from resume_screener.services.pipeline_tracker import PipelineTracker, steps_for_batch

logger = logging.getLogger(__name__)


@dataclass
class ActiveRun:
    tracker: PipelineTracker
    cancel_event: threading.Event = field(default_factory=threading.Event)
    outcomes: List[ResumeOutcome] = field(default_factory=list)


class BatchRegistry:
    """
    In-process index of batch runs so status readers can see live step progress.

    Runs leave the index when they finish; step states are then rebuilt from the
    batch row, and the outcomes of the most recent `keep_finished` runs are kept.
    """

    def __init__(self, keep_finished: Optional[int] = None):
        self.keep_finished = settings.pipeline.finished_runs_kept if keep_finished is None else keep_finished
        self._runs: Dict[int, ActiveRun] = {}
        self._finished: "OrderedDict[int, List[ResumeOutcome]]" = OrderedDict()
        self._lock = threading.Lock()

    def register(self, batch_id: int, tracker: PipelineTracker) -> ActiveRun:
        run = ActiveRun(tracker=tracker)
        with self._lock:
            self._runs[batch_id] = run
            self._finished.pop(batch_id, None)
        return run

    def finish(self, batch_id: int) -> None:
        with self._lock:
            run = self._runs.pop(batch_id, None)
            if run is None:
                return
            self._finished[batch_id] = list(run.outcomes)
            while len(self._finished) > self.keep_finished:
                self._finished.popitem(last=False)

    def get(self, batch_id: int) -> Optional[ActiveRun]:
        with self._lock:
            return self._runs.get(batch_id)

    def cancel(self, batch_id: int) -> bool:
        run = self.get(batch_id)
        if run is None or run.tracker.is_finished:
            return False
        run.cancel_event.set()
        logger.info(f"Cancellation requested for batch {batch_id}")
        return True

    def steps(self, batch: BatchJob) -> List[ProcessingStep]:
        run = self.get(batch.id)
        if run is not None:
            return run.tracker.snapshot()
        return steps_for_batch(batch.status, batch.failed_stage, batch.error)

    def outcomes(self, batch_id: int) -> List[ResumeOutcome]:
        with self._lock:
            run = self._runs.get(batch_id)
            if run is not None:
                return list(run.outcomes)
            return list(self._finished.get(batch_id, []))

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)


registry = BatchRegistry()


def get_batch_registry() -> BatchRegistry:
    return registry


def execute_batch(
    db: Session,
    batch: BatchJob,
    run: ActiveRun,
    provider: TextCompletionProvider,
    store: FileStore,
    halt_on_error: Optional[bool] = None,
    batch_registry: Optional[BatchRegistry] = None,
) -> List[ResumeOutcome]:
    batch_id = batch.id
    orchestrator = BatchOrchestrator(
        db,
        provider,
        store,
        tracker=run.tracker,
        halt_on_error=halt_on_error,
        cancel_event=run.cancel_event,
    )
    try:
        run.outcomes = orchestrator.run(batch)
    finally:
        (registry if batch_registry is None else batch_registry).finish(batch_id)
    return run.outcomes


def execute_batch_in_background(
    session_factory: Callable[[], Session],
    batch_id: int,
    run: ActiveRun,
    provider: TextCompletionProvider,
    store: FileStore,
    halt_on_error: Optional[bool] = None,
    batch_registry: Optional[BatchRegistry] = None,
) -> None:
    """
    BackgroundTasks entry point. The request session is closed by the time this
    runs, so the batch is reloaded in a fresh one.
    """
    db = session_factory()
    try:
        batch = db.query(BatchJob).filter(BatchJob.id == batch_id).first()
        if batch is None:
            logger.error(f"Batch {batch_id} not found during background processing.")
            (registry if batch_registry is None else batch_registry).finish(batch_id)
            return
        execute_batch(db, batch, run, provider, store, halt_on_error, batch_registry)
    except Exception as e:
        logger.error(f"Critical error in background run for batch {batch_id}: {e}")
    finally:
        db.close()

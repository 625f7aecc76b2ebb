import logging
import threading
from typing import Callable, List, Optional

from resume_screener.schemas.pipeline import ProcessingStep, StepStatus

logger = logging.getLogger(__name__)

PIPELINE_STAGES = [
    ("parse-jd", "Parsing Job Description"),
    ("extract-resumes", "Extracting Resume Content"),
    ("analyze-skills", "Analyzing Skills & Experience"),
    ("semantic-matching", "AI Semantic Matching"),
    ("generate-scores", "Generating Relevance Scores"),
    ("create-recommendations", "Creating Improvement Suggestions"),
]

Subscriber = Callable[[List[ProcessingStep]], None]


class InvalidTransitionError(RuntimeError):
    pass


class PipelineTracker:
    """
    State machine over the six pipeline steps.

    Steps run strictly in order: a step may only start once every earlier step
    has completed, and nothing starts after a step has errored. Only the
    orchestrator mutates the tracker; readers call snapshot() or subscribe().
    """

    def __init__(self, progress_increment: int = 20):
        if not 1 <= progress_increment <= 100:
            raise ValueError("progress_increment must be between 1 and 100")
        self.progress_increment = progress_increment
        self._steps = [ProcessingStep(id=step_id, label=label) for step_id, label in PIPELINE_STAGES]
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []

    # --- readers ---

    def snapshot(self) -> List[ProcessingStep]:
        with self._lock:
            return [step.model_copy() for step in self._steps]

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)
        callback(self.snapshot())

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    @property
    def failed_step(self) -> Optional[ProcessingStep]:
        with self._lock:
            return next((s.model_copy() for s in self._steps if s.status == StepStatus.ERROR), None)

    @property
    def current_step(self) -> Optional[ProcessingStep]:
        with self._lock:
            return next((s.model_copy() for s in self._steps if s.status == StepStatus.PROCESSING), None)

    @property
    def is_finished(self) -> bool:
        with self._lock:
            return (
                self._steps[-1].status == StepStatus.COMPLETED
                or any(s.status == StepStatus.ERROR for s in self._steps)
            )

    # --- transitions ---

    def start(self, step_id: str) -> None:
        with self._lock:
            index = self._index(step_id)
            step = self._steps[index]
            if step.status != StepStatus.PENDING:
                raise InvalidTransitionError(f"Step {step_id} is {step.status.value}, expected pending")
            if index > 0 and self._steps[index - 1].status != StepStatus.COMPLETED:
                raise InvalidTransitionError(f"Step {step_id} cannot start before {self._steps[index - 1].id} completes")
            step.status = StepStatus.PROCESSING
            step.progress = 0
        logger.info(f"Pipeline step {step_id} started")
        self._notify()

    def report_progress(self, step_id: str, done: int, total: int) -> None:
        """Record `done` of `total` work items, rounded down to the progress increment."""
        percent = 100 if total <= 0 else int(done * 100 / total)
        percent = max(0, min(100, percent))
        quantized = percent - percent % self.progress_increment
        with self._lock:
            step = self._steps[self._index(step_id)]
            if step.status != StepStatus.PROCESSING:
                raise InvalidTransitionError(f"Step {step_id} is not processing")
            if quantized == step.progress:
                return
            step.progress = quantized
        self._notify()

    def complete(self, step_id: str) -> None:
        with self._lock:
            step = self._steps[self._index(step_id)]
            if step.status != StepStatus.PROCESSING:
                raise InvalidTransitionError(f"Step {step_id} is {step.status.value}, expected processing")
            step.status = StepStatus.COMPLETED
            step.progress = 100
        logger.info(f"Pipeline step {step_id} completed")
        self._notify()

    def fail(self, step_id: str, error: str) -> None:
        with self._lock:
            step = self._steps[self._index(step_id)]
            if step.status == StepStatus.COMPLETED:
                raise InvalidTransitionError(f"Step {step_id} already completed")
            step.status = StepStatus.ERROR
            step.error = error
        logger.warning(f"Pipeline step {step_id} failed: {error}")
        self._notify()

    def _index(self, step_id: str) -> int:
        for index, step in enumerate(self._steps):
            if step.id == step_id:
                return index
        raise KeyError(f"Unknown pipeline step: {step_id}")

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Pipeline subscriber failed")


def steps_for_batch(status: str, failed_stage: Optional[str] = None, error: Optional[str] = None) -> List[ProcessingStep]:
    """Reconstruct step states for a batch that is no longer tracked in memory."""
    steps = [ProcessingStep(id=step_id, label=label) for step_id, label in PIPELINE_STAGES]
    if status == "completed":
        for step in steps:
            step.status, step.progress = StepStatus.COMPLETED, 100
    elif failed_stage:
        for step in steps:
            if step.id == failed_stage:
                step.status, step.error = StepStatus.ERROR, error
                break
            step.status, step.progress = StepStatus.COMPLETED, 100
    return steps

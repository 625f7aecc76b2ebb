import pytest

from resume_screener.schemas.pipeline import StepStatus
from resume_screener.services.pipeline_tracker import (
    PIPELINE_STAGES,
    InvalidTransitionError,
    PipelineTracker,
    steps_for_batch,
)


def test_starts_with_six_pending_steps():
    steps = PipelineTracker().snapshot()
    assert [s.id for s in steps] == [step_id for step_id, _ in PIPELINE_STAGES]
    assert all(s.status == StepStatus.PENDING and s.progress == 0 for s in steps)


def test_steps_must_run_in_order():
    tracker = PipelineTracker()
    with pytest.raises(InvalidTransitionError):
        tracker.start("extract-resumes")

    tracker.start("parse-jd")
    tracker.complete("parse-jd")
    tracker.start("extract-resumes")
    assert tracker.current_step.id == "extract-resumes"


def test_progress_is_quantized_to_increment():
    tracker = PipelineTracker(progress_increment=20)
    tracker.start("parse-jd")

    tracker.report_progress("parse-jd", 1, 3)
    assert tracker.snapshot()[0].progress == 20
    tracker.report_progress("parse-jd", 2, 3)
    assert tracker.snapshot()[0].progress == 60
    tracker.report_progress("parse-jd", 3, 3)
    assert tracker.snapshot()[0].progress == 100


def test_empty_work_counts_as_done():
    tracker = PipelineTracker()
    tracker.start("parse-jd")
    tracker.report_progress("parse-jd", 0, 0)
    assert tracker.snapshot()[0].progress == 100


def test_progress_requires_processing_step():
    tracker = PipelineTracker()
    with pytest.raises(InvalidTransitionError):
        tracker.report_progress("parse-jd", 1, 1)


def test_failure_blocks_later_steps():
    tracker = PipelineTracker()
    tracker.start("parse-jd")
    tracker.fail("parse-jd", "No description")

    assert tracker.failed_step.error == "No description"
    assert tracker.is_finished
    with pytest.raises(InvalidTransitionError):
        tracker.start("extract-resumes")


def test_completed_step_cannot_fail():
    tracker = PipelineTracker()
    tracker.start("parse-jd")
    tracker.complete("parse-jd")
    with pytest.raises(InvalidTransitionError):
        tracker.fail("parse-jd", "late")


def test_subscribers_see_every_change_until_unsubscribed():
    tracker = PipelineTracker(progress_increment=50)
    seen = []
    unsubscribe = tracker.subscribe(lambda steps: seen.append(steps[0].progress))

    tracker.start("parse-jd")
    tracker.report_progress("parse-jd", 1, 4)  # rounds to 0, no change
    tracker.report_progress("parse-jd", 2, 4)
    unsubscribe()
    tracker.complete("parse-jd")

    assert seen == [0, 0, 50]


def test_failing_subscriber_does_not_break_tracker():
    tracker = PipelineTracker()

    def explode(steps):
        if steps[0].status == StepStatus.PROCESSING:
            raise RuntimeError("listener bug")

    tracker.subscribe(explode)
    tracker.start("parse-jd")
    assert tracker.current_step.id == "parse-jd"


def test_rejects_bad_increment():
    with pytest.raises(ValueError):
        PipelineTracker(progress_increment=0)


def test_steps_for_failed_batch():
    steps = steps_for_batch("failed", "semantic-matching", "model down")
    statuses = [s.status for s in steps]
    assert statuses[:3] == [StepStatus.COMPLETED] * 3
    assert steps[3].status == StepStatus.ERROR
    assert steps[3].error == "model down"
    assert statuses[4:] == [StepStatus.PENDING] * 2


def test_steps_for_completed_batch():
    assert all(s.progress == 100 for s in steps_for_batch("completed"))

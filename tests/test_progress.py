import pytest

from api.schemas.analysis import AggregatedResult, ComparisonResult
from api.services.progress import ProgressTracker
from core import constants


def _statuses(event):
    return [(step.name, step.status) for step in event.steps]


def test_initial_snapshot_has_five_pending_steps_in_order():
    tracker = ProgressTracker()

    steps = tracker.snapshot()

    assert [step.name for step in steps] == constants.StepName.ALL
    assert all(step.status == constants.StepStatus.PENDING for step in steps)
    assert all(step.duration is None for step in steps)
    assert steps[0].label == "Validating images"
    assert tracker.current_step is None


def test_start_and_complete_transition_one_step():
    tracker = ProgressTracker()

    running = tracker.start(constants.StepName.VALIDATE)
    assert running.type == constants.EventType.PROGRESS
    assert running.currentStep == constants.StepName.VALIDATE
    assert running.steps[0].status == constants.StepStatus.RUNNING
    assert running.steps[0].duration is None

    completed = tracker.complete(constants.StepName.VALIDATE)
    assert completed.steps[0].status == constants.StepStatus.COMPLETED
    assert completed.steps[0].duration >= 0
    assert [step.status for step in completed.steps[1:]] == [constants.StepStatus.PENDING] * 4


def test_emitted_snapshots_do_not_change_afterwards():
    tracker = ProgressTracker()

    first = tracker.start(constants.StepName.VALIDATE)
    tracker.complete(constants.StepName.VALIDATE)
    tracker.start(constants.StepName.PREPARE)

    assert _statuses(first)[:2] == [
        (constants.StepName.VALIDATE, constants.StepStatus.RUNNING),
        (constants.StepName.PREPARE, constants.StepStatus.PENDING),
    ]


def test_status_never_regresses():
    tracker = ProgressTracker()

    with pytest.raises(RuntimeError):
        tracker.complete(constants.StepName.VALIDATE)

    tracker.start(constants.StepName.VALIDATE)
    with pytest.raises(RuntimeError):
        tracker.start(constants.StepName.VALIDATE)

    tracker.complete(constants.StepName.VALIDATE)
    with pytest.raises(RuntimeError):
        tracker.complete(constants.StepName.VALIDATE)
    with pytest.raises(RuntimeError):
        tracker.start(constants.StepName.VALIDATE)


def test_unknown_step_is_rejected():
    with pytest.raises(ValueError):
        ProgressTracker().start("upload")


def test_analyze_steps_can_complete_in_either_order():
    tracker = ProgressTracker()
    tracker.start(constants.StepName.ANALYZE_BEFORE)
    tracker.start(constants.StepName.ANALYZE_AFTER)

    event = tracker.complete(constants.StepName.ANALYZE_AFTER)
    assert event.currentStep == constants.StepName.ANALYZE_AFTER
    assert dict(_statuses(event))[constants.StepName.ANALYZE_BEFORE] == constants.StepStatus.RUNNING

    event = tracker.complete(constants.StepName.ANALYZE_BEFORE)
    assert dict(_statuses(event))[constants.StepName.ANALYZE_BEFORE] == constants.StepStatus.COMPLETED


def test_finish_requires_every_step_completed():
    tracker = ProgressTracker()
    result = ComparisonResult(before=AggregatedResult(), after=AggregatedResult())

    with pytest.raises(RuntimeError):
        tracker.finish(result)

    for name in constants.StepName.ALL:
        tracker.start(name)
        tracker.complete(name)

    complete = tracker.finish(result)
    assert complete.type == constants.EventType.COMPLETE
    assert complete.totalDuration >= 0
    assert complete.result == result
    assert all(step.duration is not None for step in complete.steps)

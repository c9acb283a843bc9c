from collections import deque

import pytest

from transxform.regret import RegretTracker, RegretWindow, was_pre_trajectory_recovering
from transxform.types import Action, NearMiss, RegretTag

HEAD_REINIT = Action.reinitialize("head")
RECOVERING = [0.98, 0.96, 0.94, 0.92, 0.90, 0.88]


def test_open_and_close_window():
    tracker = RegretTracker(10)
    tracker.open_window(100, "head", HEAD_REINIT, "pairwise_cosine", 0.99, deque())
    assert len(tracker.open_windows()) == 1

    for step in range(101, 111):
        tracker.update(step, {"head.pairwise_cosine": 0.80})

    assert tracker.open_windows() == []
    assert len(tracker.completed_assessments()) == 1


def test_near_miss_recording():
    tracker = RegretTracker(100)
    tracker.record_near_miss(NearMiss(50, "test", "head", 0.94, 0.95, 0.01, {}))
    assert len(tracker.near_misses) == 1
    assert tracker.near_misses[0].step == 50


def test_recovering_trajectory_detected():
    window = RegretWindow(
        intervention_step=100,
        component="head",
        action=HEAD_REINIT,
        invariant_name="cosine",
        pre_metric_value=0.88,
        pre_trajectory=deque(RECOVERING),
    )
    assert was_pre_trajectory_recovering(window)


def test_short_trajectory_not_recovering():
    window = RegretWindow(1, "head", HEAD_REINIT, "cosine", 0.9, pre_trajectory=[0.9, 0.5])
    assert not was_pre_trajectory_recovering(window)


def test_large_improvement_is_confident():
    tracker = RegretTracker(10)
    tracker.open_window(100, "head", HEAD_REINIT, "pairwise_cosine", 0.99)
    assessments = []
    for step in range(101, 111):
        assessments += tracker.update(step, {"head.pairwise_cosine": 0.80})
    assert len(assessments) == 1
    result = assessments[0]
    assert result.tag is RegretTag.CONFIDENT
    assert result.post_improvement == pytest.approx(0.19)
    assert result.recovery_steps is None
    assert result.was_recovering is False


def test_no_improvement_while_recovering_is_low_confidence():
    tracker = RegretTracker(5)
    tracker.open_window(0, "head", HEAD_REINIT, "head.pairwise_cosine", 0.88, RECOVERING)
    assessments = []
    for step in range(1, 6):
        assessments += tracker.update(step, {"head.pairwise_cosine": 0.88})
    assert [a.tag for a in assessments] == [RegretTag.LOW_CONFIDENCE]
    assert assessments[0].recovery_steps == 1


def test_falls_back_to_invariant_name_key():
    tracker = RegretTracker(1)
    tracker.open_window(0, "head", HEAD_REINIT, "loss", 2.0)
    tracker.update(1, {"loss": 1.0})
    assert tracker.completed_assessments()[0].post_improvement == pytest.approx(1.0)


def test_save_and_restore_state():
    tracker = RegretTracker(10)
    tracker.open_window(0, "head", HEAD_REINIT, "pairwise_cosine", 0.99)
    state = tracker.save_state()

    other = RegretTracker(50)
    other.restore_state(state)
    assert other.regret_window_length == 10
    assert len(other.open_windows()) == 1
    other.update(10, {"head.pairwise_cosine": 0.5})
    assert len(other.completed_assessments()) == 1
    assert len(tracker.open_windows()) == 1
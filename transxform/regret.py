"""Tracking of intervention regret and near-misses."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .types import Action, MetricSnapshot, NearMiss, RegretTag


@dataclass
class RegretWindow:
    """An observation window opened after a hard intervention."""

    intervention_step: int
    component: str
    action: Action
    invariant_name: str
    pre_metric_value: float
    post_metric_values: List[Tuple[int, float]] = field(default_factory=list)
    pre_trajectory: List[float] = field(default_factory=list)
    tag: RegretTag = RegretTag.PENDING
    closed: bool = False

    @property
    def metric_key(self) -> str:
        metric = self.invariant_name.split(".")[-1]
        return f"{self.component}.{metric}"


@dataclass
class RegretAssessment:
    """The evaluation of a closed regret window."""

    intervention_step: int
    component: str
    action: Action
    recovery_steps: Optional[int]
    post_improvement: float
    was_recovering: bool
    tag: RegretTag


@dataclass
class RegretTrackerState:
    windows: List[RegretWindow] = field(default_factory=list)
    near_misses: List[NearMiss] = field(default_factory=list)
    regret_window_length: int = 100


def _compute_improvement(window: RegretWindow) -> float:
    if not window.post_metric_values:
        return 0.0
    post_avg = sum(v for _, v in window.post_metric_values) / len(window.post_metric_values)
    return abs(post_avg - window.pre_metric_value)


def _is_sign_positive(value: float) -> bool:
    return math.copysign(1.0, value) > 0


def _compute_recovery_steps(window: RegretWindow) -> Optional[int]:
    pre_positive = _is_sign_positive(window.pre_metric_value)
    for step, value in window.post_metric_values:
        if abs(window.pre_metric_value - value) < 0.01 or _is_sign_positive(value) != pre_positive:
            return step - window.intervention_step
    return None


def was_pre_trajectory_recovering(window: RegretWindow) -> bool:
    """Whether the metric was already moving toward zero before the intervention."""
    traj = list(window.pre_trajectory)
    if len(traj) < 3:
        return False
    mid = len(traj) // 2
    first_half = sum(traj[:mid]) / mid
    second_half = sum(traj[mid:]) / (len(traj) - mid)
    delta = abs(second_half - first_half)
    return delta > 0.01 and abs(second_half) < abs(first_half)


def _assess_window(window: RegretWindow) -> RegretTag:
    improvement = _compute_improvement(window)
    recovering = was_pre_trajectory_recovering(window)
    if improvement > 0.1 and not recovering:
        return RegretTag.CONFIDENT
    if improvement <= 0.0 and recovering:
        return RegretTag.LOW_CONFIDENCE
    if recovering and improvement < 0.05:
        return RegretTag.LOW_CONFIDENCE
    return RegretTag.CONFIDENT


def _assessment(window: RegretWindow) -> RegretAssessment:
    return RegretAssessment(
        intervention_step=window.intervention_step,
        component=window.component,
        action=window.action,
        recovery_steps=_compute_recovery_steps(window),
        post_improvement=_compute_improvement(window),
        was_recovering=was_pre_trajectory_recovering(window),
        tag=window.tag,
    )


class RegretTracker:
    """Opens a window per intervention and judges it once the window expires."""

    def __init__(self, regret_window_length: int) -> None:
        self._windows: List[RegretWindow] = []
        self._near_misses: List[NearMiss] = []
        self.regret_window_length = regret_window_length

    def open_window(
        self,
        step: int,
        component: str,
        action: Action,
        invariant_name: str,
        pre_metric_value: float,
        pre_trajectory: Iterable[float] = (),
    ) -> None:
        self._windows.append(
            RegretWindow(
                intervention_step=step,
                component=component,
                action=action,
                invariant_name=invariant_name,
                pre_metric_value=pre_metric_value,
                pre_trajectory=list(pre_trajectory),
            )
        )

    def update(self, step: int, metrics: MetricSnapshot) -> List[RegretAssessment]:
        """Feed metrics into open windows; return assessments of windows closed now."""
        assessments = []
        for window in self._windows:
            if window.closed:
                continue
            value = metrics.get(window.metric_key)
            if value is None:
                value = metrics.get(window.invariant_name)
            if value is not None:
                window.post_metric_values.append((step, value))

            if step >= window.intervention_step + self.regret_window_length:
                window.closed = True
                window.tag = _assess_window(window)
                assessments.append(_assessment(window))
        return assessments

    def record_near_miss(self, near_miss: NearMiss) -> None:
        self._near_misses.append(near_miss)

    @property
    def near_misses(self) -> List[NearMiss]:
        return list(self._near_misses)

    def open_windows(self) -> List[RegretWindow]:
        return [w for w in self._windows if not w.closed]

    def completed_assessments(self) -> List[RegretAssessment]:
        return [_assessment(w) for w in self._windows if w.closed]

    def save_state(self) -> RegretTrackerState:
        return RegretTrackerState(
            windows=copy.deepcopy(self._windows),
            near_misses=copy.deepcopy(self._near_misses),
            regret_window_length=self.regret_window_length,
        )

    def restore_state(self, state: RegretTrackerState) -> None:
        self._windows = list(state.windows)
        self._near_misses = list(state.near_misses)
        self.regret_window_length = state.regret_window_length
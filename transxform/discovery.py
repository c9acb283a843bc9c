"""Bootstrap threshold discovery from observed metric history.

Observation only: statistics collected during early training are turned into
proposed hard (p01/p99) and soft (p05/p95) thresholds, widened by a safety
margin, with direction inferred from the metric name.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .types import MetricSnapshot, ThresholdDirection


@dataclass
class ThresholdProposal:
    """A proposed threshold for one metric key."""

    metric_key: str
    component: str
    direction: ThresholdDirection
    proposed_hard: float
    proposed_soft: float
    observed_min: float
    observed_max: float
    observed_mean: float
    observed_std: float
    p01: float
    p05: float
    p95: float
    p99: float
    sample_count: int


@dataclass
class DiscoveryReport:
    """All threshold proposals produced at one step."""

    step: int
    observation_steps: int
    proposals: List[ThresholdProposal] = field(default_factory=list)
    phase_shift_detected_at: Optional[int] = None


@dataclass
class DiscoveryConfig:
    """Settings for discovery analysis."""

    min_samples: int = 50
    hard_percentile: float = 0.99
    soft_percentile: float = 0.95
    safety_margin: float = 1.05


def _finite_series(history: Iterable[MetricSnapshot], key: str) -> List[float]:
    return [
        snapshot[key]
        for snapshot in history
        if key in snapshot and math.isfinite(snapshot[key])
    ]


def _sample_std(values: Sequence[float], mean: float) -> float:
    if len(values) <= 1:
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / (len(values) - 1)
    return math.sqrt(variance)


def analyze(
    history: Sequence[MetricSnapshot],
    components: Iterable[str],
    config: Optional[DiscoveryConfig] = None,
    step: int = 0,
) -> DiscoveryReport:
    """Propose thresholds from the empirical distribution of each metric.

    Keys of the form "component.metric" are considered only when the component
    is declared; dotless keys belong to "global". Metrics with fewer than
    ``config.min_samples`` finite observations are left out.
    """
    config = config or DiscoveryConfig()
    component_set = set(components)
    all_keys = {key for snapshot in history for key in snapshot}

    proposals: List[ThresholdProposal] = []
    for key in all_keys:
        comp, dot, _ = key.partition(".")
        if dot:
            if comp not in component_set:
                continue
            component = comp
        else:
            component = "global"

        values = _finite_series(history, key)
        if len(values) < config.min_samples:
            continue

        ordered = sorted(values)
        n = len(values)
        mean = sum(values) / n
        std = _sample_std(values, mean)

        p01 = percentile(ordered, 0.01)
        p05 = percentile(ordered, 0.05)
        p95 = percentile(ordered, 0.95)
        p99 = percentile(ordered, 0.99)

        direction = infer_direction(key)
        if direction is ThresholdDirection.MIN:
            hard = p01 / config.safety_margin
            soft = p05 / config.safety_margin
        else:
            hard = p99 * config.safety_margin
            soft = p95 * config.safety_margin

        proposals.append(
            ThresholdProposal(
                metric_key=key,
                component=component,
                direction=direction,
                proposed_hard=hard,
                proposed_soft=soft,
                observed_min=ordered[0],
                observed_max=ordered[-1],
                observed_mean=mean,
                observed_std=std,
                p01=p01,
                p05=p05,
                p95=p95,
                p99=p99,
                sample_count=n,
            )
        )

    proposals.sort(key=lambda p: (p.component, p.metric_key))

    return DiscoveryReport(
        step=step,
        observation_steps=len(history),
        proposals=proposals,
        phase_shift_detected_at=detect_phase_shift(history, "loss"),
    )


def infer_direction(metric_key: str) -> ThresholdDirection:
    """MIN for names mentioning min, floor or liveliness; MAX otherwise."""
    lower = metric_key.lower()
    if "min" in lower or "floor" in lower or "liveliness" in lower:
        return ThresholdDirection.MIN
    return ThresholdDirection.MAX


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linearly interpolated percentile of an already sorted sequence."""
    if not sorted_values:
        return 0.0
    count = len(sorted_values)
    if count == 1:
        return sorted_values[0]

    rank = p * (count - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    frac = rank - lower

    if lower == upper or upper >= count:
        return sorted_values[min(lower, count - 1)]
    return sorted_values[lower] * (1.0 - frac) + sorted_values[upper] * frac


def detect_phase_shift(history: Sequence[MetricSnapshot], key: str) -> Optional[int]:
    """Index of the midpoint if the second half's mean moved significantly.

    Significant means more than two standard deviations of the first half, or,
    when the first half is constant, more than 10% of its mean.
    """
    values = _finite_series(history, key)
    if len(values) < 20:
        return None

    mid = len(values) // 2
    first, second = values[:mid], values[mid:]

    first_mean = sum(first) / len(first)
    second_mean = sum(second) / len(second)
    first_std = _sample_std(first, first_mean)

    shift = abs(second_mean - first_mean)
    if first_std > 1e-12:
        significant = shift > 2.0 * first_std
    else:
        significant = shift / max(abs(first_mean), 1e-12) > 0.1

    return mid if significant else None
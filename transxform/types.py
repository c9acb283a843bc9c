"""Core value types shared across the training supervisor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

MetricSnapshot = Dict[str, float]


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class Phase(_StrEnum):
    """Training phases, in forward order, plus the terminal Aborted state."""

    BOOTSTRAP = "bootstrap"
    REPRESENTATION_FORMATION = "representation_formation"
    STABILIZATION = "stabilization"
    REFINEMENT = "refinement"
    ABORTED = "aborted"

    def next(self) -> Optional["Phase"]:
        """The phase that follows this one, or None at the end."""
        return _PHASE_NEXT.get(self)

    def prev(self) -> Optional["Phase"]:
        """The phase that precedes this one, or None at the start."""
        return _PHASE_PREV.get(self)

    def is_terminal(self) -> bool:
        return self is Phase.ABORTED


_PHASE_ORDER = (
    Phase.BOOTSTRAP,
    Phase.REPRESENTATION_FORMATION,
    Phase.STABILIZATION,
    Phase.REFINEMENT,
)
_PHASE_NEXT = dict(zip(_PHASE_ORDER, _PHASE_ORDER[1:]))
_PHASE_PREV = dict(zip(_PHASE_ORDER[1:], _PHASE_ORDER))


class Severity(_StrEnum):
    HARD = "hard"
    SOFT = "soft"


class ThresholdDirection(_StrEnum):
    """MIN: the metric must stay above the threshold; MAX: below it."""

    MIN = "min"
    MAX = "max"


class MetricTier(_StrEnum):
    TIER0 = "tier0"
    TIER1 = "tier1"
    TIER2 = "tier2"


class RegretTag(_StrEnum):
    PENDING = "pending"
    CONFIDENT = "confident"
    LOW_CONFIDENCE = "low_confidence"


class NegativeVerdict(_StrEnum):
    UNSATISFIABLE_SPEC = "UNSATISFIABLE_SPEC"
    UNSTABLE_ARCHITECTURE = "UNSTABLE_ARCHITECTURE"
    INSUFFICIENT_SIGNAL = "INSUFFICIENT_SIGNAL"
    DEGENERATE_OBJECTIVE = "DEGENERATE_OBJECTIVE"


_VERDICT_KINDS = ("healthy", "recovered", "compromised")


@dataclass(frozen=True)
class HealthVerdict:
    """Overall health of a finished training run."""

    kind: str
    intervention_count: Optional[int] = None
    details: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in _VERDICT_KINDS:
            raise ValueError(f"unknown health verdict: {self.kind!r}")

    @classmethod
    def healthy(cls) -> "HealthVerdict":
        return cls("healthy")

    @classmethod
    def recovered(cls, intervention_count: int) -> "HealthVerdict":
        return cls("recovered", intervention_count=intervention_count)

    @classmethod
    def compromised(cls, details: str) -> "HealthVerdict":
        return cls("compromised", details=details)

    def __str__(self) -> str:
        if self.kind == "healthy":
            return "HEALTHY"
        if self.kind == "recovered":
            return f"RECOVERED ({self.intervention_count} interventions)"
        return f"COMPROMISED: {self.details}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        if self.intervention_count is not None:
            data["intervention_count"] = self.intervention_count
        if self.details is not None:
            data["details"] = self.details
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthVerdict":
        return cls(
            data["kind"],
            intervention_count=data.get("intervention_count"),
            details=data.get("details"),
        )


_ACTION_KINDS = (
    "reinitialize",
    "freeze",
    "unfreeze",
    "rescale",
    "inject_noise",
    "adjust_lr",
    "abort",
)


@dataclass(frozen=True)
class Action:
    """An intervention the supervisor can apply to a model component."""

    kind: str
    component: Optional[str] = None
    factor: Optional[float] = None
    magnitude: Optional[float] = None
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in _ACTION_KINDS:
            raise ValueError(f"unknown action: {self.kind!r}")
        if self.kind == "abort":
            if self.reason is None:
                raise ValueError("abort requires a reason")
        elif self.component is None:
            raise ValueError(f"{self.kind} requires a component")
        if self.kind in ("rescale", "adjust_lr") and self.factor is None:
            raise ValueError(f"{self.kind} requires a factor")
        if self.kind == "inject_noise" and self.magnitude is None:
            raise ValueError("inject_noise requires a magnitude")

    @classmethod
    def reinitialize(cls, component: str) -> "Action":
        return cls("reinitialize", component=component)

    @classmethod
    def freeze(cls, component: str) -> "Action":
        return cls("freeze", component=component)

    @classmethod
    def unfreeze(cls, component: str) -> "Action":
        return cls("unfreeze", component=component)

    @classmethod
    def rescale(cls, component: str, factor: float) -> "Action":
        return cls("rescale", component=component, factor=factor)

    @classmethod
    def inject_noise(cls, component: str, magnitude: float) -> "Action":
        return cls("inject_noise", component=component, magnitude=magnitude)

    @classmethod
    def adjust_lr(cls, component: str, factor: float) -> "Action":
        return cls("adjust_lr", component=component, factor=factor)

    @classmethod
    def abort(cls, reason: str) -> "Action":
        return cls("abort", reason=reason)

    def action_name(self) -> str:
        return self.kind

    def __str__(self) -> str:
        if self.kind in ("rescale", "adjust_lr"):
            return f"{self.kind}({self.component}, {self.factor:.4f})"
        if self.kind == "inject_noise":
            return f"inject_noise({self.component}, {self.magnitude:.6f})"
        if self.kind == "abort":
            return f"abort({self.reason})"
        return f"{self.kind}({self.component})"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        for name in ("component", "factor", "magnitude", "reason"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        return cls(
            data["kind"],
            component=data.get("component"),
            factor=data.get("factor"),
            magnitude=data.get("magnitude"),
            reason=data.get("reason"),
        )


@dataclass
class Violation:
    invariant_name: str
    component: str
    severity: Severity
    observed: float
    threshold: float
    direction: ThresholdDirection
    step: int
    passive: bool = False


@dataclass
class NearMiss:
    step: int
    invariant_name: str
    component: str
    observed: float
    hard_threshold: float
    margin: float
    metric_snapshot: MetricSnapshot = field(default_factory=dict)


@dataclass
class PhaseTransition:
    from_phase: Phase
    to_phase: Phase
    step: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_phase.value,
            "to": self.to_phase.value,
            "step": self.step,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhaseTransition":
        return cls(Phase(data["from"]), Phase(data["to"]), data["step"], data["reason"])


@dataclass
class RuntimeAmendment:
    """A threshold relaxed at runtime, with the reason for it."""

    metric_key: str
    original_threshold: float
    relaxed_threshold: float
    reason: str
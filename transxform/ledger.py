"""Append-only audit log of violations, interventions and phase changes."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .types import (
    Action,
    HealthVerdict,
    MetricSnapshot,
    NearMiss,
    Phase,
    PhaseTransition,
    RegretTag,
    RuntimeAmendment,
    Violation,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEntryType(str, Enum):
    VIOLATION = "violation"
    NEAR_MISS = "near_miss"
    PHASE_TRANSITION = "phase_transition"
    ABORT = "abort"
    ADVISORY = "advisory"
    AMENDMENT = "amendment"
    SHADOW_ROLLBACK = "shadow_rollback"

    def __str__(self) -> str:
        return self.value


class InterventionOutcome(str, Enum):
    PENDING = "pending"
    RECOVERED = "recovered"
    PERSISTED = "persisted"
    WORSENED = "worsened"

    def __str__(self) -> str:
        return self.value


@dataclass
class LedgerEntry:
    """A single record in the ledger."""

    step: int
    timestamp: datetime
    phase: Phase
    component: str
    invariant: str
    metric_snapshot: MetricSnapshot
    action: Action
    justification: str
    outcome: InterventionOutcome
    regret_tag: Optional[RegretTag]
    entry_type: LedgerEntryType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "timestamp": self.timestamp.isoformat(),
            "phase": self.phase.value,
            "component": self.component,
            "invariant": self.invariant,
            "metric_snapshot": dict(self.metric_snapshot),
            "action": self.action.to_dict(),
            "justification": self.justification,
            "outcome": self.outcome.value,
            "regret_tag": self.regret_tag.value if self.regret_tag is not None else None,
            "entry_type": self.entry_type.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerEntry":
        tag = data.get("regret_tag")
        return cls(
            step=data["step"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            phase=Phase(data["phase"]),
            component=data["component"],
            invariant=data["invariant"],
            metric_snapshot=dict(data.get("metric_snapshot", {})),
            action=Action.from_dict(data["action"]),
            justification=data["justification"],
            outcome=InterventionOutcome(data["outcome"]),
            regret_tag=RegretTag(tag) if tag is not None else None,
            entry_type=LedgerEntryType(data["entry_type"]),
        )


@dataclass
class DiagnosticSummary:
    """Counts of advisory diagnostic warnings."""

    total_warnings: int = 0
    acknowledged: int = 0
    unacknowledged: int = 0
    by_signal: Dict[str, int] = field(default_factory=dict)


@dataclass
class InvariantCompliance:
    invariant_name: str
    total_checks: int
    violations: int
    compliance_rate: float


@dataclass
class InterventionSummary:
    total_hard: int
    total_soft: int
    by_component: Dict[str, int] = field(default_factory=dict)
    by_action: Dict[str, int] = field(default_factory=dict)


@dataclass
class RegretSummary:
    total_assessed: int
    confident: int
    low_confidence: int
    near_misses: int


@dataclass
class TrainingCertificate:
    """End-of-run health certificate."""

    model_name: str
    total_steps: int
    start_time: datetime
    end_time: datetime
    verdict: HealthVerdict
    invariant_compliance: Dict[str, InvariantCompliance]
    intervention_summary: InterventionSummary
    phase_trace: List[PhaseTransition]
    final_health: MetricSnapshot
    regret_summary: RegretSummary
    diagnostic_summary: DiagnosticSummary = field(default_factory=DiagnosticSummary)


@dataclass
class LedgerState:
    """Everything a ledger holds, for checkpointing."""

    entries: List[LedgerEntry] = field(default_factory=list)
    start_time: datetime = field(default_factory=_now)
    invariant_check_counts: Dict[str, int] = field(default_factory=dict)
    invariant_violation_counts: Dict[str, int] = field(default_factory=dict)


_HARD_ACTIONS = ("reinitialize", "inject_noise")


class BoundaryLedger:
    """Append-only record of everything the supervisor observed and did."""

    def __init__(self) -> None:
        self._entries: List[LedgerEntry] = []
        self._start_time = _now()
        self._check_counts: Dict[str, int] = {}
        self._violation_counts: Dict[str, int] = {}

    @property
    def entries(self) -> List[LedgerEntry]:
        return list(self._entries)

    @property
    def start_time(self) -> datetime:
        return self._start_time

    def _append(
        self,
        step: int,
        phase: Phase,
        component: str,
        invariant: str,
        action: Action,
        justification: str,
        entry_type: LedgerEntryType,
        snapshot: Optional[MetricSnapshot] = None,
    ) -> None:
        self._entries.append(
            LedgerEntry(
                step=step,
                timestamp=_now(),
                phase=phase,
                component=component,
                invariant=invariant,
                metric_snapshot=dict(snapshot) if snapshot else {},
                action=action,
                justification=justification,
                outcome=InterventionOutcome.PENDING,
                regret_tag=None,
                entry_type=entry_type,
            )
        )

    def record(
        self,
        step: int,
        phase: Phase,
        violation: Violation,
        action: Action,
        justification: str,
        snapshot: Optional[MetricSnapshot] = None,
    ) -> None:
        """Record a violation and the intervention taken for it."""
        name = violation.invariant_name
        self._violation_counts[name] = self._violation_counts.get(name, 0) + 1
        self._append(
            step,
            phase,
            violation.component,
            name,
            action,
            justification,
            LedgerEntryType.VIOLATION,
            snapshot,
        )

    def record_near_miss(self, step: int, phase: Phase, near_miss: NearMiss) -> None:
        self._append(
            step,
            phase,
            near_miss.component,
            near_miss.invariant_name,
            Action.abort("near_miss (no action taken)"),
            f"Near-miss: observed={near_miss.observed:.6f}, "
            f"hard_threshold={near_miss.hard_threshold:.6f}, "
            f"margin={near_miss.margin:.6f}",
            LedgerEntryType.NEAR_MISS,
            near_miss.metric_snapshot,
        )

    def record_advisory(
        self, step: int, phase: Phase, signal_name: str, summary: str
    ) -> None:
        """Record an advisory diagnostic warning; no intervention is implied."""
        self._append(
            step,
            phase,
            "diagnostic",
            signal_name,
            Action.abort(f"advisory: {signal_name}"),
            summary,
            LedgerEntryType.ADVISORY,
        )

    def record_amendment(
        self, step: int, phase: Phase, amendment: RuntimeAmendment
    ) -> None:
        """Record a threshold relaxed at runtime."""
        self._append(
            step,
            phase,
            "system",
            amendment.metric_key,
            Action.abort(
                f"threshold relaxed: {amendment.original_threshold:.6f} → "
                f"{amendment.relaxed_threshold:.6f}"
            ),
            amendment.reason,
            LedgerEntryType.AMENDMENT,
        )

    def record_shadow_rollback(
        self, step: int, phase: Phase, violations: Iterable[Violation]
    ) -> None:
        """Record one rollback recommendation per violation an optimizer step introduced."""
        for v in violations:
            self._append(
                step,
                phase,
                v.component,
                v.invariant_name,
                Action.abort("shadow_rollback"),
                f"Optimizer step introduced new violation: observed={v.observed:.6f}, "
                f"threshold={v.threshold:.6f}. Rollback recommended.",
                LedgerEntryType.SHADOW_ROLLBACK,
            )

    def record_phase_transition(self, step: int, transition: PhaseTransition) -> None:
        self._append(
            step,
            transition.to_phase,
            "system",
            "phase_transition",
            Action.abort(f"{transition.from_phase} → {transition.to_phase}"),
            transition.reason,
            LedgerEntryType.PHASE_TRANSITION,
        )

    def update_outcome(
        self,
        intervention_step: int,
        component: str,
        outcome: InterventionOutcome,
        regret_tag: RegretTag,
    ) -> None:
        """Set outcome and regret tag on the latest matching violation entry."""
        for entry in reversed(self._entries):
            if (
                entry.step == intervention_step
                and entry.component == component
                and entry.entry_type is LedgerEntryType.VIOLATION
            ):
                entry.outcome = outcome
                entry.regret_tag = regret_tag
                return

    def record_check(self, invariant_name: str) -> None:
        """Count one evaluation of an invariant, for compliance rates."""
        self._check_counts[invariant_name] = self._check_counts.get(invariant_name, 0) + 1

    def emit_certificate(
        self,
        model_name: str,
        total_steps: int,
        final_metrics: MetricSnapshot,
        phase_trace: Sequence[PhaseTransition] = (),
        diagnostic_summary: Optional[DiagnosticSummary] = None,
    ) -> TrainingCertificate:
        violations = [
            e for e in self._entries if e.entry_type is LedgerEntryType.VIOLATION
        ]
        total_hard = sum(1 for e in violations if e.action.kind in _HARD_ACTIONS)
        total_soft = len(violations) - total_hard

        by_component: Dict[str, int] = {}
        by_action: Dict[str, int] = {}
        for entry in violations:
            by_component[entry.component] = by_component.get(entry.component, 0) + 1
            name = entry.action.action_name()
            by_action[name] = by_action.get(name, 0) + 1

        compliance: Dict[str, InvariantCompliance] = {}
        for name, checks in self._check_counts.items():
            violated = self._violation_counts.get(name, 0)
            rate = 1.0 - violated / checks if checks > 0 else 1.0
            compliance[name] = InvariantCompliance(name, checks, violated, rate)

        assessed = [e for e in self._entries if e.regret_tag is not None]
        confident = sum(1 for e in assessed if e.regret_tag is RegretTag.CONFIDENT)
        low_confidence = sum(
            1 for e in assessed if e.regret_tag is RegretTag.LOW_CONFIDENCE
        )
        near_misses = sum(
            1 for e in self._entries if e.entry_type is LedgerEntryType.NEAR_MISS
        )

        unresolved = any(
            e.outcome in (InterventionOutcome.PERSISTED, InterventionOutcome.WORSENED)
            for e in violations
        )
        if not violations:
            verdict = HealthVerdict.healthy()
        elif unresolved:
            verdict = HealthVerdict.compromised("Unresolved violations at training end")
        else:
            verdict = HealthVerdict.recovered(len(violations))

        return TrainingCertificate(
            model_name=model_name,
            total_steps=total_steps,
            start_time=self._start_time,
            end_time=_now(),
            verdict=verdict,
            invariant_compliance=compliance,
            intervention_summary=InterventionSummary(
                total_hard, total_soft, by_component, by_action
            ),
            phase_trace=list(phase_trace),
            final_health=dict(final_metrics),
            regret_summary=RegretSummary(
                total_assessed=len(assessed),
                confident=confident,
                low_confidence=low_confidence,
                near_misses=near_misses,
            ),
            diagnostic_summary=diagnostic_summary or DiagnosticSummary(),
        )

    def save_state(self) -> LedgerState:
        return LedgerState(
            entries=copy.deepcopy(self._entries),
            start_time=self._start_time,
            invariant_check_counts=dict(self._check_counts),
            invariant_violation_counts=dict(self._violation_counts),
        )

    def restore_state(self, state: LedgerState) -> None:
        self._entries = list(state.entries)
        self._start_time = state.start_time
        self._check_counts = dict(state.invariant_check_counts)
        self._violation_counts = dict(state.invariant_violation_counts)

    def to_json(self) -> str:
        """All entries as pretty-printed JSON."""
        return json.dumps([e.to_dict() for e in self._entries], indent=2, ensure_ascii=False)

    def last_entry(self) -> Optional[LedgerEntry]:
        return self._entries[-1] if self._entries else None

    def entries_for_component(self, component: str) -> List[LedgerEntry]:
        return [e for e in self._entries if e.component == component]

    def violation_count(self, component: str, phase: Phase) -> int:
        """Violation entries for a component within a phase."""
        return sum(
            1
            for e in self._entries
            if e.component == component
            and e.phase is phase
            and e.entry_type is LedgerEntryType.VIOLATION
        )
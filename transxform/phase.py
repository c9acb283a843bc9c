"""Finite state machine over training phases."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .types import Phase, PhaseTransition, Severity, Violation

DEFAULT_GUARD_STEPS = 50


@dataclass
class TransitionGuard:
    """Clean steps required before a phase may advance."""

    all_hard_invariants_satisfied_for: int = DEFAULT_GUARD_STEPS


@dataclass
class PhaseDecl:
    """Per-phase thresholds, allowed interventions, duration and guard."""

    thresholds: Dict[str, float] = field(default_factory=dict)
    allowed_interventions: Optional[List[str]] = None
    max_duration_steps: Optional[int] = None
    transition_guard: Optional[TransitionGuard] = None


@dataclass
class PhasesDecl:
    """Declarations for each training phase; a missing phase uses defaults."""

    bootstrap: Optional[PhaseDecl] = None
    representation_formation: Optional[PhaseDecl] = None
    stabilization: Optional[PhaseDecl] = None
    refinement: Optional[PhaseDecl] = None


@dataclass
class PhaseControllerState:
    """The mutable part of a phase controller, for checkpointing."""

    current: Phase = Phase.BOOTSTRAP
    consecutive_satisfied: int = 0
    phase_entry_step: int = 0
    regression_count: Dict[str, int] = field(default_factory=dict)
    phase_history: List[PhaseTransition] = field(default_factory=list)
    readiness_blocked_since: Optional[int] = None


class PhaseController:
    """Tracks the current phase and decides when to advance, regress or abort."""

    def __init__(self, phases: PhasesDecl) -> None:
        self._phases_config = copy.deepcopy(phases)
        self._current = Phase.BOOTSTRAP
        self._consecutive_satisfied = 0
        self._phase_entry_step = 0
        self._regression_count: Dict[str, int] = {}
        self._phase_history: List[PhaseTransition] = []
        self._readiness_blocked_since: Optional[int] = None

    @property
    def current_phase(self) -> Phase:
        return self._current

    @property
    def history(self) -> List[PhaseTransition]:
        return list(self._phase_history)

    @property
    def consecutive_satisfied(self) -> int:
        """Consecutive steps with all hard invariants satisfied."""
        return self._consecutive_satisfied

    @property
    def readiness_blocked_since(self) -> Optional[int]:
        """Step at which the readiness gate began blocking an advance, if it is."""
        return self._readiness_blocked_since

    def _decl_for(self, phase: Phase) -> Optional[PhaseDecl]:
        config = self._phases_config
        return {
            Phase.BOOTSTRAP: config.bootstrap,
            Phase.REPRESENTATION_FORMATION: config.representation_formation,
            Phase.STABILIZATION: config.stabilization,
            Phase.REFINEMENT: config.refinement,
        }.get(phase)

    def current_thresholds(self) -> Dict[str, float]:
        return self.thresholds_for(self._current)

    def thresholds_for(self, phase: Phase) -> Dict[str, float]:
        decl = self._decl_for(phase)
        return dict(decl.thresholds) if decl is not None else {}

    def allowed_interventions(self) -> Optional[List[str]]:
        """Interventions allowed in the current phase; None means all."""
        decl = self._decl_for(self._current)
        if decl is None or decl.allowed_interventions is None:
            return None
        return list(decl.allowed_interventions)

    def update(
        self,
        violations: Sequence[Violation],
        hard_intervention_counts: Mapping[str, int],
        max_hard_interventions: int,
        step: int,
        readiness_ok: bool = True,
    ) -> Optional[PhaseTransition]:
        """Advance the state machine by one step; return a transition if one happened.

        When ``readiness_ok`` is false, forward transitions are held back even
        if the transition guard is satisfied.
        """
        if self._current.is_terminal():
            return None

        if any(v.severity is Severity.HARD for v in violations):
            self._consecutive_satisfied = 0
        else:
            self._consecutive_satisfied += 1

        for component, count in hard_intervention_counts.items():
            if count < max_hard_interventions:
                continue
            regressions = self._regression_count.setdefault(component, 0)
            if regressions >= 1:
                return self._transition_to(
                    Phase.ABORTED,
                    step,
                    f"Component '{component}' exhausted intervention budget "
                    "across multiple phases",
                )
            prev = self._current.prev()
            if prev is None:
                return self._transition_to(
                    Phase.ABORTED,
                    step,
                    f"Component '{component}' exhausted intervention budget in Bootstrap",
                )
            self._regression_count[component] = regressions + 1
            return self._transition_to(
                prev,
                step,
                f"Component '{component}' exhausted intervention budget "
                f"({count}/{max_hard_interventions})",
            )

        if self._consecutive_satisfied >= self.transition_guard_steps():
            if readiness_ok:
                self._readiness_blocked_since = None
                nxt = self._current.next()
                if nxt is not None:
                    return self._transition_to(
                        nxt,
                        step,
                        "All hard invariants satisfied for "
                        f"{self._consecutive_satisfied} consecutive steps",
                    )
            elif self._readiness_blocked_since is None:
                self._readiness_blocked_since = step

        if self.is_phase_expired(step) and self._consecutive_satisfied > 0 and readiness_ok:
            self._readiness_blocked_since = None
            nxt = self._current.next()
            if nxt is not None:
                return self._transition_to(
                    nxt,
                    step,
                    "Phase duration exceeded; advancing with "
                    f"{self._consecutive_satisfied} consecutive clean steps",
                )

        return None

    def is_phase_expired(self, step: int) -> bool:
        """Whether the current phase has run for its max_duration_steps."""
        decl = self._decl_for(self._current)
        if decl is None or decl.max_duration_steps is None:
            return False
        return max(0, step - self._phase_entry_step) >= decl.max_duration_steps

    def transition_guard_steps(self) -> int:
        """Clean steps required to advance out of the current phase."""
        decl = self._decl_for(self._current)
        if decl is None or decl.transition_guard is None:
            return DEFAULT_GUARD_STEPS
        return decl.transition_guard.all_hard_invariants_satisfied_for

    def save_state(self) -> PhaseControllerState:
        return PhaseControllerState(
            current=self._current,
            consecutive_satisfied=self._consecutive_satisfied,
            phase_entry_step=self._phase_entry_step,
            regression_count=dict(self._regression_count),
            phase_history=copy.deepcopy(self._phase_history),
            readiness_blocked_since=self._readiness_blocked_since,
        )

    def restore_state(self, state: PhaseControllerState) -> None:
        """Restore mutable state; the phase configuration is kept as built."""
        self._current = state.current
        self._consecutive_satisfied = state.consecutive_satisfied
        self._phase_entry_step = state.phase_entry_step
        self._regression_count = dict(state.regression_count)
        self._phase_history = list(state.phase_history)
        self._readiness_blocked_since = state.readiness_blocked_since

    def abort(self, step: int, reason: str) -> PhaseTransition:
        """Force a transition to Aborted."""
        return self._transition_to(Phase.ABORTED, step, reason)

    def _transition_to(self, to: Phase, step: int, reason: str) -> PhaseTransition:
        transition = PhaseTransition(self._current, to, step, reason)
        self._phase_history.append(transition)
        self._current = to
        self._phase_entry_step = step
        self._consecutive_satisfied = 0
        return transition
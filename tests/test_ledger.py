import json
from dataclasses import replace

import pytest

from transxform.ledger import (
    BoundaryLedger,
    DiagnosticSummary,
    InterventionOutcome,
    LedgerEntry,
    LedgerEntryType,
)
from transxform.types import (
    Action,
    HealthVerdict,
    NearMiss,
    Phase,
    PhaseTransition,
    RegretTag,
    RuntimeAmendment,
    Severity,
    ThresholdDirection,
    Violation,
)


def make_violation(**overrides):
    base = Violation(
        invariant_name="pairwise_cosine",
        component="head",
        severity=Severity.HARD,
        observed=0.99,
        threshold=0.95,
        direction=ThresholdDirection.MAX,
        step=100,
        passive=False,
    )
    return replace(base, **overrides)


@pytest.fixture
def reinit():
    return Action.reinitialize("head")


def test_record_and_retrieve(reinit):
    ledger = BoundaryLedger()
    ledger.record(100, Phase.REPRESENTATION_FORMATION, make_violation(), reinit, "test")
    assert len(ledger.entries) == 1
    assert ledger.last_entry().step == 100
    assert ledger.last_entry().entry_type is LedgerEntryType.VIOLATION
    assert ledger.last_entry().outcome is InterventionOutcome.PENDING


def test_last_entry_empty():
    assert BoundaryLedger().last_entry() is None


def test_filter_by_component(reinit):
    ledger = BoundaryLedger()
    ledger.record(100, Phase.BOOTSTRAP, make_violation(), reinit, "a")
    ledger.record(200, Phase.BOOTSTRAP, make_violation(component="backbone"), reinit, "b")
    assert len(ledger.entries_for_component("head")) == 1
    assert len(ledger.entries_for_component("backbone")) == 1


def test_record_with_snapshot(reinit):
    ledger = BoundaryLedger()
    ledger.record(5, Phase.BOOTSTRAP, make_violation(), reinit, "x", {"loss": 2.0})
    assert ledger.last_entry().metric_snapshot == {"loss": 2.0}


def test_healthy_certificate():
    cert = BoundaryLedger().emit_certificate("test", 1000, {}, [])
    assert cert.verdict == HealthVerdict.healthy()
    assert cert.total_steps == 1000


def test_recovered_certificate(reinit):
    ledger = BoundaryLedger()
    ledger.record(100, Phase.BOOTSTRAP, make_violation(), reinit, "test")
    ledger.update_outcome(100, "head", InterventionOutcome.RECOVERED, RegretTag.CONFIDENT)
    cert = ledger.emit_certificate("test", 1000, {}, [])
    assert cert.verdict == HealthVerdict.recovered(1)
    assert cert.regret_summary.total_assessed == 1
    assert cert.regret_summary.confident == 1


def test_compromised_certificate(reinit):
    ledger = BoundaryLedger()
    ledger.record(100, Phase.BOOTSTRAP, make_violation(), reinit, "test")
    ledger.update_outcome(100, "head", InterventionOutcome.PERSISTED, RegretTag.LOW_CONFIDENCE)
    cert = ledger.emit_certificate("test", 10, {}, [])
    assert cert.verdict.kind == "compromised"
    assert cert.verdict.details == "Unresolved violations at training end"
    assert cert.regret_summary.low_confidence == 1


def test_intervention_summary_hard_and_soft(reinit):
    ledger = BoundaryLedger()
    ledger.record(1, Phase.BOOTSTRAP, make_violation(), reinit, "a")
    ledger.record(2, Phase.BOOTSTRAP, make_violation(), Action.inject_noise("head", 0.01), "b")
    ledger.record(3, Phase.BOOTSTRAP, make_violation(), Action.adjust_lr("head", 0.5), "c")
    summary = ledger.emit_certificate("m", 3, {}).intervention_summary
    assert summary.total_hard == 2
    assert summary.total_soft == 1
    assert summary.by_component == {"head": 3}
    assert summary.by_action == {"reinitialize": 1, "inject_noise": 1, "adjust_lr": 1}


def test_compliance_rate(reinit):
    ledger = BoundaryLedger()
    for _ in range(4):
        ledger.record_check("pairwise_cosine")
    ledger.record_check("grad_norm")
    ledger.record(1, Phase.BOOTSTRAP, make_violation(), reinit, "a")
    compliance = ledger.emit_certificate("m", 4, {}).invariant_compliance
    assert compliance["pairwise_cosine"].violations == 1
    assert compliance["pairwise_cosine"].compliance_rate == pytest.approx(0.75)
    assert compliance["grad_norm"].compliance_rate == 1.0


def test_json_roundtrip(reinit):
    ledger = BoundaryLedger()
    ledger.record(100, Phase.BOOTSTRAP, make_violation(), reinit, "test")
    parsed = [LedgerEntry.from_dict(d) for d in json.loads(ledger.to_json())]
    assert len(parsed) == 1
    assert parsed[0].step == 100
    assert parsed[0].action == reinit
    assert parsed[0].phase is Phase.BOOTSTRAP


def test_near_miss_entry_and_count():
    ledger = BoundaryLedger()
    miss = NearMiss(50, "pairwise_cosine", "head", 0.94, 0.95, 0.01, {"head.pairwise_cosine": 0.94})
    ledger.record_near_miss(50, Phase.BOOTSTRAP, miss)
    entry = ledger.last_entry()
    assert entry.entry_type is LedgerEntryType.NEAR_MISS
    assert entry.justification == (
        "Near-miss: observed=0.940000, hard_threshold=0.950000, margin=0.010000"
    )
    assert ledger.emit_certificate("m", 50, {}).regret_summary.near_misses == 1


def test_advisory_and_amendment():
    ledger = BoundaryLedger()
    ledger.record_advisory(10, Phase.BOOTSTRAP, "loss_stagnation", "flat loss")
    assert ledger.last_entry().component == "diagnostic"
    assert ledger.last_entry().action.reason == "advisory: loss_stagnation"
    ledger.record_amendment(11, Phase.BOOTSTRAP, RuntimeAmendment("head.grad_norm", 1.0, 1.02, "why"))
    entry = ledger.last_entry()
    assert entry.entry_type is LedgerEntryType.AMENDMENT
    assert entry.action.reason == "threshold relaxed: 1.000000 → 1.020000"
    assert entry.justification == "why"


def test_shadow_rollback_one_entry_per_violation():
    ledger = BoundaryLedger()
    ledger.record_shadow_rollback(
        7, Phase.STABILIZATION, [make_violation(), make_violation(component="backbone")]
    )
    assert len(ledger.entries) == 2
    assert all(e.entry_type is LedgerEntryType.SHADOW_ROLLBACK for e in ledger.entries)
    assert ledger.entries[0].justification == (
        "Optimizer step introduced new violation: observed=0.990000, "
        "threshold=0.950000. Rollback recommended."
    )


def test_phase_transition_entry():
    ledger = BoundaryLedger()
    t = PhaseTransition(Phase.BOOTSTRAP, Phase.REPRESENTATION_FORMATION, 10, "clean")
    ledger.record_phase_transition(10, t)
    entry = ledger.last_entry()
    assert entry.phase is Phase.REPRESENTATION_FORMATION
    assert entry.invariant == "phase_transition"
    assert entry.action.reason == "bootstrap → representation_formation"


def test_update_outcome_ignores_non_violations():
    ledger = BoundaryLedger()
    ledger.record_shadow_rollback(5, Phase.BOOTSTRAP, [make_violation()])
    ledger.update_outcome(5, "head", InterventionOutcome.RECOVERED, RegretTag.CONFIDENT)
    assert ledger.last_entry().regret_tag is None


def test_violation_count_by_phase(reinit):
    ledger = BoundaryLedger()
    ledger.record(1, Phase.BOOTSTRAP, make_violation(), reinit, "a")
    ledger.record(2, Phase.BOOTSTRAP, make_violation(), reinit, "b")
    ledger.record(3, Phase.STABILIZATION, make_violation(), reinit, "c")
    assert ledger.violation_count("head", Phase.BOOTSTRAP) == 2
    assert ledger.violation_count("head", Phase.STABILIZATION) == 1
    assert ledger.violation_count("backbone", Phase.BOOTSTRAP) == 0


def test_save_and_restore_state(reinit):
    ledger = BoundaryLedger()
    ledger.record_check("pairwise_cosine")
    ledger.record(1, Phase.BOOTSTRAP, make_violation(), reinit, "a")
    state = ledger.save_state()

    other = BoundaryLedger()
    other.restore_state(state)
    assert len(other.entries) == 1
    assert other.start_time == ledger.start_time
    cert = other.emit_certificate("m", 1, {})
    assert cert.invariant_compliance["pairwise_cosine"].violations == 1


def test_certificate_carries_diagnostic_summary_and_trace():
    summary = DiagnosticSummary(total_warnings=3, acknowledged=1, unacknowledged=2)
    trace = [PhaseTransition(Phase.BOOTSTRAP, Phase.REPRESENTATION_FORMATION, 10, "ok")]
    cert = BoundaryLedger().emit_certificate("m", 20, {"loss": 1.0}, trace, summary)
    assert cert.diagnostic_summary.unacknowledged == 2
    assert cert.phase_trace == trace
    assert cert.final_health == {"loss": 1.0}
# transxform

Building blocks for supervising deep learning training loops. The package
applies interventions to a model, proposes thresholds from observed metrics,
runs a phase state machine, judges whether past interventions were needed,
keeps an append-only audit ledger, hashes run state into a tamper-evident
chain, and writes end-of-run reports.

It has no dependencies outside the standard library and is framework
agnostic: a model is reached through the small `Model` interface, which
speaks in component names and plain floats, never tensors.

## Install

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Modules

| Module | Purpose |
|--------|---------|
| `transxform.types` | `Phase`, `Severity`, `ThresholdDirection`, `MetricTier`, `RegretTag`, `NegativeVerdict`, `HealthVerdict`, `Action`, `Violation`, `NearMiss`, `PhaseTransition`, `RuntimeAmendment` |
| `transxform.errors` | `TransXformError` and its subclasses |
| `transxform.model` | The abstract `Model` interface and an in-memory `MockModel` |
| `transxform.executor` | `InterventionExecutor`, which applies an `Action` to a model |
| `transxform.discovery` | Threshold proposals from metric history (`analyze`, `percentile`, `detect_phase_shift`) |
| `transxform.merkle` | `MerkleState` hash chain, `RunManifest`, `fork`, `diff` |
| `transxform.regret` | `RegretTracker`, which opens a window per intervention and tags it when it closes |
| `transxform.phase` | `PhaseController`: Bootstrap → RepresentationFormation → Stabilization → Refinement, plus Aborted |
| `transxform.ledger` | `BoundaryLedger`, the audit log, and `TrainingCertificate` |
| `transxform.report` | `generate_report` and `Report.to_markdown()` / `Report.to_json()` |

## Applying interventions

```python
from transxform.executor import InterventionExecutor
from transxform.model import MockModel
from transxform.types import Action

model = MockModel(["backbone", "head"])
executor = InterventionExecutor(model)

executor.execute(Action.reinitialize("head"))
executor.execute(Action.freeze("backbone"))

print(model.interventions())
# [('head', 'reinitialize'), ('head', 'reset_optimizer_state'), ('backbone', 'freeze')]
```

A reinitialize is always followed by a best-effort optimizer-state reset; if
that reset raises a `TransXformError` it is logged and the reinitialize still
stands. Executing `Action.abort(reason)` never touches the model and raises
`TrainingAbortedError` with the verdict `UNSTABLE_ARCHITECTURE`. `MockModel`
raises `UnknownComponentError` for a component it does not have.

To drive a real model, subclass `Model` and implement `component_names`,
`component_metrics`, `global_metrics`, `reinitialize`, `freeze`, `unfreeze`,
`rescale`, `inject_noise` and `adjust_lr`; `reset_optimizer_state` does
nothing unless overridden.

## Discovering thresholds

Collect one metric dictionary per step while observing, then ask for
proposals:

```python
from transxform.discovery import DiscoveryConfig, analyze

history = [
    {"backbone.pairwise_cosine": 0.5, "backbone.grad_norm_min": 0.01, "loss": 2.0}
    for _ in range(100)
]
report = analyze(history, ["backbone"], DiscoveryConfig(), 100)

for proposal in report.proposals:
    print(proposal.metric_key, proposal.direction, proposal.proposed_hard, proposal.proposed_soft)
```

Keys of the form `component.metric` are considered only for the components
you name; dotless keys are grouped under `global`. Non-finite values are
dropped, and a metric with fewer than `min_samples` (default 50) values gets
no proposal. Names containing `min`, `floor` or `liveliness` are floors: hard
and soft thresholds are the 1st and 5th percentiles divided by the safety
margin. Everything else is a ceiling: the 99th and 95th percentiles
multiplied by it. The default margin is 1.05.

`report.phase_shift_detected_at` is the midpoint index when the mean of
`loss` in the second half of the history moved by more than two standard
deviations of the first half (or by more than 10% when the first half is
constant), and `None` otherwise or with fewer than 20 values.

## Phase control

```python
from transxform.phase import PhaseController, PhaseDecl, PhasesDecl, TransitionGuard
from transxform.types import Phase

phases = PhasesDecl(
    bootstrap=PhaseDecl(max_duration_steps=100, transition_guard=TransitionGuard(10)),
    refinement=PhaseDecl(allowed_interventions=["adjust_lr", "freeze"]),
)
controller = PhaseController(phases)

for step in range(10):
    controller.update([], {}, 3, step, True)

assert controller.current_phase is Phase.REPRESENTATION_FORMATION
```

`update(violations, hard_intervention_counts, max_hard_interventions, step, readiness_ok)`
advances after the guard's number of steps with no hard violation (50 when a
phase declares no guard), or once the phase's `max_duration_steps` has passed
with at least one clean step. A component that reaches its intervention
budget sends the run back one phase; the second time, or in Bootstrap, the
run is aborted. With `readiness_ok` false, forward moves are held back and
`readiness_blocked_since` records when the hold began. `save_state()` and
`restore_state()` capture and restore everything except the phase
declarations.

## Regret tracking

```python
from transxform.regret import RegretTracker
from transxform.types import Action

tracker = RegretTracker(10)
tracker.open_window(100, "head", Action.reinitialize("head"), "pairwise_cosine", 0.99)

for step in range(101, 111):
    closed = tracker.update(step, {"head.pairwise_cosine": 0.80})

print(closed[0].tag, closed[0].post_improvement)
```

A window collects the metric `component.<metric>` (or the invariant name
itself) until `regret_window_length` steps have passed, then is tagged
`CONFIDENT` or `LOW_CONFIDENCE` depending on how far the metric moved and
whether its pre-intervention trajectory was already recovering.

## Run integrity

```python
from transxform.merkle import MerkleState, build_manifest, diff, fork

state = MerkleState("spec text")
state.update(0, {"loss": 2.5}, None)
manifest = build_manifest("spec text", "model description", "adam", "weights-hash", state)
print(manifest.final_merkle_root, manifest.step_count)
```

Each update hashes the previous root, the step, the metrics in key order and
the action, if any, with SHA-256. `diff(a, b)` compares two manifests field
by field; `fork(parent, child_spec_yaml, changes)` records how a new run
departs from an earlier one.

## Ledger, certificate and report

```python
from transxform.ledger import BoundaryLedger, InterventionOutcome
from transxform.report import generate_report
from transxform.types import Action, Phase, RegretTag, Severity, ThresholdDirection, Violation

ledger = BoundaryLedger()
violation = Violation("pairwise_cosine", "head", Severity.HARD, 0.99, 0.95,
                      ThresholdDirection.MAX, 100)
ledger.record(100, Phase.BOOTSTRAP, violation, Action.reinitialize("head"), "cosine too high")
ledger.update_outcome(100, "head", InterventionOutcome.RECOVERED, RegretTag.CONFIDENT)

certificate = ledger.emit_certificate("my-model", 1000, {"loss": 1.5}, [], None)
report = generate_report(certificate, ledger, None)

print(certificate.verdict)   # RECOVERED (1 interventions)
print(report.to_markdown())
print(report.to_json())
```

A run with no recorded violations is certified healthy; one whose
interventions all resolved is recovered; any violation entry whose outcome is
persisted or worsened leaves it compromised. Besides violations, the ledger
records near-misses, advisories, threshold amendments, shadow-step rollbacks
and phase transitions, and `to_json()` writes every entry as JSON.

`generate_report` accepts, as its third argument, any object whose
`warnings` (a method or an attribute) yields items with `step`, `signal`,
`summary`, `evidence`, `confidence` and `acknowledged`; these become the
report's diagnostic advisories.

## What this package does not do

These are parts to assemble into a training loop, not a finished supervisor.
There is no spec file parser, no invariant monitor that checks metrics
against thresholds, no built-in catalogue of known failure patterns, and no
loop that wires the parts together; your code decides which violations
occurred and which actions to execute. Saved states are plain in-memory
objects: nothing is written to disk. There is no command-line program.
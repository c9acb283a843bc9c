"""Structured end-of-run reports rendered as Markdown or JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .ledger import BoundaryLedger, LedgerEntryType, TrainingCertificate
from .types import HealthVerdict, Phase, RegretTag

_REGRESSIONS = {
    (Phase.REPRESENTATION_FORMATION, Phase.BOOTSTRAP),
    (Phase.STABILIZATION, Phase.REPRESENTATION_FORMATION),
    (Phase.REFINEMENT, Phase.STABILIZATION),
}


@dataclass
class ExecutiveSummary:
    """High-level outcome of a training run."""

    model_name: str
    verdict: HealthVerdict
    total_steps: int
    total_interventions: int
    phases_completed: List[Phase] = field(default_factory=list)
    near_abort_conditions: List[str] = field(default_factory=list)
    phase_regressions: int = 0


@dataclass
class InterventionRow:
    step: int
    phase: Phase
    component: str
    invariant: str
    observed: Optional[float]
    threshold: Optional[float]
    action: str
    outcome: str
    recovery_steps: Optional[int] = None


@dataclass
class RegretRow:
    step: int
    component: str
    action: str
    tag: RegretTag
    post_improvement: Optional[float] = None
    was_recovering: bool = False


@dataclass
class RegretAnalysis:
    likely_necessary: List[RegretRow] = field(default_factory=list)
    possibly_preemptive: List[RegretRow] = field(default_factory=list)
    cooldown_near_misses: int = 0


@dataclass
class ComponentHealth:
    name: str
    grad_norm: Optional[float] = None
    activation_variance: Optional[float] = None
    pairwise_cosine: Optional[float] = None
    status: str = "ok"


@dataclass
class FinalHealthSnapshot:
    components: List[ComponentHealth] = field(default_factory=list)
    overall_loss: Optional[float] = None


@dataclass
class DiagnosticAdvisoryRow:
    step: int
    signal: str
    summary: str
    evidence: List[str]
    confidence: float
    acknowledged: bool


@dataclass
class DiagnosticAdvisories:
    """Advisory warnings collected from a diagnostic layer."""

    warnings: List[DiagnosticAdvisoryRow] = field(default_factory=list)
    total: int = 0
    acknowledged: int = 0
    unacknowledged: int = 0


@dataclass
class ShadowStepSummary:
    """Distinct steps at which a shadow-step rollback was recommended."""

    total_rollbacks: int = 0
    rollback_steps: List[int] = field(default_factory=list)


def _fmt_opt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.6f}"


@dataclass
class Report:
    """A structured end-of-run report."""

    executive_summary: ExecutiveSummary
    intervention_table: List[InterventionRow]
    regret_analysis: RegretAnalysis
    final_health: FinalHealthSnapshot
    diagnostic_advisories: DiagnosticAdvisories
    shadow_step_summary: ShadowStepSummary

    def to_markdown(self) -> str:
        """Render the report as Markdown."""
        summary = self.executive_summary
        lines: List[str] = [
            "# TransXform Training Report\n\n",
            "## Executive Summary\n\n",
            f"- **Model:** {summary.model_name}\n",
            f"- **Verdict:** {summary.verdict}\n",
            f"- **Total Steps:** {summary.total_steps}\n",
            f"- **Total Interventions:** {summary.total_interventions}\n",
            f"- **Phase Regressions:** {summary.phase_regressions}\n",
        ]
        if summary.near_abort_conditions:
            lines.append("\n### Near-Abort Conditions\n\n")
            lines.extend(f"- {cond}\n" for cond in summary.near_abort_conditions)

        lines.append("\n## Intervention Table\n\n")
        if not self.intervention_table:
            lines.append("No interventions were necessary.\n")
        else:
            lines.append("| Step | Phase | Component | Invariant | Action | Outcome |\n")
            lines.append("|------|-------|-----------|-----------|--------|---------|\n")
            lines.extend(
                f"| {r.step} | {r.phase} | {r.component} | {r.invariant} "
                f"| {r.action} | {r.outcome} |\n"
                for r in self.intervention_table
            )

        regret = self.regret_analysis
        lines.append("\n## Regret Analysis\n\n")
        lines.append(f"- **Cooldown near-misses:** {regret.cooldown_near_misses}\n\n")
        if regret.likely_necessary:
            lines.append("### Likely Necessary Interventions\n\n")
            lines.extend(
                f"- Step {r.step}: {r.action} on {r.component} (confident)\n"
                for r in regret.likely_necessary
            )
        if regret.possibly_preemptive:
            lines.append("\n### Possibly Preemptive Interventions\n\n")
            lines.extend(
                f"- Step {r.step}: {r.action} on {r.component} (low confidence)\n"
                for r in regret.possibly_preemptive
            )

        advisories = self.diagnostic_advisories
        if advisories.total > 0:
            lines.append("\n## Diagnostic Advisories\n\n")
            lines.append(
                f"- **Total:** {advisories.total} ({advisories.acknowledged} acknowledged, "
                f"{advisories.unacknowledged} unacknowledged)\n\n"
            )
            for row in advisories.warnings:
                ack = " [acknowledged]" if row.acknowledged else ""
                lines.append(f"### Step {row.step} — {row.signal}{ack}\n\n")
                lines.append(f"> {row.summary}\n\n")
                lines.append(f"Confidence: {row.confidence * 100.0:.0f}%\n\n")
                if row.evidence:
                    lines.append("Evidence:\n")
                    lines.extend(f"- {ev}\n" for ev in row.evidence)
                    lines.append("\n")

        shadow = self.shadow_step_summary
        if shadow.total_rollbacks > 0:
            lines.append("\n## Shadow-Step Rollbacks\n\n")
            lines.append(f"- **Total rollback recommendations:** {shadow.total_rollbacks}\n")
            steps = ", ".join(str(s) for s in shadow.rollback_steps)
            lines.append(f"- **Steps:** {steps}\n")

        health = self.final_health
        lines.append("\n## Final Health Snapshot\n\n")
        if health.overall_loss is not None:
            lines.append(f"- **Final Loss:** {health.overall_loss:.6f}\n\n")
        if health.components:
            lines.append("| Component | Grad Norm | Variance | Cosine | Status |\n")
            lines.append("|-----------|-----------|----------|--------|--------|\n")
            lines.extend(
                f"| {c.name} | {_fmt_opt(c.grad_norm)} | {_fmt_opt(c.activation_variance)} "
                f"| {_fmt_opt(c.pairwise_cosine)} | {c.status} |\n"
                for c in health.components
            )

        return "".join(lines)

    def to_json(self) -> str:
        """Serialize the report as pretty-printed JSON."""
        summary = self.executive_summary
        data: Dict[str, Any] = {
            "executive_summary": {
                "model_name": summary.model_name,
                "verdict": str(summary.verdict),
                "total_steps": summary.total_steps,
                "total_interventions": summary.total_interventions,
                "phase_regressions": summary.phase_regressions,
                "near_abort_conditions": list(summary.near_abort_conditions),
            },
            "intervention_table": [
                {
                    "step": r.step,
                    "phase": str(r.phase),
                    "component": r.component,
                    "invariant": r.invariant,
                    "observed": r.observed,
                    "threshold": r.threshold,
                    "action": r.action,
                    "outcome": r.outcome,
                    "recovery_steps": r.recovery_steps,
                }
                for r in self.intervention_table
            ],
            "regret_analysis": {
                "likely_necessary": len(self.regret_analysis.likely_necessary),
                "possibly_preemptive": len(self.regret_analysis.possibly_preemptive),
                "cooldown_near_misses": self.regret_analysis.cooldown_near_misses,
            },
            "final_health": {
                "overall_loss": self.final_health.overall_loss,
                "components": [
                    {
                        "name": c.name,
                        "grad_norm": c.grad_norm,
                        "activation_variance": c.activation_variance,
                        "pairwise_cosine": c.pairwise_cosine,
                        "status": c.status,
                    }
                    for c in self.final_health.components
                ],
            },
            "shadow_step_summary": {
                "total_rollbacks": self.shadow_step_summary.total_rollbacks,
                "rollback_steps": list(self.shadow_step_summary.rollback_steps),
            },
            "diagnostic_advisories": {
                "total": self.diagnostic_advisories.total,
                "acknowledged": self.diagnostic_advisories.acknowledged,
                "unacknowledged": self.diagnostic_advisories.unacknowledged,
                "warnings": [
                    {
                        "step": w.step,
                        "signal": w.signal,
                        "summary": w.summary,
                        "evidence": list(w.evidence),
                        "confidence": w.confidence,
                        "acknowledged": w.acknowledged,
                    }
                    for w in self.diagnostic_advisories.warnings
                ],
            },
        }
        return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)


def generate_report(
    certificate: TrainingCertificate,
    ledger: BoundaryLedger,
    diagnostic: Optional[Any] = None,
) -> Report:
    """Build a report from a certificate, its ledger and optional diagnostics.

    ``diagnostic`` may be any object exposing ``warnings`` (a method or an
    attribute) that yields items with step, signal, summary, evidence,
    confidence and acknowledged.
    """
    return Report(
        executive_summary=_executive_summary(certificate),
        intervention_table=_intervention_table(ledger),
        regret_analysis=_regret_analysis(certificate, ledger),
        final_health=_final_health(certificate),
        diagnostic_advisories=_diagnostic_advisories(diagnostic),
        shadow_step_summary=_shadow_step_summary(ledger),
    )


def _diagnostic_advisories(diagnostic: Optional[Any]) -> DiagnosticAdvisories:
    if diagnostic is None:
        return DiagnosticAdvisories()
    source = diagnostic.warnings
    items: Iterable[Any] = source() if callable(source) else source
    rows = [
        DiagnosticAdvisoryRow(
            step=w.step,
            signal=str(w.signal),
            summary=w.summary,
            evidence=list(w.evidence),
            confidence=w.confidence,
            acknowledged=w.acknowledged,
        )
        for w in items
    ]
    acknowledged = sum(1 for r in rows if r.acknowledged)
    return DiagnosticAdvisories(
        warnings=rows,
        total=len(rows),
        acknowledged=acknowledged,
        unacknowledged=len(rows) - acknowledged,
    )


def _shadow_step_summary(ledger: BoundaryLedger) -> ShadowStepSummary:
    steps = sorted(
        {e.step for e in ledger.entries if e.entry_type is LedgerEntryType.SHADOW_ROLLBACK}
    )
    return ShadowStepSummary(total_rollbacks=len(steps), rollback_steps=steps)


def _executive_summary(cert: TrainingCertificate) -> ExecutiveSummary:
    trace = cert.phase_trace
    phases_completed = [t.to_phase for t in trace if not t.to_phase.is_terminal()]
    regressions = sum(
        1 for a, b in zip(trace, trace[1:]) if (a.to_phase, b.to_phase) in _REGRESSIONS
    )
    near_abort = [
        f"Step {t.step}: {t.reason}"
        for t in trace
        if t.to_phase is Phase.ABORTED or "exhausted" in t.reason
    ]
    interventions = cert.intervention_summary
    return ExecutiveSummary(
        model_name=cert.model_name,
        verdict=cert.verdict,
        total_steps=cert.total_steps,
        total_interventions=interventions.total_hard + interventions.total_soft,
        phases_completed=phases_completed,
        near_abort_conditions=near_abort,
        phase_regressions=regressions,
    )


def _intervention_table(ledger: BoundaryLedger) -> List[InterventionRow]:
    return [
        InterventionRow(
            step=e.step,
            phase=e.phase,
            component=e.component,
            invariant=e.invariant,
            observed=e.metric_snapshot.get(e.invariant),
            threshold=None,
            action=str(e.action),
            outcome=e.outcome.value,
        )
        for e in ledger.entries
        if e.entry_type is LedgerEntryType.VIOLATION
    ]


def _regret_analysis(cert: TrainingCertificate, ledger: BoundaryLedger) -> RegretAnalysis:
    analysis = RegretAnalysis(cooldown_near_misses=cert.regret_summary.near_misses)
    for entry in ledger.entries:
        if entry.entry_type is not LedgerEntryType.VIOLATION or entry.regret_tag is None:
            continue
        row = RegretRow(
            step=entry.step,
            component=entry.component,
            action=str(entry.action),
            tag=entry.regret_tag,
        )
        if entry.regret_tag is RegretTag.CONFIDENT:
            analysis.likely_necessary.append(row)
        elif entry.regret_tag is RegretTag.LOW_CONFIDENCE:
            analysis.possibly_preemptive.append(row)
    return analysis


def _final_health(cert: TrainingCertificate) -> FinalHealthSnapshot:
    components: Dict[str, ComponentHealth] = {}
    for key, value in cert.final_health.items():
        comp, dot, metric = key.partition(".")
        if not dot:
            continue
        health = components.setdefault(comp, ComponentHealth(name=comp))
        if metric == "grad_norm":
            health.grad_norm = value
        elif metric == "activation_variance":
            health.activation_variance = value
        elif metric == "pairwise_cosine":
            health.pairwise_cosine = value

    for health in components.values():
        if health.grad_norm is not None and health.grad_norm < 1e-6:
            health.status = "warning: near-zero gradient"
        if health.pairwise_cosine is not None and health.pairwise_cosine > 0.95:
            health.status = "warning: high cosine similarity"

    return FinalHealthSnapshot(
        components=list(components.values()),
        overall_loss=cert.final_health.get("loss"),
    )
import pytest

from transxform.types import (
    Action,
    HealthVerdict,
    Phase,
    PhaseTransition,
)


def test_phase_forward_chain():
    assert Phase.BOOTSTRAP.next() is Phase.REPRESENTATION_FORMATION
    assert Phase.REPRESENTATION_FORMATION.next() is Phase.STABILIZATION
    assert Phase.STABILIZATION.next() is Phase.REFINEMENT
    assert Phase.REFINEMENT.next() is None
    assert Phase.ABORTED.next() is None


def test_phase_backward_chain():
    assert Phase.BOOTSTRAP.prev() is None
    assert Phase.REFINEMENT.prev() is Phase.STABILIZATION
    assert Phase.ABORTED.prev() is None
    for phase in (Phase.REPRESENTATION_FORMATION, Phase.STABILIZATION, Phase.REFINEMENT):
        assert phase.prev().next() is phase


def test_only_aborted_is_terminal():
    assert Phase.ABORTED.is_terminal() is True
    assert Phase.BOOTSTRAP.is_terminal() is False
    assert Phase.REPRESENTATION_FORMATION.is_terminal() is False
    assert Phase.STABILIZATION.is_terminal() is False
    assert Phase.REFINEMENT.is_terminal() is False


def test_health_verdict_constructors_and_display():
    assert HealthVerdict.healthy() == HealthVerdict.healthy()
    assert "HEALTHY" in str(HealthVerdict.healthy())
    recovered = HealthVerdict.recovered(3)
    assert recovered.kind == "recovered"
    assert recovered.intervention_count == 3
    compromised = HealthVerdict.compromised("Unresolved violations at training end")
    assert "Unresolved violations at training end" in str(compromised)


def test_health_verdict_roundtrip():
    for verdict in (
        HealthVerdict.healthy(),
        HealthVerdict.recovered(2),
        HealthVerdict.compromised("bad"),
    ):
        assert HealthVerdict.from_dict(verdict.to_dict()) == verdict


def test_health_verdict_rejects_unknown_kind():
    with pytest.raises(ValueError):
        HealthVerdict("exploded")


@pytest.mark.parametrize(
    "action, name",
    [
        (Action.reinitialize("head"), "reinitialize"),
        (Action.freeze("head"), "freeze"),
        (Action.unfreeze("head"), "unfreeze"),
        (Action.rescale("head", 0.5), "rescale"),
        (Action.inject_noise("head", 0.01), "inject_noise"),
        (Action.adjust_lr("head", 0.1), "adjust_lr"),
        (Action.abort("stop"), "abort"),
    ],
)
def test_action_names_and_roundtrip(action, name):
    assert action.action_name() == name
    assert name in str(action)
    assert Action.from_dict(action.to_dict()) == action


def test_action_validation():
    with pytest.raises(ValueError):
        Action("explode", component="head")
    with pytest.raises(ValueError):
        Action("rescale", component="head")
    with pytest.raises(ValueError):
        Action("freeze")


def test_phase_transition_roundtrip():
    t = PhaseTransition(Phase.BOOTSTRAP, Phase.REPRESENTATION_FORMATION, 10, "clean")
    restored = PhaseTransition.from_dict(t.to_dict())
    assert restored == t
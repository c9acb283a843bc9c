"""The model interface the supervisor drives, and an in-memory mock."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .errors import UnknownComponentError
from .types import MetricSnapshot


class Model(ABC):
    """A trainable model exposing named components, metrics and interventions."""

    @abstractmethod
    def component_names(self) -> List[str]:
        """All named components in the model."""

    def has_component(self, name: str) -> bool:
        return name in self.component_names()

    @abstractmethod
    def component_metrics(self, name: str) -> MetricSnapshot:
        """Metrics for one component, keyed as "component.metric"."""

    @abstractmethod
    def global_metrics(self) -> MetricSnapshot:
        """Global metrics such as loss values."""

    @abstractmethod
    def reinitialize(self, component: str) -> None:
        """Reinitialize a component's parameters."""

    @abstractmethod
    def freeze(self, component: str) -> None:
        """Stop gradient flow into a component."""

    @abstractmethod
    def unfreeze(self, component: str) -> None:
        """Resume gradient flow into a component."""

    @abstractmethod
    def rescale(self, component: str, factor: float) -> None:
        """Rescale a component's weights by a factor."""

    @abstractmethod
    def inject_noise(self, component: str, magnitude: float) -> None:
        """Add noise to a component's parameters."""

    @abstractmethod
    def adjust_lr(self, component: str, factor: float) -> None:
        """Adjust a component's learning rate; raise InterventionFailedError if unsupported."""

    def reset_optimizer_state(self, component: str) -> None:
        """Clear optimizer moments for a component. Does nothing by default."""


@dataclass
class _MockComponent:
    metrics: MetricSnapshot = field(default_factory=dict)
    frozen: bool = False


class MockModel(Model):
    """An in-memory model that stores metrics and logs interventions."""

    def __init__(self, component_names: Iterable[str]) -> None:
        self._components: Dict[str, _MockComponent] = {
            name: _MockComponent() for name in component_names
        }
        self._global: MetricSnapshot = {}
        self._interventions: List[Tuple[str, str]] = []

    def set_metric(self, component: str, key: str, value: float) -> None:
        """Set a metric on a component; ignored for unknown components."""
        comp = self._components.get(component)
        if comp is not None:
            comp.metrics[f"{component}.{key}"] = value

    def set_global_metric(self, key: str, value: float) -> None:
        self._global[key] = value

    def interventions(self) -> List[Tuple[str, str]]:
        """The log of executed interventions as (component, action) pairs."""
        return list(self._interventions)

    def is_frozen(self, component: str) -> bool:
        comp = self._components.get(component)
        return comp is not None and comp.frozen

    def _component(self, component: str) -> _MockComponent:
        try:
            return self._components[component]
        except KeyError:
            raise UnknownComponentError(component) from None

    def component_names(self) -> List[str]:
        return list(self._components)

    def has_component(self, name: str) -> bool:
        return name in self._components

    def component_metrics(self, name: str) -> MetricSnapshot:
        return dict(self._component(name).metrics)

    def global_metrics(self) -> MetricSnapshot:
        return dict(self._global)

    def reinitialize(self, component: str) -> None:
        comp = self._component(component)
        self._interventions.append((component, "reinitialize"))
        comp.frozen = False

    def freeze(self, component: str) -> None:
        comp = self._component(component)
        self._interventions.append((component, "freeze"))
        comp.frozen = True

    def unfreeze(self, component: str) -> None:
        comp = self._component(component)
        self._interventions.append((component, "unfreeze"))
        comp.frozen = False

    def rescale(self, component: str, factor: float) -> None:
        self._component(component)
        self._interventions.append((component, f"rescale({factor:.4f})"))

    def inject_noise(self, component: str, magnitude: float) -> None:
        self._component(component)
        self._interventions.append((component, f"inject_noise({magnitude:.6f})"))

    def adjust_lr(self, component: str, factor: float) -> None:
        self._component(component)
        self._interventions.append((component, f"adjust_lr({factor:.4f})"))

    def reset_optimizer_state(self, component: str) -> None:
        self._component(component)
        self._interventions.append((component, "reset_optimizer_state"))
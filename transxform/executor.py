"""Dispatching of intervention actions to a model."""

from __future__ import annotations

import logging

from .errors import TrainingAbortedError, TransXformError
from .model import Model
from .types import Action, NegativeVerdict

logger = logging.getLogger(__name__)


class InterventionExecutor:
    """Applies actions to a model; holds no decision logic of its own."""

    def __init__(self, model: Model) -> None:
        self.model = model

    def execute(self, action: Action) -> None:
        """Apply an action. An abort raises TrainingAbortedError without touching the model."""
        kind = action.kind
        component = action.component
        if kind == "reinitialize":
            logger.info("Executing: reinitialize(%s)", component)
            self.model.reinitialize(component)
            # Clearing optimizer moments is best-effort; the reinit already took effect.
            try:
                self.model.reset_optimizer_state(component)
            except TransXformError as exc:
                logger.warning(
                    "Optimizer state reset failed for %s: %s (reinit still applied)",
                    component,
                    exc,
                )
        elif kind == "freeze":
            logger.info("Executing: freeze(%s)", component)
            self.model.freeze(component)
        elif kind == "unfreeze":
            logger.info("Executing: unfreeze(%s)", component)
            self.model.unfreeze(component)
        elif kind == "rescale":
            logger.info("Executing: rescale(%s, %.4f)", component, action.factor)
            self.model.rescale(component, action.factor)
        elif kind == "inject_noise":
            logger.info("Executing: inject_noise(%s, %.6f)", component, action.magnitude)
            self.model.inject_noise(component, action.magnitude)
        elif kind == "adjust_lr":
            logger.info("Executing: adjust_lr(%s, %.4f)", component, action.factor)
            self.model.adjust_lr(component, action.factor)
        else:
            logger.warning("Training abort requested: %s", action.reason)
            raise TrainingAbortedError(NegativeVerdict.UNSTABLE_ARCHITECTURE, action.reason)
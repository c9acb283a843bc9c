"""Exceptions raised by the training supervisor."""

from __future__ import annotations

from .types import NegativeVerdict


class TransXformError(Exception):
    """Base class for all supervisor errors."""


class SpecParseError(TransXformError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Spec parse error: {message}")
        self.detail = message


class SpecValidationError(TransXformError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Spec validation error: {message}")
        self.detail = message


class UnknownComponentError(TransXformError):
    def __init__(self, component: str) -> None:
        super().__init__(f"Unknown component: {component}")
        self.component = component


class InterventionFailedError(TransXformError):
    def __init__(self, action: str, component: str, reason: str) -> None:
        super().__init__(f"Intervention failed: {action} on {component}: {reason}")
        self.action = action
        self.component = component
        self.reason = reason


class TrainingAbortedError(TransXformError):
    def __init__(self, verdict: NegativeVerdict, details: str) -> None:
        super().__init__(f"Training aborted: {verdict}: {details}")
        self.verdict = verdict
        self.details = details


class PhaseError(TransXformError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Phase error: {message}")
        self.detail = message


class MetricError(TransXformError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Metric error: {message}")
        self.detail = message


class CheckpointError(TransXformError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Checkpoint error: {message}")
        self.detail = message
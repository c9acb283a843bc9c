"""Training supervision parts: interventions, discovery, phases, regret, ledger, hashing and reports."""

__version__ = "0.1.0"

__all__ = [
    "discovery",
    "errors",
    "executor",
    "ledger",
    "merkle",
    "model",
    "phase",
    "regret",
    "report",
    "types",
]
"""Merkle hashing of run state for integrity and reproducibility."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import List, Optional

from .types import Action, MetricSnapshot

SUPERVISOR_VERSION = "transxform-v0.1.0"


class MerkleState:
    """Rolling hash chain over (previous root, step, metrics, action)."""

    def __init__(self, spec_yaml: str) -> None:
        hasher = hashlib.sha256()
        hasher.update(SUPERVISOR_VERSION.encode())
        hasher.update(spec_yaml.encode())
        self._root = hasher.digest()
        self._step_count = 0

    def update(
        self, step: int, metrics: MetricSnapshot, action: Optional[Action] = None
    ) -> None:
        """Fold one step's metrics and optional action into the root."""
        hasher = hashlib.sha256()
        hasher.update(self._root)
        hasher.update(struct.pack("<Q", step))
        for key in sorted(metrics):
            hasher.update(key.encode())
            hasher.update(struct.pack("<d", metrics[key]))
        if action is not None:
            hasher.update(str(action).encode())
        self._root = hasher.digest()
        self._step_count += 1

    @property
    def root(self) -> bytes:
        return self._root

    @property
    def step_count(self) -> int:
        return self._step_count

    def root_hex(self) -> str:
        return self._root.hex()


@dataclass
class RunManifest:
    """All inputs of a run together with its final Merkle root."""

    spec_hash: str
    model_hash: str
    optimizer_hash: str
    initial_weights_hash: str
    supervisor_version: str
    final_merkle_root: str
    step_count: int


@dataclass
class ForkManifest:
    """A run derived from a parent run, with the changes that were made."""

    parent_manifest: RunManifest
    changes: List[str] = field(default_factory=list)
    child_spec_hash: str = ""


@dataclass
class ManifestDiff:
    """Which inputs differ between two runs."""

    spec_changed: bool
    model_changed: bool
    optimizer_changed: bool
    weights_changed: bool
    step_count_a: int
    step_count_b: int
    roots_match: bool


def hash_string(text: str) -> str:
    """Hex SHA-256 digest of a string."""
    return hashlib.sha256(text.encode()).hexdigest()


def build_manifest(
    spec_yaml: str,
    model_description: str,
    optimizer_description: str,
    initial_weights_hash: str,
    merkle_state: MerkleState,
) -> RunManifest:
    return RunManifest(
        spec_hash=hash_string(spec_yaml),
        model_hash=hash_string(model_description),
        optimizer_hash=hash_string(optimizer_description),
        initial_weights_hash=initial_weights_hash,
        supervisor_version=SUPERVISOR_VERSION,
        final_merkle_root=merkle_state.root_hex(),
        step_count=merkle_state.step_count,
    )


def fork(parent: RunManifest, child_spec_yaml: str, changes: List[str]) -> ForkManifest:
    return ForkManifest(
        parent_manifest=parent,
        changes=list(changes),
        child_spec_hash=hash_string(child_spec_yaml),
    )


def diff(a: RunManifest, b: RunManifest) -> ManifestDiff:
    return ManifestDiff(
        spec_changed=a.spec_hash != b.spec_hash,
        model_changed=a.model_hash != b.model_hash,
        optimizer_changed=a.optimizer_hash != b.optimizer_hash,
        weights_changed=a.initial_weights_hash != b.initial_weights_hash,
        step_count_a=a.step_count,
        step_count_b=b.step_count,
        roots_match=a.final_merkle_root == b.final_merkle_root,
    )
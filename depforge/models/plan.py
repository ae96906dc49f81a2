"""Reconciliation plan and execution report models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from depforge.models.artifacts import ArtifactKind, ResolvedHashes


class PlanAction(str, Enum):
    """What the executor will do for one artifact."""

    NOOP = "noop"
    BUILD = "build"
    RETRIEVE = "retrieve"
    PUBLISH = "publish"
    TRIGGER = "trigger"  # deploy artifacts only


class PlanEntry(BaseModel):
    """The decision for a single artifact, with the hashes it was based on."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ArtifactKind
    action: PlanAction
    hashes: ResolvedHashes = ResolvedHashes()
    publish_after: bool = False  # build, then publish
    reason: str = ""

    @property
    def is_noop(self) -> bool:
        return self.action == PlanAction.NOOP


class ReconciliationPlan(BaseModel):
    """The full decision set for a run, in dependency order.

    Computing a plan never executes an action, so a plan on its own is a
    dry run.
    """

    model_config = ConfigDict(frozen=True)

    entries: list[PlanEntry]
    publish: bool = False

    def get(self, name: str) -> PlanEntry:
        """Return the entry for an artifact name."""
        for entry in self.entries:
            if entry.name == name:
                return entry
        raise KeyError(name)

    def actions(self) -> dict[str, PlanAction]:
        """Return ``{name: action}`` for every artifact in the plan."""
        return {entry.name: entry.action for entry in self.entries}

    def actionable(self) -> list[PlanEntry]:
        """Return entries that require work, in dependency order."""
        return [entry for entry in self.entries if not entry.is_noop]

    @property
    def is_noop(self) -> bool:
        return not self.actionable()


class ExecutionOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_RUN = "not_run"


class ExecutionReport(BaseModel):
    """Per-artifact outcome of executing a plan.

    Execution stops at the first failure; ``failed_artifact`` and ``error``
    describe it and every later artifact is ``NOT_RUN``.
    """

    model_config = ConfigDict(frozen=True)

    outcomes: dict[str, ExecutionOutcome]
    failed_artifact: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed_artifact is None

    def succeeded(self) -> list[str]:
        return [
            name
            for name, outcome in self.outcomes.items()
            if outcome == ExecutionOutcome.SUCCEEDED
        ]

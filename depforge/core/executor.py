"""Plan execution: run each artifact's chosen action in dependency order.

Actions run one at a time in the plan's topological order, so no build,
pull or publish starts before every dependency's action has completed.
The first failure stops the run: the failing artifact is FAILED, every
later artifact is NOT_RUN, and nothing is retried.

Action mapping
--------------
- BUILD    -> ``build_locally(desired)``, then ``publish_to_registry()`` when the
  entry says ``publish_after`` and publishing is enabled
- RETRIEVE -> ``retrieve_from_registry()``
- PUBLISH  -> ``publish_to_registry()`` (only when publishing is enabled)
- TRIGGER  -> ``build_locally(None)`` of the deploy artifact
- NOOP     -> nothing (SKIPPED)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from depforge.artifacts.base import (
    PUBLISH_TO_REGISTRY,
    RETRIEVE_FROM_REGISTRY,
    BaseArtifact,
)
from depforge.core.dependency_graph import DependencyGraph
from depforge.models.plan import (
    ExecutionOutcome,
    ExecutionReport,
    PlanAction,
    PlanEntry,
    ReconciliationPlan,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PlanEntry, ExecutionOutcome], None]


class ActionFailedError(RuntimeError):
    """Raised when an artifact's build, retrieve or publish action fails."""

    def __init__(self, artifact: str, action: PlanAction, cause: BaseException) -> None:
        self.artifact = artifact
        self.action = action
        super().__init__(f"{artifact}: {action.value} failed: {cause}")


class Executor:
    """Executes a ``ReconciliationPlan`` against the graph it was computed for.

    Parameters
    ----------
    graph:
        The dependency graph the plan was computed from.
    on_progress:
        Optional callback invoked after every artifact with its outcome.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.graph = graph
        self._on_progress = on_progress

    async def _informational(self, artifact: BaseArtifact, operation: str) -> dict:
        return await self.graph.informational.get_many(artifact.informational_keys(operation))

    async def _publish(self, artifact: BaseArtifact) -> None:
        info = await self._informational(artifact, PUBLISH_TO_REGISTRY)
        await artifact.publish_to_registry(info)

    async def run_entry(self, entry: PlanEntry, *, publish: bool) -> ExecutionOutcome:
        """Run one entry's action.  Raises ``ActionFailedError`` on failure."""
        artifact = self.graph.get(entry.name)
        steps: list[Callable[[], Awaitable[None]]] = []

        if entry.action in (PlanAction.BUILD, PlanAction.TRIGGER):
            steps.append(lambda: artifact.build_locally(entry.hashes.desired))
            if entry.publish_after and publish:
                steps.append(lambda: self._publish(artifact))
        elif entry.action == PlanAction.RETRIEVE:
            async def retrieve() -> None:
                info = await self._informational(artifact, RETRIEVE_FROM_REGISTRY)
                await artifact.retrieve_from_registry(info)

            steps.append(retrieve)
        elif entry.action == PlanAction.PUBLISH and publish:
            steps.append(lambda: self._publish(artifact))

        if not steps:
            return ExecutionOutcome.SKIPPED

        logger.info("%s: %s", entry.name, entry.action.value)
        try:
            for step in steps:
                await step()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ActionFailedError(entry.name, entry.action, exc) from exc
        return ExecutionOutcome.SUCCEEDED

    async def execute(self, plan: ReconciliationPlan, *, publish: bool = False) -> ExecutionReport:
        """Run every entry of *plan* in dependency order, halting on first failure."""
        order = {name: i for i, name in enumerate(self.graph.topological_order())}
        for entry in plan.entries:
            self.graph.get(entry.name)
        entries = sorted(plan.entries, key=lambda e: order[e.name])

        outcomes: dict[str, ExecutionOutcome] = {
            entry.name: ExecutionOutcome.NOT_RUN for entry in entries
        }
        for entry in entries:
            try:
                outcome = await self.run_entry(entry, publish=publish)
            except ActionFailedError as exc:
                outcomes[entry.name] = ExecutionOutcome.FAILED
                self._report(entry, ExecutionOutcome.FAILED)
                logger.error("Aborting plan: %s", exc)
                return ExecutionReport(
                    outcomes=outcomes, failed_artifact=entry.name, error=str(exc)
                )
            outcomes[entry.name] = outcome
            self._report(entry, outcome)

        logger.info("Plan executed: %d actions succeeded", sum(
            1 for o in outcomes.values() if o == ExecutionOutcome.SUCCEEDED
        ))
        return ExecutionReport(outcomes=outcomes)

    def _report(self, entry: PlanEntry, outcome: ExecutionOutcome) -> None:
        if self._on_progress is not None:
            self._on_progress(entry, outcome)


async def execute(
    plan: ReconciliationPlan,
    graph: DependencyGraph,
    *,
    publish: bool = False,
    on_progress: ProgressCallback | None = None,
) -> ExecutionReport:
    """Execute *plan* against *graph*; see ``Executor.execute``."""
    return await Executor(graph, on_progress=on_progress).execute(plan, publish=publish)

"""Reconciliation planner: resolve three hashes per artifact and pick an action.

Resolution
----------
Desired hashes are resolved as one task per artifact that first awaits the
tasks of its dependencies, so a hash is computed only from already-resolved
upstream hashes while independent branches proceed concurrently.  Local
and published hashes have no ordering constraint and all run concurrently.
Informational dependencies go through the graph's single-flight cache.

Any accessor failure other than "not found" (which accessors report as
``None``) aborts the whole plan: outstanding tasks are cancelled and a
``HashResolutionError`` naming the artifact is raised.

Decision table
--------------
=============================================  ==========================
condition                                      action
=============================================  ==========================
deploy artifact                                TRIGGER if any dependency
                                               needs work, else NOOP
no desired hash                                NOOP (not hash-checked)
local == desired                               NOOP, or PUBLISH when
                                               publishing and published
                                               differs
published == desired                           RETRIEVE
otherwise                                      BUILD (then publish when
                                               publishing)
=============================================  ==========================
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import Any

from depforge.artifacts.base import GET_PUBLISHED_HASH, BaseArtifact
from depforge.core.dependency_graph import DependencyGraph
from depforge.models.artifacts import ArtifactKind, ResolvedHashes
from depforge.models.plan import PlanAction, PlanEntry, ReconciliationPlan

logger = logging.getLogger(__name__)


class HashResolutionError(RuntimeError):
    """Raised when a hash accessor fails for a reason other than "not found"."""

    def __init__(self, artifact: str, accessor: str, cause: BaseException) -> None:
        self.artifact = artifact
        self.accessor = accessor
        super().__init__(f"{artifact}: {accessor} failed: {cause}")


async def gather_or_cancel(awaitables: Iterable[Awaitable[Any]]) -> list[Any]:
    """``asyncio.gather`` that cancels the remaining tasks on the first failure."""
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def decide(
    artifact: BaseArtifact,
    hashes: ResolvedHashes,
    *,
    publish: bool,
    dependency_actions: dict[str, PlanAction],
) -> PlanEntry:
    """Fold one artifact's resolved hashes into a plan entry."""

    def entry(action: PlanAction, reason: str, publish_after: bool = False) -> PlanEntry:
        return PlanEntry(
            name=artifact.name,
            kind=artifact.kind,
            action=action,
            hashes=hashes,
            publish_after=publish_after,
            reason=reason,
        )

    if artifact.kind == ArtifactKind.DEPLOY:
        changed = [
            name for name, action in dependency_actions.items()
            if action != PlanAction.NOOP
        ]
        if changed:
            return entry(PlanAction.TRIGGER, f"dependencies changed: {', '.join(changed)}")
        return entry(PlanAction.NOOP, "all dependencies up to date")

    if not hashes.is_hash_checked:
        return entry(PlanAction.NOOP, "not hash-checked")

    if hashes.is_up_to_date:
        if publish and hashes.published != hashes.local:
            return entry(PlanAction.PUBLISH, "up to date locally, not published")
        return entry(PlanAction.NOOP, "up to date")

    # Pulling a matching published artifact always beats rebuilding
    if hashes.published == hashes.desired:
        return entry(PlanAction.RETRIEVE, "published artifact matches desired hash")

    if hashes.local is None:
        reason = "not built locally"
    else:
        reason = "local hash is stale"
    return entry(PlanAction.BUILD, reason, publish_after=publish)


class Planner:
    """Computes a ``ReconciliationPlan`` for a dependency graph.

    A plan never executes an action.

    Parameters
    ----------
    graph:
        The validated dependency graph for this run.
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self.graph = graph

    async def _call(self, artifact: BaseArtifact, accessor: str, coro: Awaitable[Any]) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("%s: %s failed: %s", artifact.name, accessor, exc)
            raise HashResolutionError(artifact.name, accessor, exc) from exc

    async def resolve_desired_hashes(self, names: list[str]) -> dict[str, str | None]:
        """Resolve desired hashes for *names* (a dependency-closed set).

        One task per artifact, created in topological order so every
        dependency's task already exists.
        """
        tasks: dict[str, asyncio.Future[str | None]] = {}

        async def resolve(artifact: BaseArtifact) -> str | None:
            dep_names = artifact.dependencies
            dep_hashes = await asyncio.gather(*(tasks[dep] for dep in dep_names))
            desired = await self._call(
                artifact,
                "get_desired_hash",
                artifact.get_desired_hash(dict(zip(dep_names, dep_hashes))),
            )
            logger.debug("%s desired=%s", artifact.name, desired)
            return desired

        for name in names:
            tasks[name] = asyncio.ensure_future(resolve(self.graph.get(name)))
        results = await gather_or_cancel(tasks.values())
        return dict(zip(tasks, results))

    async def resolve_local_hash(self, artifact: BaseArtifact) -> str | None:
        return await self._call(artifact, "get_local_hash", artifact.get_local_hash())

    async def resolve_published_hash(self, artifact: BaseArtifact) -> str | None:
        info = await self._call(
            artifact,
            GET_PUBLISHED_HASH,
            self.graph.informational.get_many(artifact.informational_keys(GET_PUBLISHED_HASH)),
        )
        return await self._call(
            artifact, GET_PUBLISHED_HASH, artifact.get_published_hash(info)
        )

    async def plan(
        self,
        *,
        publish: bool = False,
        targets: Iterable[str] | None = None,
    ) -> ReconciliationPlan:
        """Resolve every hash and decide an action per artifact.

        Parameters
        ----------
        publish:
            Plan publishing of built and local-only artifacts.
        targets:
            Restrict the plan to these artifacts and their dependencies.
        """
        if targets is None:
            names = self.graph.topological_order()
        else:
            names = self.graph.closure(targets)

        if self.graph.config is not None:
            self.graph.config.require(*self.graph.required_settings(names))

        artifacts = [self.graph.get(name) for name in names]
        logger.info("Resolving hashes for %d artifacts", len(artifacts))

        desired, local, published = await gather_or_cancel([
            self.resolve_desired_hashes(names),
            gather_or_cancel(self.resolve_local_hash(a) for a in artifacts),
            gather_or_cancel(self.resolve_published_hash(a) for a in artifacts),
        ])

        actions: dict[str, PlanAction] = {}
        entries: list[PlanEntry] = []
        for artifact, local_hash, published_hash in zip(artifacts, local, published):
            hashes = ResolvedHashes(
                local=local_hash,
                desired=desired[artifact.name],
                published=published_hash,
            )
            entry = decide(
                artifact,
                hashes,
                publish=publish,
                dependency_actions={dep: actions[dep] for dep in artifact.dependencies},
            )
            actions[artifact.name] = entry.action
            entries.append(entry)
            logger.debug("%s -> %s (%s)", entry.name, entry.action.value, entry.reason)

        plan = ReconciliationPlan(entries=entries, publish=publish)
        logger.info(
            "Plan ready: %d of %d artifacts need work",
            len(plan.actionable()),
            len(entries),
        )
        return plan


async def plan(
    graph: DependencyGraph,
    *,
    publish: bool = False,
    targets: Iterable[str] | None = None,
) -> ReconciliationPlan:
    """Compute the reconciliation plan for *graph* without executing anything."""
    return await Planner(graph).plan(publish=publish, targets=targets)

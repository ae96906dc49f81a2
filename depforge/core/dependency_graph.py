"""Artifact dependency DAG with up-front validation.

The graph enforces, at construction time and before any hash work:
- artifact names are unique,
- every dependency names an artifact in the graph,
- every informational-dependency key is registered in the cache,
- the dependency relation is acyclic (Kahn's algorithm).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from depforge.artifacts.base import BaseArtifact
from depforge.config import ConfigurationError, ForgeConfig
from depforge.core.info_cache import InformationalDependencyCache


class UnresolvedReferenceError(ConfigurationError):
    """Raised when an artifact references a name that is not in the graph."""


class CyclicDependencyError(ConfigurationError):
    """Raised when the dependency graph contains a cycle."""


class DependencyGraph:
    """Every artifact of a run plus the informational dependencies they share.

    Built once per run by ``build_graph`` and immutable afterwards.

    Parameters
    ----------
    artifacts:
        Artifacts in assembly order (leaves first).
    informational:
        The run's informational dependency cache.
    config:
        Run configuration, threaded through to planning and execution.
    """

    def __init__(
        self,
        artifacts: Iterable[BaseArtifact],
        informational: InformationalDependencyCache | None = None,
        config: ForgeConfig | None = None,
    ) -> None:
        self._artifacts: dict[str, BaseArtifact] = {}
        for artifact in artifacts:
            if artifact.name in self._artifacts:
                raise ConfigurationError(f"Duplicate artifact name '{artifact.name}'")
            self._artifacts[artifact.name] = artifact
        self.informational = informational or InformationalDependencyCache({})
        self.config = config
        # Assembly position, used to break topological ties deterministically
        self._position = {name: i for i, name in enumerate(self._artifacts)}

        self._validate_references()

        # Forward edges: name -> dependency names
        self._dependencies: dict[str, tuple[str, ...]] = {
            name: artifact.dependencies for name, artifact in self._artifacts.items()
        }
        # Reverse edges: name -> names that depend on it
        self._dependents: dict[str, list[str]] = {name: [] for name in self._artifacts}
        for name, deps in self._dependencies.items():
            for dep in deps:
                self._dependents[dep].append(name)

        self._order = self._topological_sort()

    def _validate_references(self) -> None:
        problems: list[str] = []
        for artifact in self._artifacts.values():
            for dep in artifact.dependencies:
                if dep == artifact.name:
                    continue  # a self-edge is a cycle, reported by the sort
                if dep not in self._artifacts:
                    problems.append(
                        f"{artifact.name} depends on unknown artifact '{dep}'"
                    )
            for operation, keys in artifact.informational_dependencies.items():
                for key in keys:
                    if key not in self.informational:
                        problems.append(
                            f"{artifact.name}.{operation} needs unknown "
                            f"informational dependency '{key}'"
                        )
        if problems:
            raise UnresolvedReferenceError(
                "Unresolved references in dependency graph:\n"
                + "\n".join(f"  - {p}" for p in problems)
            )

    def _topological_sort(self) -> list[str]:
        """Kahn's algorithm; ties broken by assembly order."""
        in_degree = {name: len(deps) for name, deps in self._dependencies.items()}
        queue = deque(name for name in self._artifacts if in_degree[name] == 0)
        result: list[str] = []

        while queue:
            node = queue.popleft()
            result.append(node)
            for dependent in sorted(self._dependents[node], key=self._position.__getitem__):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self._artifacts):
            stuck = sorted(
                (name for name, deg in in_degree.items() if deg > 0),
                key=self._position.__getitem__,
            )
            raise CyclicDependencyError(
                f"Dependency graph has a cycle. "
                f"Ordered {len(result)}/{len(self._artifacts)} artifacts; "
                f"unresolvable: {', '.join(stuck)}"
            )
        return result

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, name: object) -> bool:
        return name in self._artifacts

    @property
    def names(self) -> list[str]:
        """Return artifact names in assembly order."""
        return list(self._artifacts)

    @property
    def artifacts(self) -> list[BaseArtifact]:
        """Return artifacts in assembly order."""
        return list(self._artifacts.values())

    def get(self, name: str) -> BaseArtifact:
        """Return the artifact with the given name."""
        try:
            return self._artifacts[name]
        except KeyError:
            raise UnresolvedReferenceError(f"Unknown artifact '{name}'") from None

    def topological_order(self) -> list[str]:
        """Return all names, every artifact after all of its dependencies."""
        return list(self._order)

    def get_dependencies(self, name: str) -> list[str]:
        """Return direct dependency names for an artifact."""
        return list(self._dependencies.get(name, ()))

    def get_dependents(self, name: str) -> list[str]:
        """Return all transitive dependents (BFS)."""
        result = []
        queue = deque(self._dependents.get(name, []))
        visited: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            queue.extend(self._dependents.get(node, []))
        return result

    def closure(self, targets: Iterable[str]) -> list[str]:
        """Return targets plus their transitive dependencies, in topological order."""
        wanted: set[str] = set()
        queue = deque(self.get(target).name for target in targets)
        while queue:
            node = queue.popleft()
            if node in wanted:
                continue
            wanted.add(node)
            queue.extend(self._dependencies[node])
        return [name for name in self._order if name in wanted]

    def required_settings(self, names: Iterable[str] | None = None) -> list[str]:
        """Return configuration fields needed by the given (default: all) artifacts."""
        selected = self._artifacts if names is None else list(names)
        settings: dict[str, None] = {}
        for name in selected:
            for setting in self._artifacts[name].required_settings:
                settings[setting] = None
        return list(settings)


def list_artifacts(graph: DependencyGraph) -> list[str]:
    """Return artifact names in assembly order, for listing."""
    return graph.names

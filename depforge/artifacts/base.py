"""Base class for all reconcilable artifacts.

Every artifact exposes the same shape regardless of kind, so the planner
and executor never special-case kinds:

Hash accessors
    ``get_local_hash()``: local state only; ``None`` if never produced.
    ``get_published_hash(info)``: lookup in injected batch mappings;
    ``None`` if absent.
    ``get_desired_hash(dependency_hashes)``: declared inputs plus the
    already-resolved desired hashes of every dependency; ``None`` if the
    artifact is not hash-checked.

Actions
    ``build_locally(desired_hash)``: the build must record *desired_hash*
    where ``get_local_hash()`` reads it back (image label, package control
    field, test marker), so a successful build converges.
    ``retrieve_from_registry(info)``, ``publish_to_registry(info)``.

"Not found" is always ``None``.  Anything else that goes wrong raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import ClassVar

from depforge.models.artifacts import ArtifactKind

InformationalDeps = Mapping[str, Mapping[str, str]]

GET_PUBLISHED_HASH = "get_published_hash"
RETRIEVE_FROM_REGISTRY = "retrieve_from_registry"
PUBLISH_TO_REGISTRY = "publish_to_registry"

OPERATIONS: tuple[str, ...] = (
    GET_PUBLISHED_HASH,
    RETRIEVE_FROM_REGISTRY,
    PUBLISH_TO_REGISTRY,
)


class UnsupportedActionError(RuntimeError):
    """Raised when an artifact is asked for an action its kind does not have."""


class BaseArtifact(ABC):
    """Abstract base for the closed set of artifact variants.

    Subclasses set ``kind`` and implement the hash accessors and actions.

    Parameters
    ----------
    name:
        Unique, kind-namespaced name (``image:app``, ``deb:lang-python``).
    dependencies:
        Names of artifacts this one depends on.  Duplicates are dropped,
        first occurrence wins.
    informational_dependencies:
        Operation name -> informational-dependency keys injected into
        that operation.
    required_settings:
        ``ForgeConfig`` fields the remote operations need.
    """

    kind: ClassVar[ArtifactKind]

    def __init__(
        self,
        name: str,
        *,
        dependencies: list[str] | tuple[str, ...] = (),
        informational_dependencies: Mapping[str, tuple[str, ...]] | None = None,
        required_settings: tuple[str, ...] = (),
    ) -> None:
        prefix = f"{self.kind.value}:"
        if not name.startswith(prefix) or name == prefix:
            raise ValueError(f"Artifact name '{name}' must start with '{prefix}'")
        for operation in informational_dependencies or {}:
            if operation not in OPERATIONS:
                raise ValueError(
                    f"Artifact '{name}': unknown operation '{operation}' "
                    f"in informational dependencies"
                )
        self._name = name
        self._dependencies = tuple(dict.fromkeys(dependencies))
        self._informational = {
            op: tuple(keys) for op, keys in (informational_dependencies or {}).items()
        }
        self._required_settings = tuple(required_settings)

    @property
    def name(self) -> str:
        return self._name

    @property
    def dependencies(self) -> tuple[str, ...]:
        return self._dependencies

    @property
    def informational_dependencies(self) -> dict[str, tuple[str, ...]]:
        return dict(self._informational)

    @property
    def required_settings(self) -> tuple[str, ...]:
        return self._required_settings

    def informational_keys(self, operation: str) -> tuple[str, ...]:
        """Return the informational-dependency keys one operation needs."""
        return self._informational.get(operation, ())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"

    # ------------------------------------------------------------------
    # Hash accessors
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_local_hash(self) -> str | None:
        ...

    @abstractmethod
    async def get_published_hash(self, info: InformationalDeps) -> str | None:
        ...

    @abstractmethod
    async def get_desired_hash(
        self, dependency_hashes: Mapping[str, str | None]
    ) -> str | None:
        ...

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @abstractmethod
    async def build_locally(self, desired_hash: str | None) -> None:
        ...

    @abstractmethod
    async def retrieve_from_registry(self, info: InformationalDeps) -> None:
        ...

    @abstractmethod
    async def publish_to_registry(self, info: InformationalDeps) -> None:
        ...

"""depforge data models (frozen Pydantic v2)."""

from depforge.models.artifacts import ArtifactKind, ResolvedHashes
from depforge.models.languages import (
    LanguageConfig,
    LanguageInstall,
    SharedDependencyConfig,
)
from depforge.models.plan import (
    ExecutionOutcome,
    ExecutionReport,
    PlanAction,
    PlanEntry,
    ReconciliationPlan,
)

__all__ = [
    # artifacts
    "ArtifactKind",
    "ResolvedHashes",
    # languages
    "LanguageConfig",
    "LanguageInstall",
    "SharedDependencyConfig",
    # plan
    "PlanAction",
    "PlanEntry",
    "ReconciliationPlan",
    "ExecutionOutcome",
    "ExecutionReport",
]

"""depforge: hash reconciliation for images, packages, test markers and deploys.

Decides, per artifact, whether to build, pull or publish by comparing three
fingerprints:
  - local hash      what exists in the local build environment
  - desired hash    what the declared inputs say should exist (Merkle over the DAG)
  - published hash  what the remote registry / bucket holds
"""

__version__ = "0.1.0"
__description__ = "Dependency-graph hash reconciliation for build and deploy artifacts"

from depforge.core.assembly import build_graph
from depforge.core.dependency_graph import DependencyGraph, list_artifacts
from depforge.core.executor import execute
from depforge.core.planner import plan

__all__ = [
    "DependencyGraph",
    "build_graph",
    "list_artifacts",
    "plan",
    "execute",
    "__version__",
]

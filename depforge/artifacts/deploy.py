"""Deployment trigger (``deploy:<target>``).

Has no hash of its own.  The planner fires it whenever any dependency
needed work; firing runs the configured deploy command.
"""

from __future__ import annotations

from collections.abc import Mapping

from depforge.artifacts.base import BaseArtifact, InformationalDeps, UnsupportedActionError
from depforge.bridge import shell
from depforge.config import ForgeConfig
from depforge.core.layout import RepoLayout
from depforge.models.artifacts import ArtifactKind


class DeployArtifact(BaseArtifact):
    kind = ArtifactKind.DEPLOY

    def __init__(
        self,
        dependencies: list[str],
        *,
        config: ForgeConfig,
        layout: RepoLayout,
    ) -> None:
        super().__init__(f"deploy:{config.deploy_target}", dependencies=dependencies)
        self._config = config
        self._layout = layout

    async def get_local_hash(self) -> str | None:
        return None

    async def get_published_hash(self, info: InformationalDeps) -> str | None:
        return None

    async def get_desired_hash(
        self, dependency_hashes: Mapping[str, str | None]
    ) -> str | None:
        return None

    async def build_locally(self, desired_hash: str | None) -> None:
        """Fire the deployment.  Deploy triggers carry no hash."""
        await shell.run_command(
            self._config.deploy_command,
            cwd=self._layout.root,
            timeout=self._config.command_timeout_seconds,
        )

    # The planner only ever chooses TRIGGER or NOOP for a deploy trigger
    async def retrieve_from_registry(self, info: InformationalDeps) -> None:
        raise UnsupportedActionError(f"{self.name}: deploy triggers cannot be retrieved")

    async def publish_to_registry(self, info: InformationalDeps) -> None:
        raise UnsupportedActionError(f"{self.name}: deploy triggers cannot be published")

"""Debian package artifacts (``deb:shared-<dep>``, ``deb:lang-<lang>``).

Packages are built inside the packaging image and record their script hash
in the ``Riju-Script-Hash`` control field.  Published packages are found
through the ``s3_deb_hashes`` bulk listing.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping

from depforge.artifacts.base import GET_PUBLISHED_HASH, BaseArtifact, InformationalDeps
from depforge.bridge import shell
from depforge.config import ForgeConfig
from depforge.core.hasher import compute_desired_hash
from depforge.core.layout import RepoLayout
from depforge.models.artifacts import ArtifactKind

DEB_HASHES = "s3_deb_hashes"
SCRIPT_HASH_FIELD = "Riju-Script-Hash"

DEB_TYPES = ("shared", "lang")


class DebArtifact(BaseArtifact):
    """A ``.deb`` for one shared dependency or one language."""

    kind = ArtifactKind.DEB

    def __init__(
        self,
        deb_type: str,
        lang: str,
        *,
        config: ForgeConfig,
        layout: RepoLayout,
    ) -> None:
        if deb_type not in DEB_TYPES:
            raise ValueError(f"Unknown package type '{deb_type}'")
        super().__init__(
            f"deb:{deb_type}-{lang}",
            dependencies=["image:packaging"],
            informational_dependencies={GET_PUBLISHED_HASH: (DEB_HASHES,)},
            required_settings=("s3_bucket",),
        )
        self.deb_type = deb_type
        self.lang = lang
        self._config = config
        self._layout = layout

    @property
    def package_name(self) -> str:
        return f"riju-{self.deb_type}-{self.lang}"

    async def get_local_hash(self) -> str | None:
        deb_path = self._layout.deb_path(self.deb_type, self.lang)
        if not deb_path.exists():
            return None
        result = await shell.run_command(
            f"dpkg-deb -f {shlex.quote(str(deb_path))} {SCRIPT_HASH_FIELD}",
            capture=True,
            timeout=self._config.command_timeout_seconds,
        )
        return result.stdout.strip() or None

    async def get_published_hash(self, info: InformationalDeps) -> str | None:
        return info[DEB_HASHES].get(self.package_name)

    async def get_desired_hash(
        self, dependency_hashes: Mapping[str, str | None]
    ) -> str | None:
        config_path = self._layout.package_config(self.deb_type, self.lang)
        return compute_desired_hash(
            self.name,
            self.kind.value,
            {self._layout.relative(config_path): config_path.read_bytes()},
            {dep: dependency_hashes[dep] for dep in self.dependencies},
        )

    async def _make(self, command: str) -> None:
        await shell.run_command(
            command,
            cwd=self._layout.root,
            timeout=self._config.command_timeout_seconds,
        )

    async def build_locally(self, desired_hash: str | None) -> None:
        # HASH ends up in the Riju-Script-Hash control field
        await self._make(
            f'make shell I=packaging CMD="make pkg T={self.deb_type} L={self.lang}'
            f' HASH={desired_hash}"'
        )

    async def retrieve_from_registry(self, info: InformationalDeps) -> None:
        await self._make(f"make download T={self.deb_type} L={self.lang}")

    async def publish_to_registry(self, info: InformationalDeps) -> None:
        await self._make(f"make upload T={self.deb_type} L={self.lang}")

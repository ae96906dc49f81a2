"""Container image artifacts (``image:<tag>``).

The hash of an image lives in a label (``riju.image-hash`` by default)
stamped at build time, so both the local and the published hash are label
reads.  The desired hash covers the Dockerfile, every context file it
copies, and the desired hashes of its base images and packages.
"""

from __future__ import annotations

from collections.abc import Mapping

from depforge.artifacts.base import BaseArtifact, InformationalDeps
from depforge.bridge import docker, shell
from depforge.config import ForgeConfig
from depforge.core.dockerfile import dockerfile_inputs
from depforge.core.hasher import compute_desired_hash
from depforge.core.layout import RepoLayout
from depforge.models.artifacts import ArtifactKind


class ImageArtifact(BaseArtifact):
    """A Docker image built from ``docker/<image>/Dockerfile``.

    Parameters
    ----------
    tag:
        Image tag within the namespace (``packaging``, ``lang-python``).
    config, layout:
        Run configuration and source tree.
    base_image_tags:
        Tags of this system's own images named in ``FROM``.
    is_base_image:
        Externally versioned root image; never hash-checked.
    lang, shared_deps:
        Set for per-language images, which share ``docker/lang/Dockerfile``
        and additionally depend on the language's packages.
    """

    kind = ArtifactKind.IMAGE

    def __init__(
        self,
        tag: str,
        *,
        config: ForgeConfig,
        layout: RepoLayout,
        base_image_tags: list[str] | tuple[str, ...] = (),
        is_base_image: bool = False,
        lang: str | None = None,
        shared_deps: list[str] | tuple[str, ...] = (),
    ) -> None:
        dependencies = [f"image:{base}" for base in base_image_tags]
        if lang is not None:
            dependencies.append(f"deb:lang-{lang}")
            dependencies.extend(f"deb:shared-{dep}" for dep in shared_deps)
        super().__init__(
            f"image:{tag}",
            dependencies=dependencies,
            required_settings=("docker_repo",),
        )
        self.tag = tag
        self.is_base_image = is_base_image
        self.lang = lang
        self._config = config
        self._layout = layout

    @property
    def dockerfile_name(self) -> str:
        return "lang" if self.lang is not None else self.tag

    @property
    def local_ref(self) -> str:
        return f"{self._config.image_namespace}:{self.tag}"

    @property
    def remote_ref(self) -> str:
        return f"{self._config.docker_repo}:{self.tag}"

    async def get_local_hash(self) -> str | None:
        return await docker.get_local_image_label(
            self.local_ref,
            self._config.image_hash_label,
            timeout=self._config.command_timeout_seconds,
        )

    async def get_published_hash(self, info: InformationalDeps) -> str | None:
        return await docker.get_remote_image_label(
            self.remote_ref,
            self._config.image_hash_label,
            timeout=self._config.command_timeout_seconds,
        )

    async def get_desired_hash(
        self, dependency_hashes: Mapping[str, str | None]
    ) -> str | None:
        if self.is_base_image:
            return None
        inputs: dict[str, str | bytes] = dict(
            dockerfile_inputs(
                self._layout.root, self._layout.dockerfile(self.dockerfile_name)
            )
        )
        if self.lang is not None:
            inputs["build-arg:LANG"] = self.lang
        return compute_desired_hash(
            self.name,
            self.kind.value,
            inputs,
            {dep: dependency_hashes[dep] for dep in self.dependencies},
        )

    async def _make(self, target: str, *args: str) -> None:
        await shell.run_command(
            " ".join(["make", target, f"I={self.tag}", *args]),
            cwd=self._layout.root,
            timeout=self._config.command_timeout_seconds,
        )

    async def build_locally(self, desired_hash: str | None) -> None:
        """Build the image, stamping *desired_hash* into its hash label."""
        if desired_hash is None:
            await self._make("image")
        else:
            await self._make("image", f"HASH={desired_hash}")

    async def retrieve_from_registry(self, info: InformationalDeps) -> None:
        await self._make("pull")

    async def publish_to_registry(self, info: InformationalDeps) -> None:
        await self._make("push")

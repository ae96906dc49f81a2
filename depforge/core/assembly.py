"""Dependency graph assembly for the image/package/test/deploy pipeline.

Assembly order, leaves first::

    image:ubuntu                      externally versioned base
    image:packaging, image:base       infrastructure images
    deb:shared-<dep>                  one per shared dependency
    image:runtime
    deb:lang-<lang>, image:lang-<lang>, test:lang-<lang>   per language
    image:app
    deploy:<target>

Image dependencies come from each Dockerfile's ``FROM`` lines; a base image
outside ``<image_namespace>:`` is a configuration error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from depforge.artifacts import (
    BaseArtifact,
    DebArtifact,
    DeployArtifact,
    ImageArtifact,
    LanguageTestArtifact,
)
from depforge.artifacts.lang_test import TEST_HASHES
from depforge.artifacts.package import DEB_HASHES
from depforge.bridge import s3
from depforge.config import ConfigurationError, ForgeConfig
from depforge.core.dependency_graph import DependencyGraph
from depforge.core.dockerfile import get_base_images
from depforge.core.info_cache import Fetcher, InformationalDependencyCache
from depforge.core.layout import RepoLayout

logger = logging.getLogger(__name__)

BASE_IMAGE = "ubuntu"
INFRASTRUCTURE_IMAGES = ("packaging", "base")
RUNTIME_IMAGE = "runtime"
APP_IMAGE = "app"


def get_informational_dependencies(config: ForgeConfig) -> dict[str, Fetcher]:
    """Return the bulk remote lookups artifacts may request, by key."""

    async def s3_deb_hashes() -> Mapping[str, str]:
        config.require("s3_bucket")
        return await s3.list_published_hashes(
            config.s3_bucket,
            config.deb_hash_prefix,
            region=config.s3_region,
            timeout=config.command_timeout_seconds,
        )

    async def s3_test_hashes() -> Mapping[str, str]:
        config.require("s3_bucket")
        return await s3.list_published_hashes(
            config.s3_bucket,
            config.test_hash_prefix,
            region=config.s3_region,
            timeout=config.command_timeout_seconds,
        )

    return {DEB_HASHES: s3_deb_hashes, TEST_HASHES: s3_test_hashes}


def get_base_image_tags(config: ForgeConfig, layout: RepoLayout, image: str) -> list[str]:
    """Return the namespace-local tags an image's Dockerfile builds ``FROM``."""
    dockerfile = layout.dockerfile(image)
    try:
        text = dockerfile.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(f"No Dockerfile for {image} image at {dockerfile}") from None

    prefix = f"{config.image_namespace}:"
    tags: list[str] = []
    for base_image in get_base_images(text, str(dockerfile)):
        if not base_image.startswith(prefix):
            raise ConfigurationError(
                f"Non-{config.image_namespace} base image '{base_image}' "
                f"in Dockerfile for {image} image"
            )
        tags.append(base_image.removeprefix(prefix))
    return tags


def get_image_artifact(
    config: ForgeConfig,
    layout: RepoLayout,
    tag: str,
    *,
    is_base_image: bool = False,
    lang: str | None = None,
    shared_deps: list[str] | None = None,
) -> ImageArtifact:
    base_image_tags: list[str] = []
    if not is_base_image:
        base_image_tags = get_base_image_tags(
            config, layout, "lang" if lang is not None else tag
        )
    return ImageArtifact(
        tag,
        config=config,
        layout=layout,
        base_image_tags=base_image_tags,
        is_base_image=is_base_image,
        lang=lang,
        shared_deps=shared_deps or [],
    )


def build_graph(config: ForgeConfig) -> DependencyGraph:
    """Assemble and validate the full dependency graph for one run.

    Raises
    ------
    ConfigurationError
        On any invalid config, unresolved reference or cycle.
    """
    layout = RepoLayout.from_config(config)
    artifacts: list[BaseArtifact] = []

    artifacts.append(get_image_artifact(config, layout, BASE_IMAGE, is_base_image=True))
    for tag in INFRASTRUCTURE_IMAGES:
        artifacts.append(get_image_artifact(config, layout, tag))

    for shared_dep in layout.get_shared_deps():
        artifacts.append(DebArtifact("shared", shared_dep, config=config, layout=layout))

    langs = layout.get_langs()
    lang_configs = {lang: layout.read_lang_config(lang) for lang in langs}

    artifacts.append(get_image_artifact(config, layout, RUNTIME_IMAGE))
    for lang in langs:
        artifacts.append(DebArtifact("lang", lang, config=config, layout=layout))
        artifacts.append(
            get_image_artifact(
                config,
                layout,
                f"lang-{lang}",
                lang=lang,
                shared_deps=lang_configs[lang].shared_deps,
            )
        )
        artifacts.append(LanguageTestArtifact(lang, config=config, layout=layout))

    artifacts.append(get_image_artifact(config, layout, APP_IMAGE))
    artifacts.append(
        DeployArtifact(
            [f"image:{APP_IMAGE}"]
            + [f"image:lang-{lang}" for lang in langs]
            + [f"test:lang-{lang}" for lang in langs],
            config=config,
            layout=layout,
        )
    )

    graph = DependencyGraph(
        artifacts,
        InformationalDependencyCache(get_informational_dependencies(config)),
        config,
    )
    logger.info(
        "Assembled dependency graph: %d artifacts, %d languages", len(graph), len(langs)
    )
    return graph

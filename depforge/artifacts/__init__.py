"""Artifact variants, one class per ``ArtifactKind``."""

from depforge.artifacts.base import (
    GET_PUBLISHED_HASH,
    PUBLISH_TO_REGISTRY,
    RETRIEVE_FROM_REGISTRY,
    BaseArtifact,
    InformationalDeps,
    UnsupportedActionError,
)
from depforge.artifacts.deploy import DeployArtifact
from depforge.artifacts.image import ImageArtifact
from depforge.artifacts.lang_test import LanguageTestArtifact
from depforge.artifacts.package import DebArtifact

__all__ = [
    "BaseArtifact",
    "InformationalDeps",
    "GET_PUBLISHED_HASH",
    "RETRIEVE_FROM_REGISTRY",
    "PUBLISH_TO_REGISTRY",
    "UnsupportedActionError",
    "ImageArtifact",
    "DebArtifact",
    "LanguageTestArtifact",
    "DeployArtifact",
]

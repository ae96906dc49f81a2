"""Artifact identity and resolved-hash models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ArtifactKind(str, Enum):
    """Closed set of artifact variants, each with its own name prefix."""

    IMAGE = "image"
    DEB = "deb"
    TEST = "test"
    DEPLOY = "deploy"


class ResolvedHashes(BaseModel):
    """The three fingerprints of one artifact, as resolved for a run.

    ``None`` means "no hash": never built locally, never published,
    or not hash-checked at all.
    """

    model_config = ConfigDict(frozen=True)

    local: str | None = None
    desired: str | None = None
    published: str | None = None

    @property
    def is_hash_checked(self) -> bool:
        return self.desired is not None

    @property
    def is_up_to_date(self) -> bool:
        return self.desired is not None and self.local == self.desired

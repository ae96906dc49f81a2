"""Language and shared-dependency configuration models (langs/*.yaml, shared/*.yaml)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LanguageInstall(BaseModel):
    """The ``install`` section of a language config.

    Only ``riju`` (the shared dependencies the language image needs) is
    relevant for reconciliation; other install keys are carried through.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    riju: list[str] = []


class LanguageConfig(BaseModel):
    """One ``langs/<lang>.yaml`` file."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    name: str = ""
    install: LanguageInstall = Field(default_factory=LanguageInstall)

    @property
    def shared_deps(self) -> list[str]:
        """Shared dependency ids, de-duplicated, in declaration order."""
        return list(dict.fromkeys(self.install.riju))


class SharedDependencyConfig(BaseModel):
    """One ``shared/<dep>.yaml`` file."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    name: str = ""

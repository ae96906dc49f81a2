"""Source tree layout: where every declared input and local output lives.

::

    docker/<image>/Dockerfile                   image recipes
    langs/<lang>.yaml                           language configs
    shared/<dep>.yaml                           shared dependency configs
    build/<type>/<lang>/riju-<type>-<lang>.deb  built packages
    build/test-hashes/lang/<lang>               test completion markers
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from depforge.config import ConfigurationError, ForgeConfig
from depforge.models.languages import LanguageConfig, SharedDependencyConfig

logger = logging.getLogger(__name__)


class LanguageConfigError(ConfigurationError):
    """Raised when a language or shared-dependency config is invalid."""


class RepoLayout:
    """Path conventions of the source tree rooted at ``config.repo_root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @classmethod
    def from_config(cls, config: ForgeConfig) -> RepoLayout:
        return cls(config.repo_root)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def dockerfile(self, image: str) -> Path:
        return self.root / "docker" / image / "Dockerfile"

    def lang_config(self, lang: str) -> Path:
        return self.root / "langs" / f"{lang}.yaml"

    def shared_config(self, dep: str) -> Path:
        return self.root / "shared" / f"{dep}.yaml"

    def package_config(self, deb_type: str, name: str) -> Path:
        """Declared input of a package: the config it is generated from."""
        if deb_type == "shared":
            return self.shared_config(name)
        return self.lang_config(name)

    def deb_path(self, deb_type: str, name: str) -> Path:
        return self.root / "build" / deb_type / name / f"riju-{deb_type}-{name}.deb"

    def test_hash_path(self, lang: str) -> Path:
        return self.root / "build" / "test-hashes" / "lang" / lang

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    # ------------------------------------------------------------------
    # Config loading
    # ------------------------------------------------------------------

    def _load_yaml(self, path: Path) -> dict:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise LanguageConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise LanguageConfigError(f"{path} must contain a mapping")
        return data

    def get_langs(self) -> list[str]:
        """Return every language id, sorted."""
        return sorted(p.stem for p in (self.root / "langs").glob("*.yaml"))

    def read_lang_config(self, lang: str) -> LanguageConfig:
        path = self.lang_config(lang)
        data = self._load_yaml(path)
        try:
            config = LanguageConfig.model_validate(data)
        except ValidationError as exc:
            raise LanguageConfigError(f"Invalid language config {path}: {exc}") from exc
        if config.id != lang:
            raise LanguageConfigError(
                f"Language config {path} declares id '{config.id}', expected '{lang}'"
            )
        return config

    def get_shared_deps(self) -> list[str]:
        """Return every shared dependency id, sorted."""
        deps: list[str] = []
        for path in sorted((self.root / "shared").glob("*.yaml")):
            data = self._load_yaml(path)
            try:
                config = SharedDependencyConfig.model_validate(data)
            except ValidationError as exc:
                raise LanguageConfigError(f"Invalid shared config {path}: {exc}") from exc
            if config.id != path.stem:
                raise LanguageConfigError(
                    f"Shared config {path} declares id '{config.id}', "
                    f"expected '{path.stem}'"
                )
            deps.append(config.id)
        return deps

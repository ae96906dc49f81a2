"""Run configuration: env-driven and threaded explicitly through a run.

Centralized config using pydantic-settings for environment variable
support. Reads from .env file and DEPFORGE_* environment variables.

Nothing below the CLI reads the process environment directly: the
``ForgeConfig`` instance built at startup is passed to graph assembly,
the artifacts, and the executor.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(ValueError):
    """Raised when the run cannot start because configuration is invalid.

    Covers missing settings, unresolved artifact references and references
    outside the system's own image namespace.  Always fatal, always raised
    before any hash work begins.
    """


class ForgeConfig(BaseSettings):
    """Reconciliation settings with environment variable overrides.

    All settings can be overridden via DEPFORGE_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export DEPFORGE_S3_BUCKET=riju-debs
        export DEPFORGE_DOCKER_REPO=registry.example.com/riju
        export DEPFORGE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEPFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    # Source tree layout
    repo_root: Path = Path(".")

    # Images
    image_namespace: str = "riju"
    image_hash_label: str = "riju.image-hash"
    docker_repo: str = ""

    # Remote object store
    s3_bucket: str = ""
    s3_region: str = ""
    deb_hash_prefix: str = "hashes"
    test_hash_prefix: str = "test-hashes/lang"

    # Deployment
    deploy_target: str = "prod"
    deploy_command: str = "make deploy"

    # External commands
    command_timeout_seconds: float | None = None

    def require(self, *field_names: str) -> None:
        """Fail fast unless every named setting is non-empty.

        All missing settings are reported at once.

        Raises
        ------
        ConfigurationError
            If any named setting is empty or unknown.
        """
        missing: list[str] = []
        for field_name in field_names:
            if field_name not in type(self).model_fields:
                raise ConfigurationError(f"Unknown setting '{field_name}'")
            if not getattr(self, field_name):
                missing.append(
                    f"'{field_name}' is not configured. "
                    f"Set DEPFORGE_{field_name.upper()}."
                )
        if missing:
            raise ConfigurationError(
                "Missing required configuration:\n"
                + "\n".join(f"  - {m}" for m in missing)
            )

"""Server configuration — env-driven.

Centralized settings using pydantic-settings. Reads from a .env file and
ASSETFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from assetforge.core.resolvers import build_mount, under_directory
from assetforge.models.freshness import FreshnessPolicy
from assetforge.models.mount import MountConfig


class ServerConfig(BaseSettings):
    """Asset server configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export ASSETFORGE_LOG_LEVEL=DEBUG
        export ASSETFORGE_SRC='["assets/js", "assets/vendor"]'
        export ASSETFORGE_DEST_DIR=build/public
        export ASSETFORGE_FORCE=never

    Or via .env file::

        ASSETFORGE_PREFIX=/static/
        ASSETFORGE_PREFILTER='["js", "coffee"]'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ASSETFORGE_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Mount
    src: list[Path] = [Path("assets")]
    dest_dir: Path = Path(".assetforge/out")
    prefix: str = "/"
    force: FreshnessPolicy = FreshnessPolicy.IF_NEWER
    encoding: str | None = None
    prefilter: list[str] = []  # extensions; empty accepts every file

    # Serving
    host: str = "127.0.0.1"
    port: int = 8600

    @field_validator("force", mode="before")
    @classmethod
    def _coerce_force(cls, value: object) -> FreshnessPolicy:
        return FreshnessPolicy.coerce(value)  # type: ignore[arg-type]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def to_mount(self) -> MountConfig:
        """Build the MountConfig described by these settings."""
        pipeline = {"prefilter": self.prefilter} if self.prefilter else None
        return build_mount(
            src=self.src,
            dest=under_directory(self.dest_dir),
            prefix=self.prefix,
            force=self.force,
            encoding=self.encoding,
            pipeline=pipeline,
        )

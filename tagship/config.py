"""Runtime settings: env-driven, separate from the per-project release config.

Reads from a .env file and TAGSHIP_* environment variables.  The project's
``tagship.toml`` (see ``tagship.models.config``) says *what* to release;
these settings say *how* this machine runs it.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ReleaseSettings(BaseSettings):
    """Release runner settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TAGSHIP_LOG_LEVEL=DEBUG
        export TAGSHIP_REVISION=$CI_COMMIT_SHORT_SHA
        export TAGSHIP_FETCH_RETRIES=5

    Or via .env file::

        TAGSHIP_ENVIRONMENT=ci
        TAGSHIP_DRY_RUN=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TAGSHIP_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Paths
    config_path: Path = Path("tagship.toml")
    work_dir: Path = Path(".tagship")

    # Worker pool bounds
    max_build_workers: int = 4
    max_fetch_workers: int = 8
    max_publish_workers: int = 4

    # Artifact fetch retries (upstream uploads take a while to propagate)
    fetch_retries: int = 3
    fetch_backoff_seconds: float = 2.0
    fetch_timeout_seconds: float = 30.0

    # Source revision for channels that track HEAD (e.g. a short commit hash)
    revision: str | None = None

    dry_run: bool = False

    @property
    def output_dir(self) -> Path:
        """Where promoted release binaries are written."""
        return self.work_dir / "dist"

    @property
    def cache_dir(self) -> Path:
        """Where pinned static dependencies are built."""
        return self.work_dir / "cache"

    @property
    def staging_dir(self) -> Path:
        return self.work_dir / "staging"

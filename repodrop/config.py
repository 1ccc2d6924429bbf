"""Runtime configuration — env-driven.

Centralized config using pydantic-settings. Reads from a .env file and
REPODROP_* environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


class RepodropConfig(BaseSettings):
    """Uploader configuration with environment variable overrides.

    All settings can be overridden via REPODROP_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export REPODROP_GITHUB_TOKEN=ghp_xxx
        export REPODROP_GITHUB_REPO=owner/pool
        export REPODROP_BRANCH=main

    Or via .env file::

        REPODROP_ENVIRONMENT=production
        REPODROP_MANIFEST_PATH=content.json
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="REPODROP_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Remote repository
    github_token: str = ""
    github_repo: str = ""          # "owner/name"
    branch: str = "main"
    api_base_url: str = "https://api.github.com"
    raw_base_url: str = "https://raw.githubusercontent.com"
    user_agent: str = "repodrop-uploader"
    request_timeout_seconds: float = 30.0

    # Manifest and artifacts
    manifest_path: str = "content.json"
    file_mode: str = "100644"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    # Optimistic concurrency
    max_attempts: int = 3
    retry_delay_seconds: float = 0.2

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    def raw_url(self, path: str, *, repo: str | None = None, branch: str | None = None) -> str:
        """Return the raw-content URL for *path* on the configured branch."""
        return (
            f"{self.raw_base_url.rstrip('/')}/{repo or self.github_repo}"
            f"/{branch or self.branch}/{path}"
        )


# Module-level singleton — import as `from repodrop.config import config`
config = RepodropConfig()

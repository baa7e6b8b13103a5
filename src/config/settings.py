# src/config/settings.py — v2
"""Typed configuration loaded from the environment / .env via pydantic-settings.

Single source of truth for every deployment-specific setting of the
publishing pipeline. The minor version of the docs is the one value that
does not live here: it is read from the site configuration file.
"""

from __future__ import annotations

import platform
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docspublisher.core.errors import DocsPublisherError


class ConfigurationError(DocsPublisherError):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file and environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === UPSTREAM PROJECT ===
    upstream_repo: str = "TuringLang/Turing.jl"
    github_api_url: str = "https://api.github.com"
    github_token: str = ""
    http_timeout_s: float = 30.0

    # === PROJECT LAYOUT ===
    project_root: Path = Path(".")
    site_config_path: Path = Path("_quarto.yml")
    site_dir: Path = Path("_site")
    freeze_dir: Path = Path("_freeze")

    # === RENDERING ===
    render_command: str = "quarto render"
    metadata_scripts: str = "assets/scripts/changelog.sh,assets/scripts/versions.sh"

    # === SEARCH INDEX ===
    main_search_index_url: str = (
        "https://raw.githubusercontent.com/TuringLang/turinglang.github.io/"
        "gh-pages/search_original.json"
    )
    search_url_prefix: str = "../"

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["local"] = "local"
    cache_root: Path = Path("~/.docspublisher/cache")
    cache_os: str = ""
    cache_lockfile_pattern: str = "**/Manifest.toml"
    cache_notebook_pattern: str = "**/index.qmd"
    dependency_cache_name: str = "julia-cache"
    dependency_cache_paths: str = ""
    cache_keep_entries: int = 2

    # === PUBLISHING ===
    publish_enabled: bool = True
    publish_repo_url: str = ""
    publish_branch: str = "gh-pages"
    publish_checkout_dir: Path = Path("gh-pages")
    publish_versions_dir: str = "versions"
    publish_preserve: str = "CNAME,.nojekyll"
    publish_push: bool = True
    publish_max_retries: int = 3
    publish_retry_base_delay_s: float = 2.0
    git_user_name: str = "github-actions[bot]"
    git_user_email: str = "github-actions[bot]@users.noreply.github.com"

    # Build provenance, filled in by the CI environment
    github_repository: str = ""
    github_sha: str = ""

    # === Version resolution ===
    strict_version: bool = False

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("publish_max_retries")
    @classmethod
    def validate_publish_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("publish_max_retries must be >= 0")
        return v

    @field_validator("cache_keep_entries")
    @classmethod
    def validate_cache_keep_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("cache_keep_entries must be >= 1")
        return v

    @field_validator("http_timeout_s", "publish_retry_base_delay_s")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("durations must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        owner, _, name = self.upstream_repo.partition("/")
        if not owner or not name or "/" in name:
            errors.append("UPSTREAM_REPO must look like 'owner/name'")

        if not self.search_url_prefix.endswith("/"):
            errors.append("SEARCH_URL_PREFIX must end with '/'")

        if not self.publish_versions_dir or "/" in self.publish_versions_dir.strip("/"):
            errors.append("PUBLISH_VERSIONS_DIR must be a single directory name")

        if self.freeze_dir.is_absolute():
            errors.append("FREEZE_DIR must be relative to PROJECT_ROOT")

        for path in self.dependency_cache_paths_list:
            rel = Path(path)
            if rel.is_absolute() or path.startswith("~") or ".." in rel.parts:
                errors.append(
                    f"DEPENDENCY_CACHE_PATHS entry {path!r} must be relative to PROJECT_ROOT"
                )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def metadata_scripts_list(self) -> list[str]:
        """Parse comma-separated metadata scripts."""
        return [s.strip() for s in self.metadata_scripts.split(",") if s.strip()]

    @property
    def dependency_cache_paths_list(self) -> list[str]:
        """Parse comma-separated dependency cache paths."""
        return [p.strip() for p in self.dependency_cache_paths.split(",") if p.strip()]

    @property
    def publish_preserve_list(self) -> list[str]:
        """Parse comma-separated names kept at the publish root."""
        return [p.strip() for p in self.publish_preserve.split(",") if p.strip()]

    @property
    def effective_cache_os(self) -> str:
        """Operating-system component of cache keys."""
        return self.cache_os or platform.system()

    def resolve_path(self, path: Path) -> Path:
        """Resolve a project-relative path against project_root."""
        path = Path(path).expanduser()
        if path.is_absolute():
            return path
        return self.project_root / path


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]

"""Unified configuration schema for gfdashsync.

Defines Pydantic models for the YAML config structure with dedicated
sections for Grafana, GitLab, sync behaviour and logging, plus the adapter
that flattens it into fallback values for ``load_config()``.

Usage:
    from gfdashsync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GrafanaConfig(BaseModel):
    """Grafana connection settings.

    Everything is optional here; the environment or the command line may
    provide the same values.
    """

    url: str | None = Field(default=None, description="Grafana URL")
    token: str | None = Field(
        default=None, description="Grafana API token"
    )
    insecure: bool = Field(
        default=False,
        description="Skip TLS certificate checks (development only)",
    )

    model_config = {"frozen": True}


class GitLabConfig(BaseModel):
    """GitLab repository settings."""

    url: str | None = Field(
        default=None,
        description="GitLab API base URL (e.g. https://gitlab.com/api/v4)",
    )
    token: str | None = Field(
        default=None, description="GitLab access token"
    )
    project_id: int | None = Field(
        default=None, ge=1, description="Numeric project id"
    )
    branch: str | None = Field(
        default=None, description="Branch to commit to"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync behaviour settings."""

    history_file: str | None = Field(
        default=None,
        description="Repository path of the history file",
    )
    commit_message: str | None = Field(
        default=None, description="Message of the backup commit"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or single-line ``json``.
        debug: Same as ``--debug``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(
        default="text", description="Log line format"
    )
    debug: bool = Field(default=False, description="Enable debug logging")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """The whole YAML document: one attribute per section.

    ``UnifiedConfig()`` is valid on its own, which is what a run without
    any config file uses.
    """

    grafana: GrafanaConfig = Field(default_factory=GrafanaConfig)
    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Validate the merged YAML mapping; absent sections get defaults.

    Raises:
        pydantic.ValidationError: If a value has the wrong type or range.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config() fallbacks
# ---------------------------------------------------------------------------


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into ``Config`` field names.

    Only values that are actually set are returned so that built-in
    defaults in ``load_config()`` still apply.

    Args:
        unified: The unified config produced by ``build_config()``.

    Returns:
        Dict suitable for ``load_config(yaml_fallbacks=...)``.
    """
    flat = {
        "grafana_url": unified.grafana.url,
        "grafana_token": unified.grafana.token,
        "gitlab_url": unified.gitlab.url,
        "gitlab_token": unified.gitlab.token,
        "project_id": unified.gitlab.project_id,
        "branch": unified.gitlab.branch,
        "history_file": unified.sync.history_file,
        "commit_message": unified.sync.commit_message,
        "insecure": unified.grafana.insecure or None,
        "debug": unified.logging.debug or None,
    }
    return {k: v for k, v in flat.items() if v is not None}

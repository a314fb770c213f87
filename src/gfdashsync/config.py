"""Runtime configuration for gfdashsync.

Reads Grafana and GitLab connection settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GRAFANA_URL: Grafana instance URL (required)
    GRAFANA_TOKEN: Grafana API token (required)
    GITLAB_URL: GitLab API base URL, e.g. https://gitlab.com/api/v4 (required)
    GITLAB_TOKEN: GitLab access token (required)
    GITLAB_PROJECT_ID: Numeric id of the backup project (required)
    GITLAB_BRANCH: Branch to commit to (optional, default: main)
    GFDASHSYNC_HISTORY_FILE: History file path (optional, default: history.json)
    GFDASHSYNC_COMMIT_MESSAGE: Commit message (optional)
    GFDASHSYNC_INSECURE: Skip SSL verification (optional, default: false)
    GFDASHSYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DEFAULT_HISTORY_FILE = "history.json"
DEFAULT_COMMIT_MESSAGE = "gfdashsync: backup done."


@dataclass
class Config:
    grafana_url: str
    grafana_token: str
    gitlab_url: str
    gitlab_token: str
    project_id: int
    branch: str = DEFAULT_BRANCH
    history_file: str = DEFAULT_HISTORY_FILE
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    insecure: bool = False
    debug: bool = False


def _validate_url(name: str, value: str) -> str:
    """Return *value* stripped of whitespace and trailing slash."""
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid {name} URL '{value}': must start with http:// or https://"
        )
    if not urlparse(value).hostname:
        raise ValueError(
            f"Invalid {name} URL '{value}': URL must include a hostname"
        )
    return value.removesuffix("/")


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Normalizes URLs in place (whitespace and trailing slash removed).

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a URL is malformed, a token is empty, the project
            id is not positive, or branch/history file are empty.
    """
    config.grafana_url = _validate_url("Grafana", config.grafana_url)
    config.gitlab_url = _validate_url("GitLab", config.gitlab_url)

    if not config.grafana_token.strip():
        raise ValueError(
            "Grafana token cannot be empty. Set GRAFANA_TOKEN environment variable."
        )

    if not config.gitlab_token.strip():
        raise ValueError(
            "GitLab token cannot be empty. Set GITLAB_TOKEN environment variable."
        )

    if config.project_id <= 0:
        raise ValueError(
            f"Invalid GitLab project id {config.project_id}: must be a positive number"
        )

    if not config.branch.strip():
        raise ValueError("GitLab branch cannot be empty")

    if not config.history_file.strip().lstrip("/"):
        raise ValueError("History file path cannot be empty")

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _parse_project_id(raw: object, source: str) -> int:
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValueError(
            f"Invalid GitLab project id '{raw}' from {source}: must be a number"
        ) from None


def load_config(
    grafana_url: str | None = None,
    grafana_token: str | None = None,
    gitlab_url: str | None = None,
    gitlab_token: str | None = None,
    project_id: int | None = None,
    branch: str | None = None,
    history_file: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        grafana_url: Override Grafana URL.
        grafana_token: Override Grafana API token.
        gitlab_url: Override GitLab API URL.
        gitlab_token: Override GitLab token.
        project_id: Override GitLab project id.
        branch: Override target branch.
        history_file: Override history file path.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file,
            keyed by ``Config`` field name.  Used as fallback when CLI
            arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config is missing after checking all
            sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- Required string fields: CLI > env > YAML > error ---

    def required(value: str | None, env: str, key: str, flag: str) -> str:
        final = value or os.getenv(env) or fb.get(key)
        if not final:
            raise ValueError(
                f"{key} not found. Set {env} environment variable, "
                f"pass {flag} CLI argument, or add it to config.yml."
            )
        return str(final).strip()

    final_grafana_url = required(
        grafana_url, "GRAFANA_URL", "grafana_url", "--grafana-url"
    )
    final_grafana_token = required(
        grafana_token, "GRAFANA_TOKEN", "grafana_token", "--grafana-token"
    )
    final_gitlab_url = required(
        gitlab_url, "GITLAB_URL", "gitlab_url", "--gitlab-url"
    )
    final_gitlab_token = required(
        gitlab_token, "GITLAB_TOKEN", "gitlab_token", "--gitlab-token"
    )

    if project_id is not None:
        final_project_id = project_id
    elif os.getenv("GITLAB_PROJECT_ID"):
        final_project_id = _parse_project_id(
            os.getenv("GITLAB_PROJECT_ID"), "GITLAB_PROJECT_ID"
        )
    elif fb.get("project_id") is not None:
        final_project_id = _parse_project_id(fb["project_id"], "config file")
    else:
        raise ValueError(
            "project_id not found. Set GITLAB_PROJECT_ID environment variable, "
            "pass --project-id CLI argument, or add it to config.yml."
        )

    # --- Optional string fields: CLI > env > YAML > default ---

    final_branch = (
        branch
        or os.getenv("GITLAB_BRANCH")
        or fb.get("branch")
        or DEFAULT_BRANCH
    )
    final_history_file = (
        history_file
        or os.getenv("GFDASHSYNC_HISTORY_FILE")
        or fb.get("history_file")
        or DEFAULT_HISTORY_FILE
    )
    final_commit_message = (
        os.getenv("GFDASHSYNC_COMMIT_MESSAGE")
        or fb.get("commit_message")
        or DEFAULT_COMMIT_MESSAGE
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if insecure:
        final_insecure = True
    else:
        env_insecure = get_bool_env("GFDASHSYNC_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("GFDASHSYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        grafana_url=final_grafana_url,
        grafana_token=final_grafana_token,
        gitlab_url=final_gitlab_url,
        gitlab_token=final_gitlab_token,
        project_id=final_project_id,
        branch=final_branch.strip(),
        history_file=final_history_file.strip(),
        commit_message=final_commit_message,
        insecure=final_insecure,
        debug=final_debug,
    )

    validate_config(config)

    return config

"""
YAML config files and the legacy flag file.

Config files are looked up by convention (see ``discover_config_files``)
and merged so that the most specific file wins per top-level section.
While a file is parsed:

- ``!include other.yml`` splices in another YAML document, resolved
  relative to the including file.
- Any scalar containing ``${VAR}`` or ``${VAR:-default}`` is expanded
  from the environment.

The flag file predates YAML support: one ``name value`` pair per line,
e.g. ``git.pid 42``.

Usage:
    from gfdashsync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GFDASHSYNC_CONFIG"
PROJECT_CONFIG_DIR = ".gfdashsync"
CONFIG_NAMES = ("config.yml", "config.yaml")

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty VAR expands to *default*, or to ``""`` without one.
    An unterminated ``${`` is kept as is.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["default"] or "", value
    )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with ``!include`` and env var expansion.

    Registered on this subclass only, so plain ``yaml.safe_load`` keeps
    rejecting the tag.  *chain* lists the files currently being loaded,
    outermost first.
    """

    def __init__(self, stream, chain: tuple[Path, ...] = ()) -> None:
        super().__init__(stream)
        self.chain = chain


def _construct_include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node))
    current = loader.chain[-1]
    if not target.is_absolute():
        target = current.parent / target
    target = target.resolve()

    if target in loader.chain:
        cycle = " -> ".join(str(p) for p in (*loader.chain, target))
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {current})"
        )
    return _load_file(target, loader.chain)


def _construct_str(loader: ConfigLoader, node: yaml.ScalarNode) -> str:
    return interpolate_env_vars(loader.construct_scalar(node))


ConfigLoader.add_constructor("!include", _construct_include)
ConfigLoader.add_constructor("tag:yaml.org,2002:str", _construct_str)


def _load_file(path: Path, chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following includes."""
    path = path.resolve()
    with path.open(encoding="utf-8") as fh:
        loader = ConfigLoader(fh, (*chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    paths = [Path(explicit).expanduser().resolve()] if explicit else []
    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    paths.extend(project_dir / name for name in CONFIG_NAMES)
    paths.append(Path.home() / ".config" / "gfdashsync" / "config.yml")
    return paths


def discover_config_files() -> list[Path]:
    """Return the config files that exist, most specific first.

    Candidates, in order:
        1. the path in ``GFDASHSYNC_CONFIG``
        2. ``./.gfdashsync/config.yml``
        3. ``./.gfdashsync/config.yaml``
        4. ``~/.config/gfdashsync/config.yml``
    """
    return [p for p in _candidate_paths() if p.is_file()]


def load_hierarchical_config() -> dict[str, Any]:
    """Load every discovered config file and merge them.

    Top-level sections of a more specific file replace the same
    sections of a less specific one as a whole; they are not merged
    key by key.  Files whose root is not a mapping are skipped.

    Returns:
        The merged mapping; empty when there is no config file.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        data = _load_file(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: root is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)
    return merged


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# gfdashsync configuration
#
# Every setting may also come from the environment (GRAFANA_URL,
# GRAFANA_TOKEN, GITLAB_URL, GITLAB_TOKEN, GITLAB_PROJECT_ID, ...),
# which takes precedence over this file.  Values may reference
# environment variables as ${VAR} or ${VAR:-default}.
#
# grafana:
#   url: https://grafana.example.com
#   token: ${GRAFANA_TOKEN}
#   insecure: false
#
# gitlab:
#   url: https://gitlab.example.com/api/v4
#   token: !include gitlab-token.yml
#   project_id: 42
#   branch: main
#
# sync:
#   history_file: history.json
#   commit_message: "gfdashsync: backup done."
#
# logging:
#   level: INFO
#   file: gfdashsync.log
#   format: text
#   debug: false
"""


def resolve_config_path() -> Path:
    """Config file in effect, or the project-level default location."""
    found = discover_config_files()
    return found[0] if found else Path.cwd() / PROJECT_CONFIG_DIR / CONFIG_NAMES[0]


def ensure_config(target: Path | None = None) -> Path:
    """Write the commented starter config unless a config file exists.

    Args:
        target: Where to write; defaults to ``resolve_config_path()``.

    Returns:
        The existing or newly written config file.
    """
    found = discover_config_files()
    if found:
        logger.debug("Config file already exists: %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config: %s", path)
    return path


# ---------------------------------------------------------------------------
# Legacy flag file
# ---------------------------------------------------------------------------

# Flag names mapped to ``Config`` field names.
FLAG_NAMES: dict[str, str] = {
    "grafana.api": "grafana_url",
    "grafana.token": "grafana_token",
    "git.api": "gitlab_url",
    "git.token": "gitlab_token",
    "git.pid": "project_id",
    "git.branch": "branch",
}


def read_flag_file(path: Path) -> dict[str, str]:
    """Read a flag file with one ``name value`` pair per line.

    Lines that do not split into exactly two fields are ignored, as are
    lines starting with ``#``.  A leading ``-`` on the name is allowed.
    Unknown names are logged and ignored.

    Returns:
        Values keyed by ``Config`` field name.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            fields = line.split()
            if len(fields) != 2 or fields[0].startswith("#"):
                continue
            name, value = fields
            key = FLAG_NAMES.get(name.lstrip("-"))
            if key is None:
                logger.warning(
                    "%s:%d: unknown flag '%s' ignored", path, lineno, name
                )
                continue
            values[key] = value
    return values

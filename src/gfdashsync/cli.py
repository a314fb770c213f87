"""Command line entry point for gfdashsync.

Commands:

- ``sync`` (default) -- back up all dashboards in one commit.
- ``history`` -- list the dashboards tracked by the remote history file.
- ``init`` -- write a commented starter config file.

Exit status is 0 on success (including runs with per-dashboard errors,
which are reported and logged) and 1 on configuration or fatal sync
errors.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
    read_flag_file,
)
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .core.gitlab import GitLabClient
from .core.grafana import GrafanaClient
from .exceptions import SyncError
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.history import HistoryStore
from .sync.reporter import (
    format_dry_run_preview,
    format_history,
    format_sync_report,
    report_to_json,
)

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gfdashsync",
        description="Back up all Grafana dashboards into a GitLab repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .gfdashsync/config.yml)
  gfdashsync

  # Preview the commit without applying it
  gfdashsync sync --dry-run

  # Override connection settings
  gfdashsync --grafana-url https://grafana.example.com \\
      --gitlab-url https://gitlab.example.com/api/v4 --project-id 42 sync

  # Use a flag file with one "name value" pair per line
  gfdashsync --config ./config sync

  # Show what the repository currently tracks
  gfdashsync history
        """,
    )

    parser.add_argument("--grafana-url", help="Grafana URL")
    parser.add_argument(
        "--grafana-token",
        help="Grafana API token (visible in process list -- prefer GRAFANA_TOKEN)",
    )
    parser.add_argument(
        "--gitlab-url", help="GitLab API URL, e.g. https://gitlab.com/api/v4"
    )
    parser.add_argument(
        "--gitlab-token",
        help="GitLab access token (visible in process list -- prefer GITLAB_TOKEN)",
    )
    parser.add_argument(
        "--project-id", type=int, help="GitLab project id"
    )
    parser.add_argument("--branch", help="Branch to commit to (default: main)")
    parser.add_argument(
        "--history-file",
        help="Repository path of the history file (default: history.json)",
    )
    parser.add_argument(
        "--config",
        help="Flag file with 'name value' lines (grafana.api, grafana.token, "
        "git.api, git.token, git.pid, git.branch)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write log records here")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"gfdashsync version {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command")
    # After add_subparsers so the subcommand action picks up the default
    parser.set_defaults(command="sync", dry_run=False, json=False)

    sync_parser = subparsers.add_parser(
        "sync", help="Back up all dashboards in one commit (default)"
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the commit but do not apply it",
    )
    sync_parser.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )

    subparsers.add_parser(
        "history", help="List dashboards tracked by the history file"
    )
    subparsers.add_parser("init", help="Write a starter config file")

    return parser


def _cli_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "grafana_url": args.grafana_url,
        "grafana_token": args.grafana_token,
        "gitlab_url": args.gitlab_url,
        "gitlab_token": args.gitlab_token,
        "project_id": args.project_id,
        "branch": args.branch,
        "history_file": args.history_file,
    }
    return {k: v for k, v in overrides.items() if v is not None}


def load_runtime_config(
    args: argparse.Namespace, unified: UnifiedConfig
) -> Config:
    """Merge CLI args, env, flag file and YAML config into a ``Config``.

    Raises:
        ValueError: If required settings are missing or invalid.
        FileNotFoundError: If ``--config`` names a missing file.
    """
    fallbacks = to_fallbacks(unified)
    if args.config:
        flag_values = read_flag_file(Path(args.config))
        logger.info(
            "Read %d settings from flag file %s", len(flag_values), args.config
        )
        fallbacks.update(flag_values)

    return load_config(
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=fallbacks,
        **_cli_overrides(args),
    )


def _run_sync(args: argparse.Namespace, config: Config) -> int:
    engine = SyncEngine(
        grafana=GrafanaClient(config),
        repository=GitLabClient(config),
        history_file=config.history_file,
        commit_message=config.commit_message,
    )
    report = engine.run(dry_run=args.dry_run)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif report.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))

    for result in report.errors:
        logger.warning(
            "Dashboard %s was not synced: %s", result.uid, result.error
        )
    return 0


def _run_history(config: Config) -> int:
    history = HistoryStore.load(GitLabClient(config), config.history_file)
    print(format_history(history, config.history_file))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the selected command and return the exit status."""
    args = build_parser().parse_args(argv)

    if args.command == "init":
        path = ensure_config()
        print(f"Config file: {path}")
        return 0

    # .env first so ${VAR} interpolation in YAML can use its values
    load_dotenv()
    try:
        unified = build_config(load_hierarchical_config())
    except (OSError, ValueError, yaml.YAMLError) as e:
        _stderr_print(f"ERROR: Failed to load config file: {e}")
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format or unified.logging.format,
        level=unified.logging.level,
    )

    config_files = discover_config_files()
    if config_files:
        logger.info("Configuration file: %s", config_files[0])

    try:
        config = load_runtime_config(args, unified)
    except (OSError, ValueError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        return 1

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info(
        "Syncing %s into project %d (branch %s)",
        config.grafana_url,
        config.project_id,
        config.branch,
    )

    try:
        if args.command == "history":
            return _run_history(config)
        return _run_sync(args, config)
    except SyncError as e:
        logger.error("Sync failed: %s", e)
        _stderr_print(f"ERROR: {e}")
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    run()

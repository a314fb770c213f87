"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by outcome.
- ``format_history`` -- listing of the tracked dashboards.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .history import HistoryStore
    from .models import SyncReport, SyncResult

from .models import SyncOutcome

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _describe(result: SyncResult) -> str:
    if result.previous_path:
        return f"{result.previous_path} -> {result.path} ({result.uid})"
    return f"{result.path} ({result.uid})"


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged dashboards are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Dashboard sync report"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Synced {len(report.results)} dashboards: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.moved)} moved, {len(report.deleted)} deleted, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    sections = [
        ("Created:", report.created),
        ("Updated:", report.updated),
        ("Moved:", report.moved),
        ("Deleted:", report.deleted),
    ]
    for title, results in sections:
        if not results:
            continue
        lines.append(title)
        for r in results:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.uid or r.path}: {r.error}")
        lines.append("")

    if report.unchanged:
        lines.append(f"Unchanged: {len(report.unchanged)} dashboards")
        lines.append("")

    if report.nothing_to_commit:
        lines.append("Nothing to commit.")
    elif report.committed:
        commit = f" {report.commit_id}" if report.commit_id else ""
        lines.append(
            f"Committed{commit}: {report.action_count} actions "
            f"(history file {report.history_action.value})"
        )
    else:
        lines.append(f"Not committed: {report.action_count} actions pending")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by outcome.

    Each proposed change is shown as ``[OUTCOME] path (uid)``.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["DRY RUN -- No changes will be committed", ""]

    groups: dict[SyncOutcome, list[SyncResult]] = defaultdict(list)
    for r in report.results:
        groups[r.outcome].append(r)

    display_order = [
        SyncOutcome.CREATED,
        SyncOutcome.UPDATED,
        SyncOutcome.MOVED,
        SyncOutcome.DELETED,
        SyncOutcome.FAILED,
    ]
    for outcome in display_order:
        if outcome not in groups:
            continue
        lines.append(f"[{outcome.value.upper()}]")
        for r in groups[outcome]:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    unchanged = len(groups.get(SyncOutcome.UNCHANGED, []))
    if unchanged:
        lines.append(f"Unchanged: {unchanged} dashboards")
        lines.append("")

    if report.nothing_to_commit:
        lines.append("No changes needed.")
    else:
        lines.append(
            f"Would commit {report.action_count} actions "
            f"(history file {report.history_action.value})"
        )

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# History listing
# ------------------------------------------------------------------


def format_history(history: HistoryStore, path: str) -> str:
    """List the dashboards tracked by a history file."""
    if not history.existed:
        return f"No history file '{path}' in repository."
    lines = [f"History file '{path}': {len(history)} dashboards"]
    for record in history:
        lines.append(f"  {record.uid}  {record.path}  {record.sha256[:12]}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-dashboard details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "uid": r.uid,
            "path": r.path,
            "outcome": r.outcome.value,
            "success": r.success,
        }
        if r.previous_path:
            entry["previous_path"] = r.previous_path
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "committed": report.committed,
        "commit_id": report.commit_id,
        "action_count": report.action_count,
        "history_action": (
            report.history_action.value if report.history_action else None
        ),
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "updated": len(report.updated),
            "moved": len(report.moved),
            "deleted": len(report.deleted),
            "unchanged": len(report.unchanged),
            "errors": len(report.errors),
        },
        "results": results_list,
    }

"""History-based dashboard sync engine.

Public API for backing up Grafana dashboards into a GitLab repository.

Architecture
------------
The repository holds one JSON file per dashboard plus a **history file**
recording, for every dashboard uid, the path and SHA-256 it had at the
last sync.  Each run compares the live dashboards against that history
(never against the repository tree itself) and derives one atomic commit
with create/update/move/delete actions and the rewritten history file.

Modules:

- ``engine``      -- ``SyncEngine``: orchestrates a full sync run.
- ``reconciler``  -- ``Reconciler``: turns observed blobs into actions.
- ``history``     -- ``HistoryStore``: load/serialize the history file.
- ``mapper``      -- dashboard payload to ``Blob`` conversion.
- ``fingerprint`` -- content digest.
- ``models``      -- ``Blob``, ``HistoryRecord``, ``CommitAction``,
  ``SyncResult``, ``SyncReport``: core data contracts.
- ``reporter``    -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from gfdashsync.core import GitLabClient, GrafanaClient
    from gfdashsync.sync import SyncEngine, format_sync_report

    engine = SyncEngine(
        grafana=GrafanaClient(config),
        repository=GitLabClient(config),
        history_file=config.history_file,
        commit_message=config.commit_message,
    )

    # Dry-run first to preview changes
    preview = engine.run(dry_run=True)
    print(format_dry_run_preview(preview))

    # Execute the sync
    report = engine.run()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .fingerprint import fingerprint
from .history import HistoryStore
from .models import (
    ActionKind,
    Blob,
    CommitAction,
    HistoryRecord,
    SyncOutcome,
    SyncReport,
    SyncResult,
)
from .reconciler import Reconciler
from .reporter import (
    format_dry_run_preview,
    format_history,
    format_sync_report,
    report_to_json,
)

__all__ = [
    "ActionKind",
    "Blob",
    "CommitAction",
    "HistoryRecord",
    "HistoryStore",
    "Reconciler",
    "SyncEngine",
    "SyncOutcome",
    "SyncReport",
    "SyncResult",
    "fingerprint",
    "format_dry_run_preview",
    "format_history",
    "format_sync_report",
    "report_to_json",
]

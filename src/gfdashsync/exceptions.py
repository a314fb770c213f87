"""Exception hierarchy for gfdashsync.

Errors fall into two groups:

- **Fatal for the run** -- ``HistoryLoadError``, ``DashboardListError``,
  ``CommitError``.  The sync aborts and nothing partial is written.
- **Per-item** -- ``DashboardFetchError``.  The dashboard is logged and
  skipped; the rest of the batch continues.

``RepositoryFileNotFoundError`` is raised by the repository client when a
file does not exist.  For the history file this is not an error: it
selects an empty initial history.
"""


class SyncError(Exception):
    """Base class for all gfdashsync errors."""


class RepositoryFileNotFoundError(SyncError):
    """A file does not exist in the repository at the requested ref."""

    def __init__(self, path: str, ref: str | None = None) -> None:
        self.path = path
        self.ref = ref
        where = f" at ref '{ref}'" if ref else ""
        super().__init__(f"File '{path}' not found in repository{where}")


class HistoryLoadError(SyncError):
    """The history file could not be fetched from the repository."""


class HistoryDecodeError(HistoryLoadError):
    """The history file exists but its content is not a valid history."""


class DashboardListError(SyncError):
    """Listing dashboards from Grafana failed."""


class DashboardFetchError(SyncError):
    """A single dashboard could not be fetched, converted or placed."""

    def __init__(self, uid: str, message: str) -> None:
        self.uid = uid
        super().__init__(f"Dashboard '{uid}': {message}")


class CommitError(SyncError):
    """The repository rejected or failed to apply the commit."""


class ReconcilerClosedError(SyncError):
    """A reconciler was used after ``finalize()`` was called."""

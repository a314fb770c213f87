"""Pydantic models for the dashboard sync engine.

Defines the core data contracts used across all sync modules:

- ``Blob``: One observed dashboard (id, path, fingerprint, content).
- ``HistoryRecord``: Last-synced state of one dashboard.
- ``ActionKind``: Enum of repository file actions.
- ``CommitAction``: One file-level mutation destined for the commit.
- ``SyncOutcome``: What happened to one dashboard during a run.
- ``SyncResult``: Outcome of syncing one dashboard.
- ``SyncReport``: Aggregate results for a full sync run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class Blob(BaseModel):
    """A dashboard observed in the current run.

    Attributes:
        uid: Stable dashboard identifier; survives renames.
        path: Repository path the dashboard is written to.
        fingerprint: SHA-256 of ``content``.
        content: Serialized dashboard.
    """

    uid: str
    path: str
    fingerprint: str
    content: bytes

    model_config = {"frozen": True}


class HistoryRecord(BaseModel):
    """Last-synced identity/path/fingerprint triple of one dashboard.

    Field names match the keys of the persisted history file.
    """

    uid: str
    path: str
    sha256: str

    model_config = {"frozen": True}


class ActionKind(str, Enum):
    """Repository file actions, named as the GitLab commits API names them."""

    CREATE = "create"
    UPDATE = "update"
    MOVE = "move"
    DELETE = "delete"


class CommitAction(BaseModel):
    """One file-level mutation of a commit.

    Attributes:
        action: Kind of mutation.
        file_path: Target path (new path for moves).
        previous_path: Source path, only set for moves.
        content: New file content; ``None`` for deletes.
    """

    action: ActionKind
    file_path: str
    previous_path: str | None = None
    content: bytes | None = None

    model_config = {"frozen": True}

    @classmethod
    def create(cls, path: str, content: bytes) -> CommitAction:
        return cls(action=ActionKind.CREATE, file_path=path, content=content)

    @classmethod
    def update(cls, path: str, content: bytes) -> CommitAction:
        return cls(action=ActionKind.UPDATE, file_path=path, content=content)

    @classmethod
    def move(
        cls, previous_path: str, path: str, content: bytes
    ) -> CommitAction:
        return cls(
            action=ActionKind.MOVE,
            file_path=path,
            previous_path=previous_path,
            content=content,
        )

    @classmethod
    def delete(cls, path: str) -> CommitAction:
        return cls(action=ActionKind.DELETE, file_path=path)


class SyncOutcome(str, Enum):
    """What the sync did with one dashboard."""

    CREATED = "created"
    UPDATED = "updated"
    MOVED = "moved"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    FAILED = "failed"


class SyncResult(BaseModel):
    """Result of syncing one dashboard.

    Attributes:
        uid: Dashboard uid.
        path: Repository path of the dashboard (old path for deletes).
        previous_path: Old path, only set for moves.
        outcome: What happened to the dashboard.
        success: Whether the dashboard was processed without error.
        error: Error message if the dashboard could not be processed.
    """

    uid: str
    path: str = ""
    previous_path: str | None = None
    outcome: SyncOutcome
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        dry_run: Whether this was a dry-run (no commit made).
        results: List of per-dashboard results.
        action_count: Number of actions in the commit batch, history
            write included.
        history_action: Create/update of the history file, or ``None``
            when there was nothing to commit.
        committed: Whether a commit was made.
        commit_id: Id of the created commit, if any.
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
    """

    dry_run: bool = False
    results: list[SyncResult] = []
    action_count: int = 0
    history_action: ActionKind | None = None
    committed: bool = False
    commit_id: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_outcome(self, outcome: SyncOutcome) -> list[SyncResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def created(self) -> list[SyncResult]:
        """Results where outcome is CREATED."""
        return self._with_outcome(SyncOutcome.CREATED)

    @property
    def updated(self) -> list[SyncResult]:
        """Results where outcome is UPDATED."""
        return self._with_outcome(SyncOutcome.UPDATED)

    @property
    def moved(self) -> list[SyncResult]:
        """Results where outcome is MOVED."""
        return self._with_outcome(SyncOutcome.MOVED)

    @property
    def deleted(self) -> list[SyncResult]:
        """Results where outcome is DELETED."""
        return self._with_outcome(SyncOutcome.DELETED)

    @property
    def unchanged(self) -> list[SyncResult]:
        """Results where outcome is UNCHANGED."""
        return self._with_outcome(SyncOutcome.UNCHANGED)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def nothing_to_commit(self) -> bool:
        return self.action_count == 0

    def summary(self) -> str:
        """Format a human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts by outcome.
        """
        lines = [
            "Dashboard sync report" + (" (dry run)" if self.dry_run else ""),
            f"  Created:   {len(self.created)}",
            f"  Updated:   {len(self.updated)}",
            f"  Moved:     {len(self.moved)}",
            f"  Deleted:   {len(self.deleted)}",
            f"  Unchanged: {len(self.unchanged)}",
            f"  Errors:    {len(self.errors)}",
            f"  Total:     {len(self.results)}",
        ]
        return "\n".join(lines)

"""History-based reconciliation of observed dashboards.

A ``Reconciler`` is fed every dashboard observed in the current run, one
at a time, and compares each against its history record:

==========================  ===========================  ============
history record              observed blob                action
==========================  ===========================  ============
absent                      any                          create
same path, other sha256     --                           update
other path, other sha256    --                           move
same sha256                 any path                     none
==========================  ===========================  ============

A content-identical dashboard that only changed its path is reported as
unchanged: its file stays at the old path and the history record is not
touched.

``finalize()`` then deletes every tracked dashboard that was not
observed, placing those deletes ahead of all other actions, and
appends the history file write when there is anything to commit at all.
"""

from __future__ import annotations

import logging

from gfdashsync.exceptions import ReconcilerClosedError
from gfdashsync.sync.history import HistoryStore
from gfdashsync.sync.models import (
    ActionKind,
    Blob,
    CommitAction,
    HistoryRecord,
    SyncOutcome,
)

logger = logging.getLogger(__name__)


class Reconciler:
    """Accumulate the commit actions for one sync run.

    One instance serves exactly one run: it owns the history store it is
    given and mutates it in place.

    Args:
        history: History loaded at the start of the run.
        history_file: Repository path of the history file.
    """

    def __init__(self, history: HistoryStore, history_file: str) -> None:
        self.history = history
        self.history_file = history_file
        self._actions: list[CommitAction] = []
        self._processed: set[str] = set()
        self._deleted: list[HistoryRecord] = []
        self._finalized = False

    @property
    def actions(self) -> list[CommitAction]:
        """Actions accumulated so far."""
        return list(self._actions)

    @property
    def processed(self) -> frozenset[str]:
        """Uids added during this run."""
        return frozenset(self._processed)

    @property
    def deleted(self) -> list[HistoryRecord]:
        """Records removed by the orphan sweep."""
        return list(self._deleted)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def add(self, blob: Blob) -> SyncOutcome:
        """Reconcile one observed dashboard against history.

        Returns:
            The outcome for *blob*; ``SyncOutcome.UNCHANGED`` when no
            action was emitted.
        """
        self._check_open()
        self._processed.add(blob.uid)

        hf = self.history.get(blob.uid)
        if hf is None:
            self._emit(blob, CommitAction.create(blob.path, blob.content))
            return SyncOutcome.CREATED

        if hf.sha256 == blob.fingerprint:
            return SyncOutcome.UNCHANGED

        if hf.path != blob.path:
            logger.debug("Moved %s: %s -> %s", blob.uid, hf.path, blob.path)
            self._emit(
                blob, CommitAction.move(hf.path, blob.path, blob.content)
            )
            return SyncOutcome.MOVED

        self._emit(blob, CommitAction.update(blob.path, blob.content))
        return SyncOutcome.UPDATED

    def finalize(self) -> list[CommitAction]:
        """Sweep orphans and close the batch.

        Returns:
            The complete action batch with the history file write last,
            or an empty list when there is nothing to commit.
        """
        self._check_open()
        self._finalized = True

        # Deletes first: a new dashboard may reuse an orphan's path.
        deletes: list[CommitAction] = []
        for record in list(self.history):
            if record.uid in self._processed:
                continue
            logger.debug("Deleted %s: %s", record.uid, record.path)
            deletes.append(CommitAction.delete(record.path))
            self._deleted.append(record)
            self.history.delete(record.uid)
        self._actions[:0] = deletes

        if not self._actions:
            logger.info("Nothing to commit")
            return []

        self._actions.append(self._history_action())
        return list(self._actions)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, blob: Blob, action: CommitAction) -> None:
        self._actions.append(action)
        self.history.set(
            blob.uid,
            HistoryRecord(
                uid=blob.uid, path=blob.path, sha256=blob.fingerprint
            ),
        )

    def _history_action(self) -> CommitAction:
        kind = ActionKind.UPDATE if self.history.existed else ActionKind.CREATE
        return CommitAction(
            action=kind,
            file_path=self.history_file,
            content=self.history.serialize(),
        )

    def _check_open(self) -> None:
        if self._finalized:
            raise ReconcilerClosedError("Reconciler is already finalized")

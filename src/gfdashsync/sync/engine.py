"""Core sync engine that orchestrates one dashboard backup run.

The ``SyncEngine`` ties together history, mapper and reconciler into a
complete run.  It:

1. Loads the history file from the repository.
2. Lists all dashboards in Grafana.
3. Fetches each dashboard and converts it into a blob.
4. Feeds every blob to the reconciler.
5. Finalizes the reconciler (orphan deletes + history write).
6. Hands the batch to the repository as one commit (unless dry-run or
   nothing changed).
7. Builds and returns a ``SyncReport``.

Error handling: a dashboard that cannot be fetched or converted, or
whose path another dashboard of the same run already took, is logged
and skipped; failures to load history, list dashboards or commit abort
the run.  Nothing is written to the repository before the final commit,
so an aborted run leaves it untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import requests

from gfdashsync.config import DEFAULT_COMMIT_MESSAGE, DEFAULT_HISTORY_FILE
from gfdashsync.exceptions import DashboardFetchError, DashboardListError
from gfdashsync.sync.history import HistoryStore
from gfdashsync.sync.mapper import dashboard_to_blob
from gfdashsync.sync.models import (
    Blob,
    SyncOutcome,
    SyncReport,
    SyncResult,
)
from gfdashsync.sync.reconciler import Reconciler

if TYPE_CHECKING:
    from gfdashsync.core.gitlab import GitLabClient
    from gfdashsync.core.grafana import GrafanaClient

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Back up all Grafana dashboards into the repository.

    Args:
        grafana: Client used to list and fetch dashboards.
        repository: Client used to read the history file and commit.
        history_file: Repository path of the history file.
        commit_message: Message of the backup commit.
    """

    def __init__(
        self,
        grafana: GrafanaClient,
        repository: GitLabClient,
        history_file: str = DEFAULT_HISTORY_FILE,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> None:
        self.grafana = grafana
        self.repository = repository
        self.history_file = history_file
        self.commit_message = commit_message

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, dry_run: bool = False) -> SyncReport:
        """Execute a full sync run.

        Args:
            dry_run: If ``True``, compute the commit but do not apply it.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.

        Raises:
            HistoryLoadError: If the history file cannot be loaded.
            DashboardListError: If dashboards cannot be listed.
            CommitError: If the repository rejects the commit.
        """
        started_at = _now()

        history = HistoryStore.load(self.repository, self.history_file)
        hits = self._list_dashboards()
        logger.info("Found %d dashboards in Grafana", len(hits))

        reconciler = Reconciler(history, self.history_file)
        results: list[SyncResult] = []
        claimed: dict[str, str] = {}

        for hit in hits:
            try:
                blob = self._fetch_blob(hit)
                owner = claimed.setdefault(blob.path, blob.uid)
                if owner != blob.uid:
                    raise DashboardFetchError(
                        blob.uid,
                        f"path {blob.path} is already used by dashboard "
                        f"{owner}",
                    )
            except DashboardFetchError as exc:
                logger.error("Skipping dashboard: %s", exc)
                results.append(
                    SyncResult(
                        uid=exc.uid,
                        path=str(hit.get("title") or ""),
                        outcome=SyncOutcome.FAILED,
                        success=False,
                        error=str(exc),
                    )
                )
                continue
            results.append(self._reconcile(reconciler, blob))

        actions = reconciler.finalize()
        for record in reconciler.deleted:
            results.append(
                SyncResult(
                    uid=record.uid,
                    path=record.path,
                    outcome=SyncOutcome.DELETED,
                )
            )

        if not actions:
            return SyncReport(
                dry_run=dry_run,
                results=results,
                started_at=started_at,
                completed_at=_now(),
            )

        history_action = actions[-1].action
        commit_id: str | None = None
        if dry_run:
            logger.info("Dry run: %d actions not committed", len(actions))
        else:
            commit = self.repository.commit(actions, self.commit_message)
            commit_id = commit.get("id")

        return SyncReport(
            dry_run=dry_run,
            results=results,
            action_count=len(actions),
            history_action=history_action,
            committed=not dry_run,
            commit_id=commit_id,
            started_at=started_at,
            completed_at=_now(),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _list_dashboards(self) -> list[dict[str, Any]]:
        """List dashboards sorted by uid so action order is stable."""
        try:
            hits = self.grafana.list_dashboards()
        except (requests.RequestException, ValueError) as exc:
            raise DashboardListError(
                f"Failed to list dashboards: {exc}"
            ) from exc
        return sorted(hits, key=lambda h: str(h.get("uid") or ""))

    def _fetch_blob(self, hit: dict[str, Any]) -> Blob:
        """Fetch one dashboard and convert it into a blob.

        Raises:
            DashboardFetchError: If fetching or converting fails.
        """
        uid = str(hit.get("uid") or "")
        if not uid:
            raise DashboardFetchError(
                "", f"search hit '{hit.get('title')}' has no uid"
            )
        try:
            payload = self.grafana.get_dashboard(uid)
            return dashboard_to_blob(hit, payload)
        except (requests.RequestException, ValueError, TypeError) as exc:
            raise DashboardFetchError(uid, str(exc)) from exc

    def _reconcile(self, reconciler: Reconciler, blob: Blob) -> SyncResult:
        previous = reconciler.history.get(blob.uid)
        outcome = reconciler.add(blob)
        logger.debug("%s %s (%s)", outcome.value, blob.path, blob.uid)
        return SyncResult(
            uid=blob.uid,
            path=blob.path,
            previous_path=(
                previous.path
                if previous is not None and outcome == SyncOutcome.MOVED
                else None
            ),
            outcome=outcome,
        )

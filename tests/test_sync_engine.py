"""Tests for the core sync engine."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from gfdashsync.exceptions import (
    CommitError,
    DashboardListError,
    HistoryLoadError,
    RepositoryFileNotFoundError,
)
from gfdashsync.sync.engine import SyncEngine
from gfdashsync.sync.history import HistoryStore
from gfdashsync.sync.mapper import dashboard_content
from gfdashsync.sync.models import ActionKind, CommitAction, SyncOutcome

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _payload(uid: str, title: str, version: int = 1) -> Dict[str, Any]:
    return {
        "dashboard": {"uid": uid, "title": title, "version": version},
        "meta": {"slug": title.lower()},
    }


class FakeGrafanaClient:
    """Minimal GrafanaClient replacement backed by an in-memory dict."""

    def __init__(
        self,
        dashboards: Optional[Dict[str, Dict[str, Any]]] = None,
        failing: Optional[set] = None,
    ) -> None:
        # uid -> {"title", "folderTitle", "version"}
        self.dashboards: Dict[str, Dict[str, Any]] = dashboards or {}
        self.failing = failing or set()
        self.list_error: Optional[Exception] = None

    def list_dashboards(self) -> List[Dict[str, Any]]:
        if self.list_error is not None:
            raise self.list_error
        hits = []
        for uid, d in self.dashboards.items():
            hit = {"uid": uid, "title": d["title"]}
            if d.get("folderTitle"):
                hit["folderTitle"] = d["folderTitle"]
            hits.append(hit)
        return hits

    def get_dashboard(self, uid: str) -> Dict[str, Any]:
        if uid in self.failing:
            raise requests.HTTPError(f"404 dashboard {uid} not found")
        d = self.dashboards[uid]
        return _payload(uid, d["title"], d.get("version", 1))


class FakeRepository:
    """Minimal GitLabClient replacement keeping files in memory.

    ``commit`` applies the whole batch or raises before touching files.
    """

    def __init__(self, files: Optional[Dict[str, bytes]] = None) -> None:
        self.files: Dict[str, bytes] = files or {}
        self.commits: List[tuple[list, str]] = []
        self.commit_error: Optional[Exception] = None
        self.get_error: Optional[Exception] = None

    def get_file(self, path: str) -> bytes:
        if self.get_error is not None:
            raise self.get_error
        if path not in self.files:
            raise RepositoryFileNotFoundError(path, "main")
        return self.files[path]

    def commit(self, actions: List[CommitAction], message: str) -> dict:
        if self.commit_error is not None:
            raise self.commit_error
        files = dict(self.files)
        for a in actions:
            if a.action == ActionKind.CREATE:
                assert a.file_path not in files
                files[a.file_path] = a.content
            elif a.action == ActionKind.UPDATE:
                assert a.file_path in files
                files[a.file_path] = a.content
            elif a.action == ActionKind.MOVE:
                files.pop(a.previous_path)
                assert a.file_path not in files
                files[a.file_path] = a.content
            elif a.action == ActionKind.DELETE:
                files.pop(a.file_path)
        self.files = files
        self.commits.append((list(actions), message))
        return {"id": f"commit{len(self.commits)}"}


def _engine(
    grafana: FakeGrafanaClient, repo: FakeRepository
) -> SyncEngine:
    return SyncEngine(
        grafana=grafana,  # type: ignore[arg-type]
        repository=repo,  # type: ignore[arg-type]
        history_file="history.json",
        commit_message="backup",
    )


def _history(repo: FakeRepository) -> dict:
    return json.loads(repo.files["history.json"])


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestFirstRun:
    """Empty repository: everything is created."""

    def test_creates_all_dashboards_and_history(self):
        grafana = FakeGrafanaClient(
            {
                "b": {"title": "Nodes", "folderTitle": "Ops"},
                "a": {"title": "Home"},
            }
        )
        repo = FakeRepository()

        report = _engine(grafana, repo).run()

        assert report.committed is True
        assert report.commit_id == "commit1"
        assert report.action_count == 3
        assert report.history_action == ActionKind.CREATE
        assert len(report.created) == 2

        actions, message = repo.commits[0]
        assert message == "backup"
        assert [a.file_path for a in actions] == [
            "/General/Home.json",
            "/Ops/Nodes.json",
            "history.json",
        ]
        assert repo.files["/Ops/Nodes.json"] == dashboard_content(
            _payload("b", "Nodes")
        )
        assert set(_history(repo)) == {"a", "b"}

    def test_empty_grafana_and_repository_commits_nothing(self):
        repo = FakeRepository()
        report = _engine(FakeGrafanaClient(), repo).run()

        assert report.nothing_to_commit is True
        assert report.committed is False
        assert repo.commits == []


class TestSecondRun:
    """Runs against an existing history."""

    def _synced(self, dashboards: dict) -> tuple:
        grafana = FakeGrafanaClient(dashboards)
        repo = FakeRepository()
        _engine(grafana, repo).run()
        return grafana, repo

    def test_idempotent(self):
        grafana, repo = self._synced({"a": {"title": "Home"}})

        report = _engine(grafana, repo).run()

        assert report.nothing_to_commit is True
        assert len(report.unchanged) == 1
        assert len(repo.commits) == 1

    def test_update(self):
        grafana, repo = self._synced({"a": {"title": "Home"}})
        grafana.dashboards["a"]["version"] = 2

        report = _engine(grafana, repo).run()

        assert len(report.updated) == 1
        assert report.history_action == ActionKind.UPDATE
        actions, _ = repo.commits[-1]
        assert [a.action for a in actions] == [
            ActionKind.UPDATE,
            ActionKind.UPDATE,
        ]

    def test_move_with_changed_content(self):
        grafana, repo = self._synced({"a": {"title": "Home"}})
        grafana.dashboards["a"] = {"title": "Start", "version": 2}

        report = _engine(grafana, repo).run()

        assert len(report.moved) == 1
        moved = report.moved[0]
        assert moved.previous_path == "/General/Home.json"
        assert moved.path == "/General/Start.json"
        assert "/General/Home.json" not in repo.files
        assert "/General/Start.json" in repo.files
        assert _history(repo)["a"]["path"] == "/General/Start.json"

    def test_deleted_dashboard(self):
        grafana, repo = self._synced(
            {"a": {"title": "Home"}, "b": {"title": "Nodes"}}
        )
        del grafana.dashboards["b"]

        report = _engine(grafana, repo).run()

        assert [r.uid for r in report.deleted] == ["b"]
        assert "/General/Nodes.json" not in repo.files
        assert set(_history(repo)) == {"a"}

    def test_new_dashboard_takes_over_deleted_path(self):
        grafana, repo = self._synced(
            {"old": {"title": "Nodes", "folderTitle": "Ops"}}
        )
        grafana.dashboards = {
            "new": {"title": "Nodes", "folderTitle": "Ops", "version": 2}
        }

        report = _engine(grafana, repo).run()

        assert [r.uid for r in report.deleted] == ["old"]
        assert [r.uid for r in report.created] == ["new"]
        actions, _ = repo.commits[-1]
        assert [a.action for a in actions] == [
            ActionKind.DELETE,
            ActionKind.CREATE,
            ActionKind.UPDATE,
        ]
        assert repo.files["/Ops/Nodes.json"] == dashboard_content(
            _payload("new", "Nodes", 2)
        )
        assert set(_history(repo)) == {"new"}

    def test_move_onto_path_of_deleted_dashboard(self):
        grafana, repo = self._synced(
            {"a": {"title": "Home"}, "b": {"title": "Start"}}
        )
        del grafana.dashboards["b"]
        grafana.dashboards["a"] = {"title": "Start", "version": 2}

        report = _engine(grafana, repo).run()

        assert len(report.moved) == 1
        assert "/General/Home.json" not in repo.files
        assert set(_history(repo)) == {"a"}
        assert _history(repo)["a"]["path"] == "/General/Start.json"


class TestPerDashboardErrors:
    """A dashboard that cannot be fetched is skipped."""

    def test_fetch_error_is_reported_and_skipped(self):
        grafana = FakeGrafanaClient(
            {"a": {"title": "Home"}, "b": {"title": "Broken"}},
            failing={"b"},
        )
        repo = FakeRepository()

        report = _engine(grafana, repo).run()

        assert len(report.errors) == 1
        failed = report.errors[0]
        assert failed.uid == "b"
        assert failed.outcome == SyncOutcome.FAILED
        assert "404" in failed.error
        assert report.committed is True
        assert set(_history(repo)) == {"a"}

    def test_fetch_error_of_tracked_dashboard_deletes_it(self):
        grafana = FakeGrafanaClient({"a": {"title": "Home"}})
        repo = FakeRepository()
        _engine(grafana, repo).run()

        grafana.failing.add("a")
        report = _engine(grafana, repo).run()

        assert [r.outcome for r in report.results] == [
            SyncOutcome.FAILED,
            SyncOutcome.DELETED,
        ]
        assert _history(repo) == {}

    def test_titles_differing_only_by_slash(self):
        grafana = FakeGrafanaClient(
            {
                "a": {"title": "A/B", "folderTitle": "F"},
                "b": {"title": "A-B", "folderTitle": "F"},
            }
        )
        repo = FakeRepository()

        report = _engine(grafana, repo).run()

        assert report.errors == []
        assert "/F/A-B (a).json" in repo.files
        assert "/F/A-B.json" in repo.files

    def test_second_dashboard_on_same_path_is_skipped(self):
        grafana = FakeGrafanaClient(
            {
                "b": {"title": "Nodes", "folderTitle": "Ops-EU"},
                "a": {"title": "Nodes", "folderTitle": "Ops/EU"},
            }
        )
        repo = FakeRepository()

        report = _engine(grafana, repo).run()

        assert [r.uid for r in report.created] == ["a"]
        assert len(report.errors) == 1
        failed = report.errors[0]
        assert failed.uid == "b"
        assert "already used by dashboard a" in failed.error
        assert report.committed is True
        assert set(_history(repo)) == {"a"}

    def test_hit_without_uid(self):
        grafana = FakeGrafanaClient({"": {"title": "Nameless"}})
        repo = FakeRepository()

        report = _engine(grafana, repo).run()

        assert len(report.errors) == 1
        assert report.nothing_to_commit is True


class TestFatalErrors:
    """Fatal errors abort before anything is written."""

    def test_history_load_error(self):
        repo = FakeRepository()
        repo.get_error = requests.ConnectionError("unreachable")

        with pytest.raises(HistoryLoadError):
            _engine(FakeGrafanaClient({"a": {"title": "A"}}), repo).run()
        assert repo.commits == []

    def test_list_error(self):
        grafana = FakeGrafanaClient()
        grafana.list_error = requests.HTTPError("401 Unauthorized")
        repo = FakeRepository()

        with pytest.raises(DashboardListError, match="401"):
            _engine(grafana, repo).run()
        assert repo.commits == []

    def test_commit_error_propagates_and_repository_unchanged(self):
        grafana = FakeGrafanaClient({"a": {"title": "Home"}})
        repo = FakeRepository()
        repo.commit_error = CommitError("gitlab: commit error: 400")

        with pytest.raises(CommitError, match="400"):
            _engine(grafana, repo).run()
        assert repo.files == {}

        # A re-run after the failure recomputes the same batch.
        repo.commit_error = None
        report = _engine(grafana, repo).run()
        assert report.action_count == 2
        assert report.history_action == ActionKind.CREATE


class TestDryRun:
    """Dry-run computes the batch but does not commit."""

    def test_dry_run_does_not_commit(self):
        grafana = FakeGrafanaClient({"a": {"title": "Home"}})
        repo = FakeRepository()

        report = _engine(grafana, repo).run(dry_run=True)

        assert report.dry_run is True
        assert report.committed is False
        assert report.action_count == 2
        assert report.history_action == ActionKind.CREATE
        assert repo.commits == []
        assert repo.files == {}

    def test_dry_run_against_existing_history(self):
        repo = FakeRepository(
            {
                "history.json": HistoryStore.deserialize(
                    b'{"gone": {"uid": "gone", "path": "/G/x.json",'
                    b' "sha256": "1"}}'
                ).serialize(),
                "/G/x.json": b"{}",
            }
        )
        report = _engine(FakeGrafanaClient(), repo).run(dry_run=True)

        assert [r.outcome for r in report.results] == [SyncOutcome.DELETED]
        assert report.history_action == ActionKind.UPDATE
        assert "/G/x.json" in repo.files

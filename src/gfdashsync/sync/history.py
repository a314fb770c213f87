"""History store persistence layer.

The history file lives in the target repository next to the dashboards
and maps every dashboard uid to the path and fingerprint it had at the
last successful sync::

    {
      "P1a2b3c": {"path": "/Ops/Nodes.json", "sha256": "...", "uid": "P1a2b3c"}
    }

Key design choices:

* **Missing is not an error** -- when the file does not exist yet,
  ``load()`` returns an empty store whose ``existed`` flag is ``False`` so
  the eventual write-back is a *create* instead of an *update*.
* **Whole-file rewrite** -- ``serialize()`` always encodes the full
  mapping; the file is never patched.
* **Deterministic encoding** -- keys are sorted and the output indented so
  diffs of the history file stay readable in the repository.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from pydantic import ValidationError

from gfdashsync.exceptions import (
    HistoryDecodeError,
    HistoryLoadError,
    RepositoryFileNotFoundError,
)
from gfdashsync.sync.models import HistoryRecord

if TYPE_CHECKING:
    from gfdashsync.core.gitlab import GitLabClient

logger = logging.getLogger(__name__)


class HistoryStore:
    """In-memory mapping of dashboard uid to its last-synced record.

    Args:
        records: Initial records keyed by uid.
        existed: Whether the history file already exists in the
            repository.
    """

    def __init__(
        self,
        records: dict[str, HistoryRecord] | None = None,
        existed: bool = False,
    ) -> None:
        self._records: dict[str, HistoryRecord] = dict(records or {})
        self.existed = existed

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, repository: GitLabClient, path: str) -> HistoryStore:
        """Fetch and decode the history file from *repository*.

        Args:
            repository: Client able to read files from the repository.
            path: Repository path of the history file.

        Returns:
            The decoded store, or an empty store with ``existed=False``
            if the file does not exist.

        Raises:
            HistoryLoadError: On any transport or decode failure.
        """
        try:
            data = repository.get_file(path)
        except RepositoryFileNotFoundError:
            logger.info(
                "No history file '%s' in repository, starting empty", path
            )
            return cls(existed=False)
        except Exception as exc:
            raise HistoryLoadError(
                f"Failed to fetch history file '{path}': {exc}"
            ) from exc

        store = cls.deserialize(data, existed=True)
        logger.info(
            "Loaded history file '%s' with %d records", path, len(store)
        )
        return store

    @classmethod
    def deserialize(cls, data: bytes, existed: bool = True) -> HistoryStore:
        """Decode a history file.

        Raises:
            HistoryDecodeError: If *data* is not a JSON object of valid
                history records.
        """
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise HistoryDecodeError(
                f"History file is not valid JSON: {exc}"
            ) from exc

        if not isinstance(raw, dict):
            raise HistoryDecodeError(
                "History file must contain a JSON object, "
                f"got {type(raw).__name__}"
            )

        records: dict[str, HistoryRecord] = {}
        for uid, value in raw.items():
            if not isinstance(value, dict):
                raise HistoryDecodeError(
                    f"History record for '{uid}' must be an object"
                )
            try:
                record = HistoryRecord.model_validate({"uid": uid, **value})
            except ValidationError as exc:
                raise HistoryDecodeError(
                    f"Invalid history record for '{uid}': {exc}"
                ) from exc
            if record.uid != uid:
                raise HistoryDecodeError(
                    f"History key '{uid}' does not match record uid "
                    f"'{record.uid}'"
                )
            records[uid] = record

        return cls(records, existed=existed)

    def serialize(self) -> bytes:
        """Encode the full mapping as UTF-8 JSON with sorted keys."""
        payload = {
            uid: record.model_dump()
            for uid, record in sorted(self._records.items())
        }
        text = json.dumps(
            payload, indent=2, sort_keys=True, ensure_ascii=False
        )
        return (text + "\n").encode("utf-8")

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def get(self, uid: str) -> HistoryRecord | None:
        """Return the record for *uid*, or ``None`` if absent."""
        return self._records.get(uid)

    def set(self, uid: str, record: HistoryRecord) -> None:
        """Insert or replace the record for *uid*."""
        self._records[uid] = record

    def delete(self, uid: str) -> None:
        """Remove the record for *uid*.  No-op if not present."""
        self._records.pop(uid, None)

    def ids(self) -> list[str]:
        """Return all tracked uids in sorted order."""
        return sorted(self._records)

    def records(self) -> dict[str, HistoryRecord]:
        """Return a copy of the mapping."""
        return dict(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, uid: object) -> bool:
        return uid in self._records

    def __iter__(self) -> Iterator[HistoryRecord]:
        return iter(self._records[uid] for uid in self.ids())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HistoryStore):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return (
            f"HistoryStore({len(self._records)} records, "
            f"existed={self.existed})"
        )

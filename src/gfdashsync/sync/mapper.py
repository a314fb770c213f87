"""Dashboard-to-blob mapping.

Turns a Grafana search hit plus the fetched dashboard payload into the
``Blob`` the reconciler works on:

1. **Path** -- ``/<folder title>/<dashboard title>.json``.  Dashboards in
   the General folder have no folder title and land under ``/General/``.
   Slashes inside titles would create extra directories and are replaced
   by ``-``.  A title changed that way also gets its uid appended, so
   "A/B" and "A-B" in one folder do not share a file.
2. **Content** -- the payload as tab-indented JSON with sorted keys, so
   the same dashboard always serializes to the same bytes.  Meta fields
   that describe the API token's permissions rather than the dashboard
   are dropped.
3. **Fingerprint** -- SHA-256 of the content.
"""

from __future__ import annotations

import json
from typing import Any

from gfdashsync.sync.fingerprint import fingerprint
from gfdashsync.sync.models import Blob

GENERAL_FOLDER = "General"

# Per-viewer flags in the ``meta`` object of /api/dashboards/uid/{uid}.
_VIEWER_META_KEYS = frozenset(
    {
        "canAdmin",
        "canDelete",
        "canEdit",
        "canSave",
        "canStar",
        "expires",
        "isStarred",
    }
)


def _clean_segment(name: str, uid: str | None = None) -> str:
    cleaned = name.strip().replace("/", "-")
    if uid and cleaned and cleaned != name:
        return f"{cleaned} ({uid})"
    return cleaned


def dashboard_path(
    folder_title: str | None,
    title: str,
    uid: str | None = None,
    folder_uid: str | None = None,
) -> str:
    """Return the repository path for a dashboard.

    Args:
        folder_title: Title of the containing folder; empty or ``None``
            for the General folder.
        title: Dashboard title.
        uid: Dashboard uid, appended when *title* had to be cleaned.
        folder_uid: Folder uid, appended when *folder_title* had to be
            cleaned.

    Raises:
        ValueError: If *title* is empty.
    """
    name = _clean_segment(title or "", uid)
    if not name:
        raise ValueError("Dashboard title cannot be empty")
    folder = _clean_segment(folder_title or "", folder_uid) or GENERAL_FOLDER
    return f"/{folder}/{name}.json"


def dashboard_content(payload: dict[str, Any]) -> bytes:
    """Serialize a dashboard payload deterministically."""
    data = dict(payload)
    meta = data.get("meta")
    if isinstance(meta, dict):
        data["meta"] = {
            k: v for k, v in meta.items() if k not in _VIEWER_META_KEYS
        }
    text = json.dumps(data, indent="\t", sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def dashboard_to_blob(hit: dict[str, Any], payload: dict[str, Any]) -> Blob:
    """Build a ``Blob`` from a search *hit* and its fetched *payload*.

    Raises:
        ValueError: If the hit has no uid or title.
    """
    uid = hit.get("uid")
    if not uid:
        raise ValueError("Dashboard search hit has no uid")
    path = dashboard_path(
        hit.get("folderTitle"),
        hit.get("title", ""),
        uid=uid,
        folder_uid=hit.get("folderUid"),
    )
    content = dashboard_content(payload)
    return Blob(
        uid=uid,
        path=path,
        fingerprint=fingerprint(content),
        content=content,
    )

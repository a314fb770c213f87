"""GitLab REST API client: repository file reads and atomic commits."""

import base64
import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..exceptions import CommitError, RepositoryFileNotFoundError
from ..sync.models import CommitAction

logger = logging.getLogger(__name__)


def _repo_path(path: str) -> str:
    """Repository paths are relative; dashboard paths start with '/'."""
    return path.lstrip("/")


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return str(body)


class GitLabClient:
    def __init__(self, config: Config):
        self.config = config
        self.project_id = config.project_id
        self.branch = config.branch
        self.base_url = config.gitlab_url.rstrip("/")
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        """Lazily created session carrying the access token."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"PRIVATE-TOKEN": self.config.gitlab_token})
        session.verify = not self.config.insecure
        return session

    def _project_url(self, suffix: str) -> str:
        return f"{self.base_url}/projects/{self.project_id}{suffix}"

    def get_file(self, path: str) -> bytes:
        """
        Get the raw content of a repository file on the configured branch.

        Raises:
            RepositoryFileNotFoundError: If the file (or branch) does not exist.
            requests.HTTPError: On any other non-2xx response.
            ValueError: If the response does not carry base64 content.
        """
        file_path = _repo_path(path)
        response = self.session.get(
            self._project_url(
                f"/repository/files/{quote(file_path, safe='')}"
            ),
            params={"ref": self.branch},
            timeout=(10, 60),
        )
        if response.status_code == 404:
            raise RepositoryFileNotFoundError(file_path, self.branch)
        response.raise_for_status()

        body = response.json()
        content = body.get("content") if isinstance(body, dict) else None
        if content is None:
            raise ValueError(
                f"Invalid file response from GitLab for '{file_path}'"
            )
        return base64.b64decode(content, validate=True)

    @staticmethod
    def action_payload(action: CommitAction) -> dict[str, Any]:
        """Encode one ``CommitAction`` for the commits API."""
        payload: dict[str, Any] = {
            "action": action.action.value,
            "file_path": _repo_path(action.file_path),
        }
        if action.previous_path is not None:
            payload["previous_path"] = _repo_path(action.previous_path)
        if action.content is not None:
            payload["encoding"] = "base64"
            payload["content"] = base64.b64encode(action.content).decode(
                "ascii"
            )
        return payload

    def commit(
        self, actions: Sequence[CommitAction], message: str
    ) -> dict[str, Any]:
        """
        Apply *actions* as a single commit on the configured branch.

        GitLab applies the whole batch or nothing.

        Returns:
            The created commit as returned by GitLab (id, short_id, ...).

        Raises:
            CommitError: If the request fails or GitLab rejects the commit.
        """
        if not actions:
            raise ValueError("Cannot create a commit without actions")

        body = {
            "branch": self.branch,
            "commit_message": message,
            "actions": [self.action_payload(a) for a in actions],
        }
        try:
            response = self.session.post(
                self._project_url("/repository/commits"),
                json=body,
                timeout=(10, 60),
            )
        except requests.RequestException as exc:
            raise CommitError(f"gitlab: commit error: {exc}") from exc

        if not response.ok:
            raise CommitError(
                f"gitlab: commit error: {response.status_code} "
                f"{_error_detail(response)}"
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise CommitError(
                f"gitlab: commit error: response is not JSON: {exc}"
            ) from exc
        logger.info(
            "Committed %d actions to %s as %s",
            len(actions),
            self.branch,
            result.get("short_id") or result.get("id"),
        )
        return result

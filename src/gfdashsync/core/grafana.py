"""Grafana HTTP API client for listing and fetching dashboards."""

import logging
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class GrafanaClient:
    def __init__(self, config: Config, page_size: int = DEFAULT_PAGE_SIZE):
        self.config = config
        self.page_size = page_size
        self.base_url = config.grafana_url.rstrip("/")
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        """Lazily created session carrying the API token."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.grafana_token}",
                "Accept": "application/json",
            }
        )
        session.verify = not self.config.insecure
        return session

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET an API path and return the decoded JSON body.

        Raises:
            requests.HTTPError: On a non-2xx response.
            requests.RequestException: On transport failures.
        """
        response = self.session.get(
            f"{self.base_url}{path}",
            params=params,
            timeout=(10, 60),
        )
        response.raise_for_status()
        return response.json()

    def list_dashboards(self) -> list[dict[str, Any]]:
        """
        List all dashboards visible to the token.

        Pages through /api/search until a short page is returned.

        Returns:
            Search hits with keys such as uid, title, folderTitle, url.
            ``folderTitle`` is absent for dashboards in the General folder.
        """
        hits: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = self._get(
                "/api/search",
                params={
                    "type": "dash-db",
                    "limit": self.page_size,
                    "page": page,
                },
            )
            if not isinstance(batch, list):
                raise ValueError(
                    "Invalid search response from Grafana: expected a list"
                )
            hits.extend(batch)
            logger.debug("Search page %d returned %d hits", page, len(batch))
            if len(batch) < self.page_size:
                return hits
            page += 1

    def get_dashboard(self, uid: str) -> dict[str, Any]:
        """
        Get a dashboard by uid.

        Returns:
            Dict with ``dashboard`` (the model) and ``meta`` keys.

        Raises:
            requests.HTTPError: If the dashboard does not exist or access
                is denied.
        """
        payload = self._get(f"/api/dashboards/uid/{quote(uid, safe='')}")
        if not isinstance(payload, dict) or "dashboard" not in payload:
            raise ValueError(
                f"Invalid dashboard response from Grafana for '{uid}'"
            )
        return payload

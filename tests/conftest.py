"""Shared pytest fixtures for gfdashsync tests."""

from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from gfdashsync.config import Config

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require live Grafana and GitLab instances",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring live Grafana and GitLab instances",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


_ENV_VARS = (
    "GRAFANA_URL",
    "GRAFANA_TOKEN",
    "GITLAB_URL",
    "GITLAB_TOKEN",
    "GITLAB_PROJECT_ID",
    "GITLAB_BRANCH",
    "GFDASHSYNC_HISTORY_FILE",
    "GFDASHSYNC_COMMIT_MESSAGE",
    "GFDASHSYNC_INSECURE",
    "GFDASHSYNC_DEBUG",
    "GFDASHSYNC_CONFIG",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all gfdashsync environment variables for the test."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        grafana_url="https://grafana.example.com",
        grafana_token="grafana-token",
        gitlab_url="https://gitlab.example.com/api/v4",
        gitlab_token="gitlab-token",
        project_id=42,
    )


@pytest.fixture
def mock_gitlab_client(mock_config):
    """Create a mock GitLabClient instance for testing."""
    from gfdashsync.core.gitlab import GitLabClient

    client = MagicMock(spec=GitLabClient)
    client.config = mock_config
    return client


@pytest.fixture
def mock_response():
    """Factory fixture for creating HTTP response mocks."""

    def _create_response(status_code=200, json_data=None, text=""):
        from unittest.mock import Mock

        import requests

        response = Mock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        response.text = text
        response.reason = "Error" if status_code >= 400 else "OK"
        if json_data is None:
            response.json.side_effect = ValueError("No JSON")
        else:
            response.json.return_value = json_data
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(
                f"{status_code} Error", response=response
            )
        else:
            response.raise_for_status.return_value = None
        return response

    return _create_response

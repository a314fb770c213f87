"""HTTP clients for the Grafana and GitLab APIs."""

from .gitlab import GitLabClient
from .grafana import GrafanaClient

__all__ = ["GitLabClient", "GrafanaClient"]

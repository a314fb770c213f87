"""Back up Grafana dashboards into a GitLab repository."""

__version__ = "1.0.0"

"""GitHub API access."""

from argogen.github.client import GitHubClient

__all__ = ["GitHubClient"]

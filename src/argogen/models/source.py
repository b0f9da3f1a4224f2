"""Application source repositories.

The sources file lists one GitHub repository URL per line. A URL of the form
``https://github.com/<owner>/<repo>/tree/<branch>`` pins a branch; any other
URL tracks the default branch.
"""

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse


@dataclass(frozen=True)
class RepositorySource:
    """One application repository to generate manifests for.

    Attributes:
        url: Repository URL without ``/tree/...`` and without ``.git``
        branch: Branch the manifests track
        name: Repository name (last path segment)
    """

    url: str
    branch: str
    name: str

    @property
    def owner(self) -> str:
        """GitHub owner (user or organization) of the repository."""
        parts = urlparse(self.url).path.strip("/").split("/")
        return parts[-2] if len(parts) >= 2 else ""

    @property
    def api_repo_path(self) -> str:
        """``<owner>/<repo>`` as used in GitHub API paths."""
        return f"{self.owner}/{self.name}"

    @property
    def clone_url(self) -> str:
        return f"{self.url}.git"


def parse_repo_url(line: str, default_branch: str = "main") -> RepositorySource:
    """Parse a repository URL from the sources file.

    Args:
        line: Repository URL, optionally with ``/tree/<branch>``
        default_branch: Branch to use when the URL names none

    Returns:
        RepositorySource for the URL

    Raises:
        ValueError: If the line is empty
    """
    url = line.strip()
    if not url:
        raise ValueError("Empty repository URL")

    if "/tree/" in url:
        base_url, branch = url.split("/tree/", 1)
        branch = branch.strip("/") or default_branch
    else:
        base_url, branch = url, default_branch

    base_url = base_url.rstrip("/")
    if base_url.endswith(".git"):
        base_url = base_url[: -len(".git")]

    name = base_url.rsplit("/", 1)[-1]
    return RepositorySource(url=base_url, branch=branch, name=name)


def read_sources_file(path: Path, default_branch: str = "main") -> list[RepositorySource]:
    """Read repository sources, one URL per line.

    Blank lines and lines starting with ``#`` (after leading whitespace) are
    skipped.

    Args:
        path: Path to the sources file
        default_branch: Branch for URLs that name none

    Returns:
        Sources in file order

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not path.exists():
        raise FileNotFoundError(f"Application sources file not found: {path}")

    sources: list[RepositorySource] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        sources.append(parse_repo_url(line, default_branch))

    return sources

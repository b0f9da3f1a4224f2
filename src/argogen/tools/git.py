"""git wrapper and repository helpers.

- GitRepository: operations on one working tree (config repo or app clone)
- sync_repositories: clone or update local copies of application repositories
- build_commit_message: conventional-commit message for changed applications
- github_web_path: owner/repo of a GitHub remote
"""

import re
from pathlib import Path

from argogen.errors import ToolExecutionError
from argogen.models.source import RepositorySource
from argogen.tools.base import CommandTool
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

_GITHUB_REMOTE = re.compile(r"github\.com[/:]([^/]+)/([^/\s]+?)(?:\.git)?/?$")


class GitRepository(CommandTool):
    """A git working tree.

    Usage:
        repo = GitRepository(Path("."))
        if repo.has_changes("applications/"):
            repo.add("applications/")
            repo.commit("chore: Update ArgoCD applications")
    """

    executable = "git"

    def __init__(self, path: Path, timeout: int = 120) -> None:
        super().__init__(cwd=path, timeout=timeout)
        self.path = path

    def is_repository(self) -> bool:
        """Check that the path is inside a git working tree."""
        if not self.path.exists():
            return False
        result = self.run("rev-parse", "--git-dir", check=False)
        return result.returncode == 0

    def current_branch(self) -> str:
        return self.run("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def status_porcelain(self, pathspec: str | None = None) -> list[str]:
        """Porcelain status lines, optionally limited to a path."""
        args = ["status", "--porcelain"]
        if pathspec:
            args += ["--", pathspec]
        output = self.run(*args).stdout
        return [line for line in output.splitlines() if line.strip()]

    def has_changes(self, pathspec: str | None = None) -> bool:
        return bool(self.status_porcelain(pathspec))

    def changed_applications(self, applications_dir: str = "applications") -> list[str]:
        """Names of applications with changes under the applications directory.

        Returns:
            Application names in first-seen order
        """
        prefix = applications_dir.rstrip("/") + "/"
        apps: list[str] = []
        for line in self.status_porcelain(prefix):
            path = line[3:].strip().strip('"')
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            if not path.startswith(prefix):
                continue
            parts = path[len(prefix):].split("/")
            # An untracked application directory is reported as "applications/<app>/"
            if parts and parts[0] and parts[0] not in apps:
                apps.append(parts[0])
        return apps

    def stash(self, message: str) -> None:
        self.run("stash", "push", "-m", message)

    def stash_pop(self) -> None:
        self.run("stash", "pop")

    def branch_exists(self, branch: str) -> bool:
        result = self.run("show-ref", "--verify", "--quiet", f"refs/heads/{branch}", check=False)
        return result.returncode == 0

    def checkout(self, branch: str, create: bool = False, start_point: str | None = None) -> None:
        args = ["checkout"]
        if create:
            args.append("-b")
        args.append(branch)
        if start_point:
            args.append(start_point)
        self.run(*args)

    def fetch(self, remote: str = "origin") -> None:
        self.run("fetch", remote)

    def pull(self, remote: str, branch: str) -> None:
        self.run("pull", remote, branch)

    def add(self, pathspec: str) -> None:
        self.run("add", pathspec)

    def commit(self, message: str) -> None:
        self.run("commit", "-m", message)

    def has_remote(self, remote: str) -> bool:
        result = self.run("remote", check=False)
        return remote in result.stdout.split()

    def push(self, remote: str, branch: str) -> None:
        """Push a branch, setting the upstream when the plain push is rejected.

        Raises:
            ToolExecutionError: If both push attempts fail
        """
        try:
            self.run("push", remote, branch)
        except ToolExecutionError:
            logger.debug("Plain push failed, retrying with --set-upstream")
            self.run("push", "--set-upstream", remote, branch)

    def remote_url(self, remote: str = "origin") -> str | None:
        result = self.run("remote", "get-url", remote, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def diff(self, path: Path | None = None) -> str:
        args = ["diff"]
        if path is not None:
            args += ["--", str(path)]
        return self.run(*args).stdout

    def clone(self, url: str, branch: str, depth: int | None = 1) -> None:
        """Clone ``url`` into this repository's path."""
        args = ["clone", url, str(self.path), "--branch", branch]
        if depth:
            args += ["--depth", str(depth)]
        self.run(*args, cwd=self.path.parent)


def sync_repositories(
    sources: list[RepositorySource],
    clone_dir: Path,
    timeout: int = 300,
) -> tuple[list[str], list[tuple[str, str]]]:
    """Clone or update a local copy of each application repository.

    Existing clones are fetched, switched to the tracked branch (created from
    ``origin/<branch>`` when missing locally) and pulled. Missing clones are
    shallow-cloned at the tracked branch.

    Args:
        sources: Repositories to sync
        clone_dir: Directory holding the clones
        timeout: Timeout per git command

    Returns:
        Tuple of (synced repository names, (name, error) failures)
    """
    clone_dir.mkdir(parents=True, exist_ok=True)
    synced: list[str] = []
    failed: list[tuple[str, str]] = []

    for source in sources:
        repo = GitRepository(clone_dir / source.name, timeout=timeout)
        logger.info("Syncing %s (branch: %s)", source.name, source.branch)
        try:
            if repo.path.is_dir():
                repo.fetch("origin")
                if repo.branch_exists(source.branch):
                    repo.checkout(source.branch)
                else:
                    repo.checkout(source.branch, create=True, start_point=f"origin/{source.branch}")
                repo.pull("origin", source.branch)
            else:
                repo.clone(source.clone_url, source.branch)
        except ToolExecutionError as e:
            logger.error("Failed to sync %s: %s", source.name, e)
            failed.append((source.name, str(e)))
            continue

        logger.success("Synced %s", source.name)
        synced.append(source.name)

    return synced, failed


def build_commit_message(apps: list[str]) -> str:
    """Build the commit message for regenerated manifests.

    Args:
        apps: Names of applications with changes

    Returns:
        Commit message
    """
    if not apps:
        return "chore: Update ArgoCD applications"
    if len(apps) == 1:
        return f"feat({apps[0]}): Update ArgoCD manifests for {apps[0]}"
    listing = "\n".join(f"- {app}" for app in apps)
    return (
        "feat: Update ArgoCD manifests for multiple applications\n\n"
        f"Applications updated:\n{listing}"
    )


def github_web_path(remote_url: str | None) -> str | None:
    """Extract ``owner/repo`` from a GitHub remote (https or ssh).

    Returns:
        ``owner/repo`` or None for non-GitHub remotes
    """
    if not remote_url:
        return None
    match = _GITHUB_REMOTE.search(remote_url.strip())
    if match is None:
        return None
    return f"{match.group(1)}/{match.group(2)}"

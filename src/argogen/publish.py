"""Sync, regenerate and publish ArgoCD manifests.

The publish flow:
1. Sync the local application clones
2. Regenerate Applications from the clones (one app or all)
3. Stop if nothing under the applications directory changed
4. Switch to the target branch, carrying the changes over
5. Commit and push the applications directory
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from argogen.config import ArgogenConfig
from argogen.errors import ToolExecutionError
from argogen.generator import ApplicationGenerator
from argogen.models.result import GenerationResult
from argogen.models.source import read_sources_file
from argogen.tools.git import (
    GitRepository,
    build_commit_message,
    github_web_path,
    sync_repositories,
)
from argogen.utils.logging import get_logger

logger = get_logger(__name__)


class PublishStatus(Enum):
    """Final state of a publish run."""

    NO_CHANGES = "no_changes"
    PUSHED = "pushed"
    PUSH_FAILED = "push_failed"
    NO_REMOTE = "no_remote"
    SYNC_FAILED = "sync_failed"
    GENERATION_FAILED = "generation_failed"


@dataclass
class PublishResult:
    """Outcome of a publish run.

    Attributes:
        status: Final state
        branch: Branch the changes were committed to
        changed_apps: Applications with regenerated manifests
        commit_message: Message of the created commit
        links: GitHub links for the branch and each changed application
        sync_failures: (repository, error) pairs from the sync step
        generation: Result of the generation step
        push_error: Error of the failed push, if any
    """

    status: PublishStatus
    branch: str
    changed_apps: list[str] = field(default_factory=list)
    commit_message: str | None = None
    links: list[str] = field(default_factory=list)
    sync_failures: list[tuple[str, str]] = field(default_factory=list)
    generation: GenerationResult | None = None
    push_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "branch": self.branch,
            "changed_apps": self.changed_apps,
            "commit_message": self.commit_message,
            "links": self.links,
            "sync_failures": [{"repository": r, "error": e} for r, e in self.sync_failures],
            "generation": self.generation.to_dict() if self.generation else None,
            "push_error": self.push_error,
        }


class Publisher:
    """Runs the publish flow in the config repository.

    Usage:
        publisher = Publisher(config, root=Path("."))
        result = publisher.run(app="shop")
    """

    def __init__(
        self,
        config: ArgogenConfig,
        root: Path,
        repo: GitRepository | None = None,
        generator: ApplicationGenerator | None = None,
    ) -> None:
        self.config = config
        self.root = root
        self.repo = repo or GitRepository(root, timeout=config.ci.timeout)
        self.generator = generator or ApplicationGenerator(config, root)

    @property
    def target_branch(self) -> str:
        return self.config.publish.target_branch

    def run(self, app: str | None = None, sync: bool = True) -> PublishResult:
        """Run the publish flow.

        Args:
            app: Only regenerate this local application
            sync: Sync the local clones first

        Returns:
            PublishResult describing how far the flow got

        Raises:
            ToolExecutionError: If the root is not a git repository or a
                required git step (checkout, commit) fails
            FileNotFoundError: If the sources file or the application is missing
        """
        if not self.repo.is_repository():
            raise ToolExecutionError("git", f"Not a git repository: {self.root}")

        current_branch = self.repo.current_branch()
        logger.info("Current branch: %s, target branch: %s", current_branch, self.target_branch)

        result = PublishResult(status=PublishStatus.NO_CHANGES, branch=self.target_branch)

        if sync:
            sources = read_sources_file(
                self.root / self.config.paths.sources_file, self.config.github.default_branch
            )
            _, failures = sync_repositories(
                sources, self.root / self.config.paths.local_repos_dir, self.config.ci.timeout
            )
            if failures:
                result.status = PublishStatus.SYNC_FAILED
                result.sync_failures = failures
                return result

        result.generation = self.generator.generate_local(app=app)
        if not result.generation.success:
            result.status = PublishStatus.GENERATION_FAILED
            return result

        applications_dir = self.config.paths.applications_dir
        if not self.repo.has_changes(applications_dir):
            logger.success("No changes detected in %s, nothing to publish", applications_dir)
            return result

        result.changed_apps = self.repo.changed_applications(applications_dir)
        for changed in result.changed_apps:
            logger.info("Application with changes: %s", changed)

        self._switch_to_target_branch(current_branch)

        self.repo.add(applications_dir.rstrip("/") + "/")
        result.commit_message = build_commit_message(result.changed_apps)
        self.repo.commit(result.commit_message)
        logger.success("Changes committed to %s", self.target_branch)

        remote = self.config.publish.remote
        if not self.repo.has_remote(remote):
            logger.error("No '%s' remote found; add one with: git remote add %s <url>", remote, remote)
            result.status = PublishStatus.NO_REMOTE
            return result

        try:
            self.repo.push(remote, self.target_branch)
        except ToolExecutionError as e:
            logger.error("Failed to push to remote repository: %s", e)
            logger.warning(
                "Changes are committed locally on '%s'. Push manually with: "
                "git push --set-upstream %s %s",
                self.target_branch,
                remote,
                self.target_branch,
            )
            result.status = PublishStatus.PUSH_FAILED
            result.push_error = str(e)
            return result

        logger.success("Changes pushed to remote '%s' branch", self.target_branch)
        result.status = PublishStatus.PUSHED
        result.links = self._links(remote, result.changed_apps)
        return result

    def _switch_to_target_branch(self, current_branch: str) -> None:
        remote = self.config.publish.remote
        target = self.target_branch

        if current_branch == target:
            self._pull_best_effort(remote, target)
            return

        stashed = False
        if self.repo.has_changes():
            logger.info("Stashing current changes")
            self.repo.stash("argogen publish: temporary stash before branch switch")
            stashed = True

        if self.repo.branch_exists(target):
            logger.info("Switching to existing '%s' branch", target)
            self.repo.checkout(target)
            self._pull_best_effort(remote, target)
        else:
            logger.info("Creating new '%s' branch", target)
            self.repo.checkout(target, create=True)

        if stashed:
            logger.info("Applying stashed changes")
            self.repo.stash_pop()

    def _pull_best_effort(self, remote: str, branch: str) -> None:
        try:
            self.repo.pull(remote, branch)
        except ToolExecutionError as e:
            logger.warning("Could not pull %s/%s (fine if the branch is new): %s", remote, branch, e)

    def _links(self, remote: str, changed_apps: list[str]) -> list[str]:
        repo_path = github_web_path(self.repo.remote_url(remote))
        if repo_path is None:
            return []
        base = f"https://github.com/{repo_path}/tree/{self.target_branch}"
        applications_dir = self.config.paths.applications_dir.strip("/")
        return [base] + [f"{base}/{applications_dir}/{app}" for app in changed_apps]

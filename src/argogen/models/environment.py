"""Per-environment deployment conventions.

Two image tagging conventions are in use:

- branch-latest: CI pushes ``<service>-<branch>-latest`` for every build of
  the tracked branches (``testing``, ``staging``, ``main``). Used by the
  GitHub-API generator.
- commit-sha: CI pushes ``<branch>-<sha>`` tags and semantic versions for
  releases. Used by the local-clone generator.
"""

from dataclasses import dataclass, field
from enum import Enum

TRACKED_BRANCHES = ("testing", "staging", "main")


class TagConvention(Enum):
    """Image tagging convention."""

    BRANCH_LATEST = "branch-latest"
    COMMIT_SHA = "commit-sha"


@dataclass(frozen=True)
class EnvironmentProfile:
    """How one environment tracks images.

    Attributes:
        name: Environment name
        target_revision: Git revision ArgoCD syncs and the Image Updater writes to
        tag_pattern: Allowed tag pattern (without the ``regexp:`` prefix)
        tag_placeholder: Initial image tag before the Image Updater writes one
        ignore_tag_suffixes: Tag suffixes of other environments to ignore
    """

    name: str
    target_revision: str
    tag_pattern: str
    tag_placeholder: str
    ignore_tag_suffixes: tuple[str, ...] = field(default_factory=tuple)

    def ignore_tags(self, service: str) -> list[str]:
        """Tags of other environments this service must never be updated to."""
        return [f"{service}-{suffix}" for suffix in self.ignore_tag_suffixes]


def _branch_latest_profile(environment: str, branch: str) -> EnvironmentProfile:
    tracked = {"dev": "testing", "staging": "staging", "production": "main"}
    tracked_branch = tracked.get(environment)

    if tracked_branch is None:
        return EnvironmentProfile(
            name=environment,
            target_revision=branch,
            tag_pattern="[0-9a-f]{7,8}$",
            tag_placeholder="placeholder",
        )

    if environment == "dev":
        target_revision = "testing" if branch == "main" else branch
    else:
        target_revision = tracked_branch

    return EnvironmentProfile(
        name=environment,
        target_revision=target_revision,
        tag_pattern=f"{tracked_branch}-latest$",
        tag_placeholder=f"{tracked_branch}-latest",
        ignore_tag_suffixes=tuple(
            f"{other}-latest" for other in TRACKED_BRANCHES if other != tracked_branch
        ),
    )


def _commit_sha_profile(environment: str) -> EnvironmentProfile:
    if environment == "dev":
        return EnvironmentProfile(
            name=environment,
            target_revision="testing",
            tag_pattern="^testing-[0-9a-f]{7,8}$",
            tag_placeholder="testing-placeholder",
        )
    if environment == "staging":
        return EnvironmentProfile(
            name=environment,
            target_revision="staging",
            tag_pattern="^staging-[0-9a-f]{7,8}$",
            tag_placeholder="staging-placeholder",
        )
    if environment == "production":
        return EnvironmentProfile(
            name=environment,
            target_revision="main",
            tag_pattern=r"^v[0-9]+\.[0-9]+\.[0-9]+$",
            tag_placeholder="v1.0.0",
        )
    return EnvironmentProfile(
        name=environment,
        target_revision="main",
        tag_pattern="^main-[0-9a-f]{7,8}$",
        tag_placeholder="main-placeholder",
    )


def resolve_environment(
    environment: str,
    branch: str = "main",
    convention: TagConvention = TagConvention.BRANCH_LATEST,
) -> EnvironmentProfile:
    """Resolve the deployment profile for an environment.

    Args:
        environment: Environment name from the requirements file
        branch: Branch the application source is read from
        convention: Image tagging convention

    Returns:
        EnvironmentProfile for the environment
    """
    if convention == TagConvention.COMMIT_SHA:
        return _commit_sha_profile(environment)
    return _branch_latest_profile(environment, branch)


def expected_image_tag(service: str, environment: str) -> str | None:
    """Tag a generated Application should initially deploy for a service.

    Args:
        service: Service name
        environment: Environment name

    Returns:
        Expected ``<service>-<branch>-latest`` tag, or None for unknown
        environments
    """
    suffixes = {
        "dev": "testing-latest",
        "development": "testing-latest",
        "staging": "staging-latest",
        "production": "main-latest",
        "prod": "main-latest",
    }
    suffix = suffixes.get(environment)
    if suffix is None:
        return None
    return f"{service}-{suffix}"

"""External command wrappers (kubectl, terraform, kustomize, git)."""

from argogen.tools.base import CommandTool
from argogen.tools.git import (
    GitRepository,
    build_commit_message,
    github_web_path,
    sync_repositories,
)
from argogen.tools.kubectl import Kubectl
from argogen.tools.kustomize import Kustomize
from argogen.tools.terraform import Terraform

__all__ = [
    "CommandTool",
    "GitRepository",
    "Kubectl",
    "Kustomize",
    "Terraform",
    "build_commit_message",
    "github_web_path",
    "sync_repositories",
]

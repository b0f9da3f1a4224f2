"""Unit tests for external tool wrappers."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, call, patch

import pytest

from argogen.errors import ToolExecutionError, ToolNotAvailableError
from argogen.models.source import RepositorySource
from argogen.tools.base import CommandTool
from argogen.tools.git import (
    GitRepository,
    build_commit_message,
    github_web_path,
    sync_repositories,
)
from argogen.tools.kubectl import Kubectl
from argogen.tools.terraform import Terraform


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class EchoTool(CommandTool):
    executable = "echo"


class TestCommandTool:
    """Tests for the subprocess wrapper."""

    def test_run_passes_arguments(self, tmp_path: Path) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("hello\n")
            result = EchoTool(cwd=tmp_path, timeout=5).run("hello")

        assert result.stdout == "hello\n"
        mock_run.assert_called_once_with(
            ["echo", "hello"],
            capture_output=True,
            text=True,
            cwd=tmp_path,
            input=None,
            timeout=5,
        )

    def test_missing_executable(self) -> None:
        with patch("argogen.tools.base.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(ToolNotAvailableError, match="Tool not available: echo"):
                EchoTool().run("hello")

    def test_timeout(self) -> None:
        with patch(
            "argogen.tools.base.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="echo", timeout=1),
        ):
            with pytest.raises(ToolExecutionError, match="timed out after 1 seconds"):
                EchoTool().run("hello", timeout=1)

    def test_non_zero_exit(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed(returncode=2, stderr="bad flag\n")
            with pytest.raises(ToolExecutionError) as exc_info:
                EchoTool().run("--bad")

        assert exc_info.value.exit_code == 2
        assert "bad flag" in str(exc_info.value)

    def test_non_zero_exit_unchecked(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed(returncode=1)
            result = EchoTool().run("x", check=False)

        assert result.returncode == 1

    def test_check_available(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("v1\n")
            assert EchoTool().check_available()

        with patch("argogen.tools.base.subprocess.run", side_effect=FileNotFoundError()):
            assert not EchoTool().check_available()


class TestKubectl:
    """Tests for the kubectl wrapper."""

    def test_apply(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("application.argoproj.io/shop-dev created\n")
            output = Kubectl().apply(Path("app-dev.yaml"))

        assert output == "application.argoproj.io/shop-dev created"
        assert mock_run.call_args.args[0] == ["kubectl", "apply", "-f", "app-dev.yaml"]

    def test_resource_exists(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("appproject.argoproj.io/commerce\n")
            assert Kubectl().resource_exists("appproject", "commerce", "argocd")

            mock_run.return_value = completed("")
            assert not Kubectl().resource_exists("appproject", "commerce", "argocd")

        assert mock_run.call_args.args[0] == [
            "kubectl", "get", "appproject", "commerce", "--ignore-not-found", "-o", "name",
            "-n", "argocd",
        ]

    def test_count_namespaces(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("namespace/a\nnamespace/b\n\n")
            assert Kubectl().count_namespaces("platform.io/tenant=commerce") == 2

    def test_delete_missing_secret(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("")
            assert Kubectl().delete_secret("git-creds", "argocd") is False

        assert mock_run.call_count == 1

    def test_create_generic_secret(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed()
            Kubectl().create_generic_secret("git-creds", "argocd", {"username": "bot"})

        assert mock_run.call_args.args[0] == [
            "kubectl", "create", "secret", "generic", "git-creds",
            "--from-literal=username=bot", "-n", "argocd",
        ]

    def test_rollout_status_timeout(self) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed()
            Kubectl().rollout_status("argocd-image-updater", "argocd", "90s")

        assert mock_run.call_args.args[0][-1] == "--timeout=90s"


class TestTerraform:
    def test_init_and_apply(self, tmp_path: Path) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("Apply complete!\n")
            terraform = Terraform(tmp_path)
            terraform.init()
            output = terraform.apply(tmp_path / "commerce.tfvars")

        assert output == "Apply complete!\n"
        commands = [c.args[0] for c in mock_run.call_args_list]
        assert commands == [
            ["terraform", "init", "-input=false", "-upgrade"],
            [
                "terraform", "apply", "-input=false",
                f"-var-file={tmp_path / 'commerce.tfvars'}", "-auto-approve",
            ],
        ]
        assert mock_run.call_args.kwargs["cwd"] == tmp_path


class TestGitRepository:
    """Tests for GitRepository parsing."""

    def test_changed_applications(self, tmp_path: Path) -> None:
        porcelain = (
            " M applications/shop/argocd/app-dev.yaml\n"
            " M applications/shop/argocd/app-staging.yaml\n"
            "?? applications/billing/\n"
            'R  applications/old/x.yaml -> applications/blog/argocd/app-dev.yaml\n'
        )
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed(porcelain)
            apps = GitRepository(tmp_path).changed_applications("applications")

        assert apps == ["shop", "billing", "blog"]
        assert mock_run.call_args.args[0] == [
            "git", "status", "--porcelain", "--", "applications/",
        ]

    def test_push_retries_with_upstream(self, tmp_path: Path) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.side_effect = [completed(returncode=1, stderr="no upstream"), completed()]
            GitRepository(tmp_path).push("origin", "main")

        assert mock_run.call_args.args[0] == ["git", "push", "--set-upstream", "origin", "main"]

    def test_has_remote(self, tmp_path: Path) -> None:
        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed("origin\nupstream\n")
            assert GitRepository(tmp_path).has_remote("origin")
            assert not GitRepository(tmp_path).has_remote("fork")

    def test_is_repository_missing_path(self, tmp_path: Path) -> None:
        assert not GitRepository(tmp_path / "missing").is_repository()


class TestSyncRepositories:
    def test_clones_missing_and_updates_existing(self, tmp_path: Path) -> None:
        (tmp_path / "shop").mkdir()
        sources = [
            RepositorySource(url="https://github.com/acme/shop", branch="main", name="shop"),
            RepositorySource(url="https://github.com/acme/blog", branch="develop", name="blog"),
        ]

        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.return_value = completed()
            synced, failed = sync_repositories(sources, tmp_path)

        assert synced == ["shop", "blog"]
        assert failed == []
        commands = [c.args[0][1:] for c in mock_run.call_args_list]
        assert commands == [
            ["fetch", "origin"],
            ["show-ref", "--verify", "--quiet", "refs/heads/main"],
            ["checkout", "main"],
            ["pull", "origin", "main"],
            [
                "clone", "https://github.com/acme/blog.git", str(tmp_path / "blog"),
                "--branch", "develop", "--depth", "1",
            ],
        ]

    def test_failure_continues(self, tmp_path: Path) -> None:
        sources = [
            RepositorySource(url="https://github.com/acme/shop", branch="main", name="shop"),
            RepositorySource(url="https://github.com/acme/blog", branch="main", name="blog"),
        ]

        with patch("argogen.tools.base.subprocess.run") as mock_run:
            mock_run.side_effect = [completed(returncode=128, stderr="not found"), completed()]
            synced, failed = sync_repositories(sources, tmp_path)

        assert synced == ["blog"]
        assert failed[0][0] == "shop"
        assert mock_run.call_args_list[1] == call(
            ["git", "clone", "https://github.com/acme/blog.git", str(tmp_path / "blog"),
             "--branch", "main", "--depth", "1"],
            capture_output=True,
            text=True,
            cwd=tmp_path,
            input=None,
            timeout=300,
        )


class TestCommitMessage:
    def test_no_apps(self) -> None:
        assert build_commit_message([]) == "chore: Update ArgoCD applications"

    def test_single_app(self) -> None:
        assert build_commit_message(["shop"]) == "feat(shop): Update ArgoCD manifests for shop"

    def test_multiple_apps(self) -> None:
        message = build_commit_message(["shop", "blog"])

        assert message.startswith("feat: Update ArgoCD manifests for multiple applications\n\n")
        assert message.endswith("Applications updated:\n- shop\n- blog")


class TestGithubWebPath:
    @pytest.mark.parametrize(
        "remote",
        [
            "https://github.com/acme/config-repo.git",
            "https://github.com/acme/config-repo",
            "git@github.com:acme/config-repo.git",
        ],
    )
    def test_github_remotes(self, remote: str) -> None:
        assert github_web_path(remote) == "acme/config-repo"

    def test_other_hosts(self) -> None:
        assert github_web_path("https://gitlab.com/acme/config-repo.git") is None
        assert github_web_path(None) is None

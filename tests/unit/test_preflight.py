"""Unit tests for preflight validation."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from argogen.config import GitHubConfig
from argogen.github.client import GitHubClient
from argogen.utils.preflight import (
    COMMAND_REQUIREMENTS,
    PreflightChecker,
    PreflightResult,
    ToolCheck,
)


def which_only(*available: str):
    return lambda name: f"/usr/bin/{name}" if name in available else None


class TestPreflightResult:
    def test_missing_required_fails(self) -> None:
        result = PreflightResult()
        result.add_check(ToolCheck(name="kubectl", available=False, required=True))
        result.add_check(ToolCheck(name="kustomize", available=False, required=False))

        assert not result.success
        assert result.errors == ["Required tool not found: kubectl"]
        assert result.warnings == ["Optional tool not found: kustomize"]
        assert result.to_dict()["checks"][0]["name"] == "kubectl"


class TestPreflightChecker:
    """Tests for PreflightChecker with PATH lookups and versions mocked."""

    @pytest.fixture
    def checker(self) -> PreflightChecker:
        return PreflightChecker()

    def test_version_first_line(self, checker: PreflightChecker) -> None:
        with patch("argogen.utils.preflight.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(
                returncode=0, stdout="Terraform v1.9.0\non linux_amd64\n", stderr=""
            )
            assert checker.probe_version("terraform", ("version",)) == "Terraform v1.9.0"

    def test_version_timeout(self, checker: PreflightChecker) -> None:
        with patch(
            "argogen.utils.preflight.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="kubectl", timeout=10),
        ):
            assert checker.probe_version("kubectl") is None

    def test_check_tool_missing(self, checker: PreflightChecker) -> None:
        with patch("argogen.utils.preflight.shutil.which", return_value=None):
            check = checker.check_tool("kustomize", required=False)

        assert not check.available
        assert not check.required
        assert "kustomize" in check.message

    def test_check_all_marks_required(self, checker: PreflightChecker) -> None:
        with (
            patch("argogen.utils.preflight.shutil.which", side_effect=which_only("git", "kubectl")),
            patch.object(checker, "probe_version", return_value="v1"),
        ):
            result = checker.check_all(require={"kubectl", "terraform"})

        assert [c.name for c in result.checks] == ["git", "kubectl", "terraform", "kustomize"]
        assert not result.success
        assert result.errors == ["Required tool not found: terraform"]
        assert result.warnings == ["Optional tool not found: kustomize"]

    def test_unknown_tool(self, checker: PreflightChecker) -> None:
        with pytest.raises(ValueError, match="Unknown tools: helm"):
            checker.check_all(require={"helm"})

    def test_check_command_requirements(self, checker: PreflightChecker) -> None:
        with (
            patch("argogen.utils.preflight.shutil.which", side_effect=which_only("git")),
            patch.object(checker, "probe_version", return_value="v1"),
        ):
            result = checker.check_command("publish")

        assert result.success
        assert COMMAND_REQUIREMENTS["publish"] == frozenset({"git"})

    def test_check_command_generate_checks_github(
        self, checker: PreflightChecker, fake_github
    ) -> None:
        with patch("argogen.utils.preflight.shutil.which", side_effect=which_only()):
            result = checker.check_command(
                "generate", github=GitHubConfig(), client=GitHubClient(GitHubConfig())
            )

        github = result.checks[-1]
        assert github.name == "github"
        assert github.available
        assert github.required
        assert github.path == "https://api.github.com"
        assert result.success

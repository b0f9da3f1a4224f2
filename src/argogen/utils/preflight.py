"""Preflight validation.

External tools are checked before a command starts working, not halfway
through a run. A missing required tool fails the check; a missing optional
tool is only reported.
"""

import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any

from argogen.config import GitHubConfig
from argogen.github.client import GitHubClient


@dataclass
class ToolCheck:
    """Outcome of probing one tool (or the GitHub API).

    ``path`` is the executable location, or the API URL for ``github``.
    ``message`` is the tool's purpose when found and the install hint when not.
    """

    name: str
    available: bool
    required: bool = True
    version: str | None = None
    path: str | None = None
    message: str = ""

    @property
    def blocking(self) -> bool:
        return self.required and not self.available


@dataclass
class PreflightResult:
    """All checks of one preflight run."""

    checks: list[ToolCheck] = field(default_factory=list)

    def add_check(self, check: ToolCheck) -> None:
        self.checks.append(check)

    @property
    def success(self) -> bool:
        return not any(c.blocking for c in self.checks)

    @property
    def errors(self) -> list[str]:
        return [f"Required tool not found: {c.name}" for c in self.checks if c.blocking]

    @property
    def warnings(self) -> list[str]:
        return [
            f"Optional tool not found: {c.name}"
            for c in self.checks
            if not c.available and not c.required
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "checks": [vars(c).copy() for c in self.checks],
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass(frozen=True)
class ToolSpec:
    """How to find and describe one command-line tool."""

    name: str
    version_args: tuple[str, ...]
    purpose: str
    install_hint: str


TOOLS: dict[str, ToolSpec] = {
    "git": ToolSpec(
        "git", ("--version",), "Clone sync and publishing", "Install from: https://git-scm.com"
    ),
    "kubectl": ToolSpec(
        "kubectl",
        ("version", "--client"),
        "Applying manifests, tenants and credentials",
        "Install from: https://kubernetes.io/docs/tasks/tools/",
    ),
    "terraform": ToolSpec(
        "terraform",
        ("version",),
        "Tenant provisioning",
        "Install from: https://developer.hashicorp.com/terraform/install",
    ),
    "kustomize": ToolSpec(
        "kustomize",
        ("version",),
        "Kustomize overlay validation",
        "Install from: https://kubectl.docs.kubernetes.io/installation/kustomize/",
    ),
}

# Tools each command cannot run without
COMMAND_REQUIREMENTS: dict[str, frozenset[str]] = {
    "generate": frozenset(),
    "generate-apply": frozenset({"kubectl"}),
    "sync": frozenset({"git"}),
    "publish": frozenset({"git"}),
    "tenants": frozenset({"kubectl", "terraform"}),
    "validate-kustomize": frozenset({"kustomize"}),
    "credentials": frozenset({"kubectl"}),
}


class PreflightChecker:
    """Probes the tools argogen shells out to.

    Usage:
        result = PreflightChecker().check_command("tenants")
        if not result.success:
            raise typer.Exit(1)
    """

    def __init__(self, timeout: int = 10) -> None:
        self.timeout = timeout

    def locate(self, executable: str) -> str | None:
        """Absolute path of an executable on PATH, or None."""
        return shutil.which(executable)

    def probe_version(self, executable: str, version_args: tuple[str, ...] = ("--version",)) -> str | None:
        """First non-empty output line of ``<executable> <version_args>``.

        Tools that fail, hang past the timeout or print nothing give None.
        """
        try:
            completed = subprocess.run(
                [executable, *version_args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError):
            return None

        if completed.returncode != 0:
            return None
        for line in (completed.stdout or completed.stderr).splitlines():
            if line.strip():
                return line.strip()
        return None

    def check_tool(self, name: str, required: bool = True) -> ToolCheck:
        spec = TOOLS[name]
        path = self.locate(spec.name)
        if path is None:
            return ToolCheck(spec.name, available=False, required=required, message=spec.install_hint)
        return ToolCheck(
            spec.name,
            available=True,
            required=required,
            version=self.probe_version(spec.name, spec.version_args),
            path=path,
            message=spec.purpose,
        )

    def check_github(
        self,
        config: GitHubConfig | None = None,
        required: bool = False,
        client: GitHubClient | None = None,
    ) -> ToolCheck:
        """Check that the GitHub API answers (and accepts the token, if any)."""
        config = config or GitHubConfig()
        with client or GitHubClient(config) as github:
            reachable, message = github.check_connectivity()
        return ToolCheck("github", available=reachable, required=required, path=config.api_url, message=message)

    def check_all(
        self,
        require: set[str] | frozenset[str] | None = None,
        github: GitHubConfig | None = None,
        check_github: bool = False,
        client: GitHubClient | None = None,
    ) -> PreflightResult:
        """Check every known tool.

        Args:
            require: Tool names that must be present; the rest are optional
            github: GitHub settings for the connectivity check
            check_github: Also require the GitHub API to answer
            client: GitHub client for the connectivity check

        Raises:
            ValueError: If ``require`` names a tool argogen does not know
        """
        require = frozenset(require or ())
        unknown = require - TOOLS.keys()
        if unknown:
            raise ValueError(f"Unknown tools: {', '.join(sorted(unknown))}")

        result = PreflightResult()
        for name in TOOLS:
            result.add_check(self.check_tool(name, required=name in require))
        if check_github:
            result.add_check(self.check_github(github, required=True, client=client))
        return result

    def check_command(
        self,
        command: str,
        github: GitHubConfig | None = None,
        client: GitHubClient | None = None,
    ) -> PreflightResult:
        """Check what one CLI command needs; generation also needs the GitHub API."""
        return self.check_all(
            require=COMMAND_REQUIREMENTS.get(command, frozenset()),
            github=github,
            check_github=command in {"generate", "generate-apply"},
            client=client,
        )

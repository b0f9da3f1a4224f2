"""argogen exceptions.

Errors are raised where the failure happens and caught either at the CLI
or at the per-repository / per-tenant loop, which logs and moves on.
"""


class ArgogenError(Exception):
    """Base class for argogen failures."""


class ToolError(ArgogenError):
    """An external command-line tool could not do its job."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        self.message = message
        super().__init__(message)


class ToolNotAvailableError(ToolError):
    """The executable is not installed or not on PATH."""

    def __init__(self, tool_name: str, message: str | None = None) -> None:
        super().__init__(tool_name, message or f"Tool not available: {tool_name}")


class ToolExecutionError(ToolError):
    """The tool ran but failed, timed out or could not be started.

    ``exit_code`` and ``stderr`` are set when the process actually exited.
    """

    def __init__(
        self,
        tool_name: str,
        message: str,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        suffix = "" if exit_code is None else f" (exit {exit_code})"
        super().__init__(tool_name, f"{tool_name} failed: {message}{suffix}")


class GitHubError(ArgogenError):
    """The GitHub API answered with an unexpected error.

    A 404 is never raised: callers receive ``None`` for absent content.
    """

    def __init__(self, status_code: int | None, message: str, url: str | None = None) -> None:
        self.status_code = status_code
        self.url = url
        parts = [f"GitHub API error: {message}"]
        if status_code is not None:
            parts.append(f"(HTTP {status_code})")
        if url:
            parts.append(f"[{url}]")
        super().__init__(" ".join(parts))


class RequirementsError(ArgogenError):
    """A platform requirements file failed validation."""

    def __init__(self, errors: list[str], source: str | None = None) -> None:
        self.errors = errors
        self.source = source
        prefix = f"Invalid platform requirements ({source})" if source else "Invalid platform requirements"
        super().__init__(f"{prefix}: " + "; ".join(errors))


class DiscoveryError(ArgogenError):
    """No deployable service could be found in a repository."""


class RenderError(ArgogenError):
    """A template could not be loaded or its output is not valid YAML."""

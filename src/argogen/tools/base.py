"""Base class for external command wrappers.

Every tool argogen drives (kubectl, terraform, kustomize, git) is a thin
wrapper around ``subprocess.run``. Each wrapper:
1. Invokes the command with captured output and a timeout
2. Raises ToolNotAvailableError when the executable is missing
3. Raises ToolExecutionError on timeout or a non-zero exit (unless asked not to)
"""

import logging
import subprocess
from pathlib import Path

from argogen.errors import ToolExecutionError, ToolNotAvailableError

logger = logging.getLogger(__name__)


class CommandTool:
    """Runs one external executable.

    Attributes:
        executable: Command name looked up on PATH
        cwd: Working directory for every invocation
        timeout: Timeout in seconds for every invocation
    """

    executable: str = ""
    version_args: tuple[str, ...] = ("--version",)

    def __init__(self, cwd: Path | None = None, timeout: int = 300) -> None:
        """Initialize the wrapper.

        Args:
            cwd: Working directory (defaults to the process cwd)
            timeout: Timeout in seconds
        """
        self.cwd = cwd
        self.timeout = timeout

    def run(
        self,
        *args: str,
        check: bool = True,
        cwd: Path | None = None,
        input_text: str | None = None,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run the executable with arguments.

        Args:
            *args: Command arguments
            check: Raise ToolExecutionError on non-zero exit
            cwd: Working directory override for this call
            input_text: Text passed on stdin
            timeout: Timeout override for this call

        Returns:
            Completed process with captured stdout/stderr

        Raises:
            ToolNotAvailableError: If the executable is not installed
            ToolExecutionError: If the command times out or fails with check=True
        """
        command = [self.executable, *args]
        run_timeout = timeout or self.timeout
        logger.debug("Running: %s", " ".join(command))

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                cwd=cwd or self.cwd,
                input=input_text,
                timeout=run_timeout,
            )
        except FileNotFoundError as e:
            raise ToolNotAvailableError(self.executable) from e
        except subprocess.TimeoutExpired as e:
            raise ToolExecutionError(
                self.executable,
                f"'{' '.join(args)}' timed out after {run_timeout} seconds",
                stderr=str(e),
            ) from e
        except OSError as e:
            raise ToolExecutionError(self.executable, f"Failed to execute: {e}") from e

        if check and result.returncode != 0:
            raise ToolExecutionError(
                self.executable,
                f"'{' '.join(args)}' failed: {result.stderr.strip() or result.stdout.strip()}",
                exit_code=result.returncode,
                stderr=result.stderr,
            )

        return result

    def check_available(self) -> bool:
        """Check if the executable is installed and runs."""
        try:
            result = self.run(*self.version_args, check=False, timeout=10)
            return result.returncode == 0
        except (ToolNotAvailableError, ToolExecutionError):
            return False

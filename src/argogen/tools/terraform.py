"""terraform wrapper."""

import logging
from pathlib import Path

from argogen.tools.base import CommandTool

logger = logging.getLogger(__name__)


class Terraform(CommandTool):
    """Runs terraform in one working directory."""

    executable = "terraform"
    version_args = ("version",)

    def __init__(self, working_dir: Path, timeout: int = 600) -> None:
        super().__init__(cwd=working_dir, timeout=timeout)

    def init(self, upgrade: bool = True) -> None:
        args = ["init", "-input=false"]
        if upgrade:
            args.append("-upgrade")
        result = self.run(*args)
        logger.debug(result.stdout)

    def apply(self, var_file: Path, auto_approve: bool = True) -> str:
        """Apply the configuration with a variables file.

        Returns:
            terraform output
        """
        args = ["apply", "-input=false", f"-var-file={var_file}"]
        if auto_approve:
            args.append("-auto-approve")
        result = self.run(*args)
        logger.debug(result.stdout)
        return result.stdout

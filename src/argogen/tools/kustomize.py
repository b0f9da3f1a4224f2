"""kustomize wrapper."""

from pathlib import Path

from argogen.tools.base import CommandTool


class Kustomize(CommandTool):
    executable = "kustomize"
    version_args = ("version",)

    def build(self, directory: Path) -> str:
        """Render a kustomization directory.

        Raises:
            ToolExecutionError: If the kustomization is invalid
        """
        return self.run("build", str(directory)).stdout

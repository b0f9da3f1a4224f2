"""kubectl wrapper."""

import logging
from pathlib import Path

from argogen.tools.base import CommandTool

logger = logging.getLogger(__name__)


class Kubectl(CommandTool):
    """Cluster operations used by generation, tenants and credentials."""

    executable = "kubectl"
    version_args = ("version", "--client")

    def apply(self, path: Path) -> str:
        """Apply a manifest file.

        Returns:
            kubectl output (e.g. ``application.argoproj.io/x created``)
        """
        result = self.run("apply", "-f", str(path))
        return result.stdout.strip()

    def resource_exists(self, kind: str, name: str, namespace: str | None = None) -> bool:
        args = ["get", kind, name, "--ignore-not-found", "-o", "name"]
        if namespace:
            args += ["-n", namespace]
        result = self.run(*args, check=False)
        return result.returncode == 0 and bool(result.stdout.strip())

    def cluster_reachable(self) -> bool:
        """Check that the current kubeconfig context answers."""
        result = self.run("cluster-info", check=False, timeout=30)
        return result.returncode == 0

    def rollout_restart(self, deployment: str, namespace: str) -> None:
        self.run("rollout", "restart", f"deployment/{deployment}", "-n", namespace)

    def rollout_status(self, deployment: str, namespace: str, timeout: str = "60s") -> None:
        self.run(
            "rollout",
            "status",
            f"deployment/{deployment}",
            "-n",
            namespace,
            f"--timeout={timeout}",
        )

    def count_namespaces(self, label_selector: str) -> int:
        """Count namespaces matching a label selector."""
        result = self.run("get", "namespaces", "-l", label_selector, "--no-headers", "-o", "name")
        return len([line for line in result.stdout.splitlines() if line.strip()])

    def delete_secret(self, name: str, namespace: str) -> bool:
        """Delete a secret if it exists.

        Returns:
            True if a secret was deleted
        """
        if not self.resource_exists("secret", name, namespace):
            return False
        self.run("delete", "secret", name, "-n", namespace)
        return True

    def create_generic_secret(self, name: str, namespace: str, literals: dict[str, str]) -> None:
        args = ["create", "secret", "generic", name]
        args += [f"--from-literal={key}={value}" for key, value in literals.items()]
        args += ["-n", namespace]
        self.run(*args)

    def label(self, kind: str, name: str, namespace: str, labels: dict[str, str]) -> None:
        args = ["label", kind, name, "-n", namespace, "--overwrite"]
        args += [f"{key}={value}" for key, value in labels.items()]
        self.run(*args)

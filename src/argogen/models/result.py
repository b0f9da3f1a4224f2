"""Run results for the batch commands.

Batch commands keep going when a single repository, manifest or tenant
fails. They collect each failure here and report it at the end.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class RunError:
    """Non-fatal error encountered during a run.

    Attributes:
        subject: What failed (repository name, manifest path, tenant name)
        message: Error description
        stage: Step that failed (read, validate, discover, render, apply, ...)
    """

    subject: str
    message: str
    stage: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"subject": self.subject, "message": self.message, "stage": self.stage}


@dataclass
class GenerationResult:
    """Outcome of an application generation run.

    Attributes:
        repositories_processed: Sources (or local clones) looked at
        applications_generated: Manifests written
        environments: Environment entries processed
        generated_files: Paths of written manifests
        applied: Manifests successfully applied to the cluster
        errors: Per-repository failures
        warnings: Non-fatal warnings
    """

    repositories_processed: int = 0
    applications_generated: int = 0
    environments: int = 0
    generated_files: list[Path] = field(default_factory=list)
    applied: list[Path] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, subject: str, message: str, stage: str = "") -> None:
        self.errors.append(RunError(subject=subject, message=message, stage=stage))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "repositories_processed": self.repositories_processed,
            "applications_generated": self.applications_generated,
            "environments": self.environments,
            "generated_files": [str(p) for p in self.generated_files],
            "applied": [str(p) for p in self.applied],
            "errors": [e.to_dict() for e in self.errors],
            "warnings": self.warnings,
        }


@dataclass
class TenantRunResult:
    """Outcome of a tenant onboarding run."""

    onboarded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[RunError] = field(default_factory=list)
    discovered: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "onboarded": self.onboarded,
            "skipped": self.skipped,
            "failed": [f.to_dict() for f in self.failed],
            "discovered": self.discovered,
        }

"""Validation of generated Applications and Kustomize overlays.

- ApplicationValidator: Image Updater annotations and Helm image tags of a
  generated ArgoCD Application
- KustomizeValidator: ``kustomize build`` of every kustomization directory
- update_kustomize_image_tag: pin an overlay to a new image tag
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from argogen.errors import ToolExecutionError, ToolNotAvailableError
from argogen.models.environment import expected_image_tag
from argogen.tools.git import GitRepository
from argogen.tools.kustomize import Kustomize
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

IMAGE_UPDATER_PREFIX = "argocd-image-updater.argoproj.io"
REQUIRED_ANNOTATIONS = ("image-list", "write-back-method", "git-branch")

_NEW_TAG_LINE = re.compile(r"^(\s*newTag:)[^\n]*$", re.MULTILINE)


@dataclass
class ValidationReport:
    """Validation outcome of one Application manifest."""

    path: Path
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }


class ApplicationValidator:
    """Checks generated Applications against the Image Updater conventions.

    Checks, in order:
    1. The file parses as YAML
    2. ``image-list``, ``write-back-method`` and ``git-branch`` annotations exist
    3. Every service has an ``<service>.allow-tags`` annotation
    4. Every service's ``<service>.image.tag`` Helm parameter is the tag the
       environment tracks (single-source Applications only)
    """

    def __init__(self, annotation_prefix: str = "argogen.io") -> None:
        self.annotation_prefix = annotation_prefix

    def validate_file(self, path: Path) -> ValidationReport:
        """Validate one Application manifest."""
        report = ValidationReport(path=path)
        logger.info("Validating ArgoCD Application: %s", path.name)

        try:
            manifest = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            report.errors.append(f"Invalid YAML syntax: {e}")
            return report
        except OSError as e:
            report.errors.append(f"Cannot read file: {e}")
            return report

        if not isinstance(manifest, dict):
            report.errors.append("Manifest is not a YAML mapping")
            return report

        self.validate_manifest(manifest, report)
        return report

    def validate_manifest(self, manifest: dict[str, Any], report: ValidationReport) -> None:
        metadata = manifest.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        labels = metadata.get("labels") or {}

        for key in REQUIRED_ANNOTATIONS:
            if not annotations.get(f"{IMAGE_UPDATER_PREFIX}/{key}"):
                report.errors.append(f"Missing {key} annotation")

        services = self.services(annotations)
        for service in services:
            if not annotations.get(f"{IMAGE_UPDATER_PREFIX}/{service}.allow-tags"):
                report.errors.append(f"Missing {service}.allow-tags annotation")

        self._check_image_tags(manifest, services, str(labels.get("environment", "")), report)

    def services(self, annotations: dict[str, Any]) -> list[str]:
        """Service names of an Application.

        Taken from the ``<prefix>/microservices`` annotation, or from the
        image aliases of ``image-list`` when that annotation is absent.
        """
        listed = annotations.get(f"{self.annotation_prefix}/microservices")
        if listed:
            return [s.strip() for s in str(listed).split(",") if s.strip()]

        image_list = annotations.get(f"{IMAGE_UPDATER_PREFIX}/image-list") or ""
        aliases = []
        for entry in str(image_list).split(","):
            alias, sep, _ = entry.partition("=")
            if sep and alias.strip():
                aliases.append(alias.strip())
        return aliases

    def _check_image_tags(
        self,
        manifest: dict[str, Any],
        services: list[str],
        environment: str,
        report: ValidationReport,
    ) -> None:
        spec = manifest.get("spec") or {}
        source = spec.get("source")
        if not isinstance(source, dict):
            if spec.get("sources"):
                report.warnings.append("Multi-source Application: Helm image tags not checked")
            return

        parameters = {
            str(p.get("name")): p.get("value")
            for p in ((source.get("helm") or {}).get("parameters") or [])
            if isinstance(p, dict)
        }

        for service in services:
            expected = expected_image_tag(service, environment)
            if expected is None:
                report.warnings.append(f"Unknown environment: {environment or '<unset>'}")
                return

            actual = parameters.get(f"{service}.image.tag")
            if actual != expected:
                report.errors.append(
                    f"{service} image tag mismatch. Expected: {expected}, Got: {actual}"
                )


def validate_directory(
    applications_dir: Path,
    validator: ApplicationValidator | None = None,
) -> list[ValidationReport]:
    """Validate every ``<app>/argocd/app-*.yaml`` under the applications directory.

    Raises:
        FileNotFoundError: If the applications directory does not exist
    """
    if not applications_dir.is_dir():
        raise FileNotFoundError(f"Applications directory not found: {applications_dir}")

    validator = validator or ApplicationValidator()
    reports = []
    for path in sorted(applications_dir.glob("*/argocd/app-*.yaml")):
        report = validator.validate_file(path)
        for warning in report.warnings:
            logger.warning("%s: %s", path.name, warning)
        if report.valid:
            logger.success("%s validation passed", path.name)
        else:
            for error in report.errors:
                logger.error("%s: %s", path.name, error)
        reports.append(report)
    return reports


@dataclass
class KustomizeResult:
    """``kustomize build`` outcome for one directory."""

    directory: Path
    valid: bool
    error: str | None = None


class KustomizeValidator:
    """Builds every kustomization under a directory."""

    def __init__(self, charts_dir: Path, kustomize: Kustomize | None = None) -> None:
        self.charts_dir = charts_dir
        self.kustomize = kustomize or Kustomize()

    def find_kustomizations(self) -> list[Path]:
        """Directories holding a ``kustomization.yaml``."""
        return sorted(p.parent for p in self.charts_dir.rglob("kustomization.yaml") if p.is_file())

    def validate(self) -> list[KustomizeResult]:
        """Run ``kustomize build`` on every kustomization directory.

        Raises:
            FileNotFoundError: If the charts directory does not exist
            ToolNotAvailableError: If kustomize is not installed
        """
        if not self.charts_dir.is_dir():
            raise FileNotFoundError(f"Directory not found: {self.charts_dir}")

        results = []
        for directory in self.find_kustomizations():
            try:
                self.kustomize.build(directory)
            except ToolExecutionError as e:
                logger.error("%s has errors:\n%s", directory, e.stderr or e)
                results.append(KustomizeResult(directory, False, e.stderr or str(e)))
                continue
            logger.success("%s is valid", directory / "kustomization.yaml")
            results.append(KustomizeResult(directory, True))
        return results


def update_kustomize_image_tag(
    root: Path,
    app: str,
    environment: str,
    tag: str,
    charts_dir: str = "apps",
) -> tuple[Path, str]:
    """Set ``newTag`` of every image in an overlay's kustomization.

    Only the ``newTag:`` lines change; the rest of the file is kept as is.

    Args:
        root: Config repository root
        app: Application directory name
        environment: Overlay name
        tag: New image tag
        charts_dir: Directory holding the applications, relative to root

    Returns:
        Tuple of (kustomization path, ``git diff`` of the file)

    Raises:
        ValueError: If the tag is empty or spans lines
        FileNotFoundError: If the overlay kustomization does not exist
    """
    tag = tag.strip()
    if not tag or "\n" in tag:
        raise ValueError(f"Invalid image tag: {tag!r}")

    path = root / charts_dir / app / "overlays" / environment / "kustomization.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"{path} not found")

    content = path.read_text(encoding="utf-8")
    updated, count = _NEW_TAG_LINE.subn(lambda m: f"{m.group(1)} {tag}", content)
    if count == 0:
        logger.warning("No newTag entries found in %s", path)
    path.write_text(updated, encoding="utf-8")
    logger.success("Updated %s in %s to tag %s", app, environment, tag)

    try:
        diff = GitRepository(root).diff(path.relative_to(root))
    except (ToolExecutionError, ToolNotAvailableError) as e:
        logger.debug("git diff unavailable: %s", e)
        diff = ""
    return path, diff

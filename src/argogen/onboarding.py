"""Helm chart scaffolding for new applications.

Turns an application's ``platform-requirements.yml`` into a Helm chart under
the charts directory of the config repository plus staging and production
Applications in the landing zone.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from argogen.config import ArgogenConfig
from argogen.errors import RequirementsError
from argogen.models.requirements import (
    REQUIREMENTS_FILENAME,
    PlatformRequirements,
    sanitize_app_name,
)
from argogen.templates.renderer import ManifestRenderer
from argogen.tools.git import github_web_path
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

# Chart template -> validate output as YAML. Helm templates are not YAML
# until Helm renders them.
CHART_FILES: dict[str, bool] = {
    "Chart.yaml": True,
    "values.yaml": True,
    "values-staging.yaml": True,
    "values-prod.yaml": True,
    "templates/deployment.yaml": False,
    "templates/service.yaml": False,
    "templates/ingress.yaml": False,
    "templates/serviceaccount.yaml": False,
    "templates/hpa.yaml": False,
    "templates/_helpers.tpl": False,
    "deploy-gitops-template.yml": True,
    "README.md": False,
}
CONFIGMAP_TEMPLATE = "templates/configmap.yaml"


@dataclass(frozen=True)
class LandingZoneTarget:
    """Per-environment settings of a landing-zone Application."""

    suffix: str
    environment: str
    values_file: str
    allow_tags: str
    revision_history_limit: int
    sync_wave: str | None = None


LANDING_ZONE_TARGETS = (
    LandingZoneTarget(
        suffix="staging",
        environment="staging",
        values_file="values-staging.yaml",
        allow_tags="^(latest|[a-f0-9]{8})$",
        revision_history_limit=5,
        sync_wave="5",
    ),
    LandingZoneTarget(
        suffix="prod",
        environment="production",
        values_file="values-prod.yaml",
        allow_tags="^(latest|main-.+)$",
        revision_history_limit=10,
    ),
)


def primary_port_and_health_path(requirements: PlatformRequirements) -> tuple[int, str]:
    """Port the Service targets and the path its probes use.

    The frontend wins when enabled (probed at ``/``), then the backend
    (probed at its health check path); otherwise 3000 and ``/health``.
    """
    if requirements.frontend.enabled:
        return requirements.frontend.port, "/"
    if requirements.backend.enabled:
        return requirements.backend.port, requirements.backend.health_check
    return 3000, "/health"


def landing_zone_app_type(requirements: PlatformRequirements) -> str | None:
    frontend = requirements.frontend.enabled
    backend = requirements.backend.enabled
    if frontend and backend:
        return "fullstack"
    if frontend:
        return "frontend"
    if backend:
        return "backend"
    return None


class ApplicationOnboarder:
    """Scaffolds the chart and landing-zone Applications of one application.

    Usage:
        onboarder = ApplicationOnboarder(config, root=Path("."))
        written = onboarder.onboard(Path("platform-requirements.yml"))
    """

    def __init__(
        self,
        config: ArgogenConfig,
        root: Path,
        renderer: ManifestRenderer | None = None,
    ) -> None:
        self.config = config
        self.root = root
        self.renderer = renderer or ManifestRenderer()

    def onboard(self, requirements_path: Path) -> list[Path]:
        """Write the chart and landing-zone Applications for an application.

        Existing files are overwritten.

        Args:
            requirements_path: Path to the application's platform-requirements.yml

        Returns:
            Paths of all written files

        Raises:
            FileNotFoundError: If the requirements file does not exist
            RequirementsError: If app.name is missing
            RenderError: If a template fails to render
        """
        if not requirements_path.is_file():
            raise FileNotFoundError(f"{REQUIREMENTS_FILENAME} not found at: {requirements_path}")

        logger.info("Reading platform requirements from: %s", requirements_path)
        requirements_text = requirements_path.read_text(encoding="utf-8")
        try:
            requirements = PlatformRequirements.from_yaml(requirements_text)
        except ValueError as e:
            raise RequirementsError([str(e)], str(requirements_path)) from e

        if not requirements.app.name:
            raise RequirementsError(
                ["app.name is required in platform-requirements.yml"], str(requirements_path)
            )

        name = sanitize_app_name(requirements.app.name)
        if not name:
            raise RequirementsError(
                [f"app.name {requirements.app.name!r} has no usable characters"],
                str(requirements_path),
            )

        context = self.chart_context(name, requirements, requirements_text)
        logger.info(
            "Creating files for application: %s (frontend: %s, backend: %s, database: %s)",
            name,
            requirements.frontend.enabled,
            requirements.backend.enabled,
            context["database"],
        )

        written = self._write_chart(name, requirements, context)

        chart_dir = self.root / self.config.paths.charts_dir / name
        copied = chart_dir / REQUIREMENTS_FILENAME
        if requirements_path.resolve() != copied.resolve():
            shutil.copyfile(requirements_path, copied)
        written.append(copied)

        written.extend(self._write_landing_zone(name, requirements, context))

        logger.success("Application onboarding complete for: %s (%d files)", name, len(written))
        return written

    def chart_context(
        self,
        name: str,
        requirements: PlatformRequirements,
        requirements_text: str,
    ) -> dict[str, Any]:
        """Template context shared by the chart files."""
        onboarding = self.config.onboarding
        frontend = requirements.frontend
        backend = requirements.backend
        primary_port, health_path = primary_port_and_health_path(requirements)

        config_repo_url = self.config_repo_url()
        config_repo = github_web_path(config_repo_url) or f"{onboarding.organization}/config-repo"

        landing_zone_rel = Path(self.config.paths.landing_zone_dir) / name

        return {
            "name": name,
            "app_environment": requirements.app.environment,
            "frontend": frontend,
            "backend": backend,
            "database": backend.database,
            "any_enabled": frontend.enabled or backend.enabled,
            "both_enabled": frontend.enabled and backend.enabled,
            "ingress_path": "/api(/|$)(.*)" if frontend.enabled and backend.enabled else "/",
            "primary_port": primary_port,
            "health_path": health_path,
            "replicas": frontend.replicas if frontend.enabled else backend.replicas,
            "hosts": {
                "default": frontend.domain or f"{name}.local",
                "staging": f"{name}-staging.local",
                "prod": frontend.domain or f"{name}.{onboarding.domain}",
            },
            "image_repository": f"{onboarding.image_registry}/{onboarding.organization}/{name}",
            "image_pull_secret": onboarding.image_pull_secret,
            "home_url": f"https://github.com/{onboarding.organization}/{name}",
            "maintainer_email": onboarding.maintainer_email,
            "part_of": self.config.platform.part_of,
            "workflows_repo": onboarding.workflows_repo,
            "config_repo": config_repo,
            "config_repo_url": config_repo_url,
            "chart_dir": f"{self.config.paths.charts_dir.rstrip('/')}/{name}",
            "landing_zone_rel": landing_zone_rel.as_posix(),
            "requirements_text": requirements_text,
        }

    def config_repo_url(self) -> str:
        """URL of the config repository the landing-zone Applications point to."""
        return (
            self.config.platform.config_repo_url
            or f"https://github.com/{self.config.onboarding.organization}/config-repo.git"
        )

    def _write_chart(
        self,
        name: str,
        requirements: PlatformRequirements,
        context: dict[str, Any],
    ) -> list[Path]:
        chart_dir = self.root / self.config.paths.charts_dir / name
        files = dict(CHART_FILES)
        if requirements.backend.enabled or context["database"] != "none":
            files[CONFIGMAP_TEMPLATE] = False

        written = []
        for template_name, validate_yaml in files.items():
            content = self.renderer.render_chart_file(
                template_name, context, validate_yaml=validate_yaml
            )
            output = chart_dir / template_name
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(content, encoding="utf-8")
            logger.debug("Wrote %s", output)
            written.append(output)

        logger.success("Created Helm chart: %s", chart_dir)
        return written

    def _write_landing_zone(
        self,
        name: str,
        requirements: PlatformRequirements,
        chart_context: dict[str, Any],
    ) -> list[Path]:
        landing_zone_dir = self.root / self.config.paths.landing_zone_dir / name
        written = []
        for target in LANDING_ZONE_TARGETS:
            context = {
                "name": name,
                "application_name": f"{name}-{target.suffix}",
                "environment": target.environment,
                "image_alias": f"{name}-app",
                "image_repository": chart_context["image_repository"],
                "allow_tags": target.allow_tags,
                "sync_wave": target.sync_wave,
                "app_type": landing_zone_app_type(requirements),
                "database": chart_context["database"],
                "config_repo_url": chart_context["config_repo_url"],
                "chart_dir": chart_context["chart_dir"],
                "values_file": target.values_file,
                "namespace": name if target.suffix == "prod" else f"{name}-{target.suffix}",
                "revision_history_limit": target.revision_history_limit,
                "platform": self.config.platform,
            }
            output = landing_zone_dir / f"{target.suffix}.yaml"
            self.renderer.render_to_file("landing-zone-application.yaml.j2", context, output)
            written.append(output)

        logger.success("Created landing-zone Applications: %s", landing_zone_dir)
        return written

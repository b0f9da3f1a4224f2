"""ArgoCD Application generation.

Two generation modes share one renderer and one output layout
(``<applications_dir>/<name>/argocd/app-<env>.yaml``):

- GitHub mode reads ``platform-requirements.yml`` and the repository layout
  through the GitHub API; nothing is cloned.
- Local mode reads clones under the local repositories directory and adds
  the enabled platform module charts as extra Application sources.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx
import yaml

from argogen.config import ArgogenConfig
from argogen.discovery import discover_microservices, validate_repository_structure
from argogen.errors import (
    DiscoveryError,
    GitHubError,
    RenderError,
    ToolExecutionError,
    ToolNotAvailableError,
)
from argogen.github.client import GitHubClient
from argogen.models.environment import (
    EnvironmentProfile,
    TagConvention,
    resolve_environment,
)
from argogen.models.requirements import REQUIREMENTS_FILENAME, PlatformRequirements
from argogen.models.result import GenerationResult
from argogen.models.source import RepositorySource, read_sources_file
from argogen.templates.renderer import ManifestRenderer
from argogen.tools.git import GitRepository
from argogen.tools.kubectl import Kubectl
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

IMAGE_UPDATER_DEPLOYMENT = "argocd-image-updater"
DEFAULT_MODULE_PRIORITY = 999

DOCKER_HUB_REGISTRY = {
    "name": "Docker Hub",
    "api_url": "https://registry-1.docker.io",
    "prefix": "docker.io",
    "default": True,
}


def generated_at() -> str:
    """Current UTC time in the annotation format (``YYYY-MM-DDTHH:MM:SSZ``)."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def application_path(applications_dir: Path, name: str, environment: str) -> Path:
    """Output path of the Application manifest for one environment."""
    return applications_dir / name / "argocd" / f"app-{environment}.yaml"


def build_service_entries(
    services: list[str], profile: EnvironmentProfile
) -> list[dict[str, Any]]:
    """Per-service Image Updater settings for the template."""
    return [
        {
            "name": service,
            "allow_tags": f"regexp:^{service}-{profile.tag_pattern}",
            "ignore_tags": profile.ignore_tags(service),
            "image_tag": f"{service}-{profile.tag_placeholder}",
        }
        for service in services
    ]


def build_image_list(services: list[str], image_repository: str, profile: EnvironmentProfile) -> str:
    """Image Updater ``image-list`` value (``alias=image:tag`` per service).

    Examples:
        >>> profile = resolve_environment("staging")
        >>> build_image_list(["api"], "acme/shop", profile)
        'api=acme/shop:api-staging-latest'
    """
    return ",".join(
        f"{service}={image_repository}:{service}-{profile.tag_placeholder}" for service in services
    )


def image_updater_registries(registries: set[str] | list[str]) -> list[dict[str, Any]]:
    """Registry entries for ``registries.conf``.

    Docker Hub is always present and the default; every other registry used
    by a generated application is added after it, sorted by host.
    """
    entries = [dict(DOCKER_HUB_REGISTRY)]
    for registry in sorted(set(registries)):
        if registry in ("docker.io", "registry-1.docker.io", ""):
            continue
        entries.append(
            {
                "name": registry,
                "api_url": f"https://{registry}",
                "prefix": registry,
                "default": False,
            }
        )
    return entries


def load_module_mappings(path: Path) -> dict[str, dict[str, Any]]:
    """Load ``platform_modules`` from the module mappings file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML
    """
    if not path.exists():
        raise FileNotFoundError(f"Module mappings file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in module mappings {path}: {e}") from e

    modules = data.get("platform_modules") if isinstance(data, dict) else None
    if not isinstance(modules, dict):
        return {}
    return {str(name): spec if isinstance(spec, dict) else {} for name, spec in modules.items()}


def order_platform_modules(
    enabled: list[str], mappings: dict[str, dict[str, Any]]
) -> list[dict[str, str]]:
    """Order enabled modules by priority and keep those that have a chart.

    Modules without a priority sort last (999); ties keep requirements order.

    Returns:
        ``{"name", "chart_path"}`` entries, lowest priority first
    """

    def priority(module: str) -> int:
        value = mappings.get(module, {}).get("priority", DEFAULT_MODULE_PRIORITY)
        try:
            return int(value)
        except (TypeError, ValueError):
            return DEFAULT_MODULE_PRIORITY

    ordered: list[dict[str, str]] = []
    for module in sorted(enabled, key=priority):
        chart_path = mappings.get(module, {}).get("chart_path")
        if chart_path:
            ordered.append({"name": module, "chart_path": str(chart_path)})
        else:
            logger.debug("Platform module %s has no chart_path, not adding a source", module)
    return ordered


@dataclass
class GenerationOptions:
    """Options for a generation run.

    Attributes:
        apply: kubectl apply each manifest and the Image Updater config
        local: Generate from local clones instead of the GitHub API
        app: Only generate this local application (local mode)
    """

    apply: bool = False
    local: bool = False
    app: str | None = None


class ApplicationGenerator:
    """Generates ArgoCD Applications for every configured repository.

    Usage:
        generator = ApplicationGenerator(config, root=Path("."))
        result = generator.run(GenerationOptions(apply=False))
    """

    def __init__(
        self,
        config: ArgogenConfig,
        root: Path,
        renderer: ManifestRenderer | None = None,
        kubectl: Kubectl | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            config: argogen configuration
            root: Config repository root; configured paths are relative to it
            renderer: Manifest renderer (created if None)
            kubectl: kubectl wrapper used in apply mode (created if None)
        """
        self.config = config
        self.root = root
        self.renderer = renderer or ManifestRenderer()
        self.kubectl = kubectl or Kubectl(cwd=root, timeout=config.ci.timeout)
        self._registries: set[str] = set()

    @property
    def applications_dir(self) -> Path:
        return self.root / self.config.paths.applications_dir

    def chart_path(self, requirements: PlatformRequirements) -> str:
        """Helm chart directory: ``app.chartPath``, else ``github.chart_path``."""
        return (requirements.app.chart_path or self.config.github.chart_path).strip("/")

    def run(self, options: GenerationOptions | None = None) -> GenerationResult:
        """Run generation in the selected mode."""
        options = options or GenerationOptions()
        if options.local:
            return self.generate_local(app=options.app, apply=options.apply)
        return self.generate_from_github(apply=options.apply)

    # =========================================================================
    # GitHub mode
    # =========================================================================

    def generate_from_github(
        self,
        sources: list[RepositorySource] | None = None,
        apply: bool = False,
        client: GitHubClient | None = None,
    ) -> GenerationResult:
        """Generate Applications by reading repositories through the GitHub API.

        A repository that cannot be read, validated or discovered is recorded
        as an error and skipped; the run continues with the next one.

        Args:
            sources: Repositories to process (read from the sources file if None)
            apply: Apply manifests and the Image Updater config to the cluster
            client: GitHub client (created from config if None)

        Raises:
            FileNotFoundError: If the sources file does not exist
        """
        if sources is None:
            sources_file = self.root / self.config.paths.sources_file
            logger.info("Reading application sources from: %s", sources_file)
            sources = read_sources_file(sources_file, self.config.github.default_branch)

        result = GenerationResult()
        self._registries = set()

        with client or GitHubClient(self.config.github) as github:
            for source in sources:
                result.repositories_processed += 1
                logger.info("Processing repository: %s (branch: %s)", source.name, source.branch)
                try:
                    self._generate_repository(github, source, result, apply)
                except (GitHubError, httpx.HTTPError) as e:
                    logger.error("GitHub API error for %s: %s", source.name, e)
                    result.add_error(source.name, str(e), "read")

        if apply:
            self.apply_image_updater_config(result)

        return result

    def _generate_repository(
        self,
        github: GitHubClient,
        source: RepositorySource,
        result: GenerationResult,
        apply: bool,
    ) -> None:
        text = github.read_file(source, REQUIREMENTS_FILENAME)
        if text is None:
            message = f"{REQUIREMENTS_FILENAME} not found (branch: {source.branch})"
            logger.error("Skipping %s: %s", source.name, message)
            result.add_error(source.name, message, "read")
            return

        try:
            requirements = PlatformRequirements.from_yaml(text)
        except ValueError as e:
            logger.error("Skipping %s: %s", source.name, e)
            result.add_error(source.name, str(e), "read")
            return

        problems = requirements.validate(require_container=True)
        if problems:
            for problem in problems:
                logger.error("%s: %s", source.name, problem)
            result.add_error(source.name, "; ".join(problems), "validate")
            return

        problems = validate_repository_structure(github, source, self.chart_path(requirements))
        if problems:
            for problem in problems:
                logger.error("Skipping %s: %s", source.name, problem)
            result.add_error(source.name, "; ".join(problems), "validate")
            return

        if not requirements.environments:
            logger.warning("No environments defined for %s, using default: dev", source.name)
            result.warnings.append(f"{source.name}: no environments defined, using dev")

        try:
            services = discover_microservices(github, source, requirements)
        except DiscoveryError as e:
            logger.error("Failed to discover microservices in %s: %s", source.name, e)
            result.add_error(source.name, str(e), "discover")
            return

        self._registries.add(requirements.container.registry)

        for environment in requirements.effective_environments:
            result.environments += 1
            profile = resolve_environment(environment, source.branch, TagConvention.BRANCH_LATEST)
            context = self.application_context(
                requirements, environment, profile, services, repo_url=source.url
            )
            output = application_path(self.applications_dir, source.name, environment)
            self._write_application("application.yaml.j2", context, output, source.name, result, apply)

    def application_context(
        self,
        requirements: PlatformRequirements,
        environment: str,
        profile: EnvironmentProfile,
        services: list[str],
        repo_url: str,
    ) -> dict[str, Any]:
        """Template context of a single-source, multi-service Application."""
        app_name = requirements.app.name or ""
        image_repository = requirements.image_repository
        return {
            "app_name": app_name,
            "app": requirements.app,
            "environment": environment,
            "release_name": f"{app_name}-{environment}".lower(),
            "profile": profile,
            "services": build_service_entries(services, profile),
            "service_names": services,
            "image_list": build_image_list(services, image_repository, profile),
            "image_repository": image_repository,
            "repo_url": repo_url,
            "chart_path": self.chart_path(requirements),
            "project": requirements.app.tenant or self.config.platform.project,
            "platform": self.config.platform,
            "generated_at": generated_at(),
        }

    # =========================================================================
    # Local mode
    # =========================================================================

    def generate_local(self, app: str | None = None, apply: bool = False) -> GenerationResult:
        """Generate multi-source Applications from local clones.

        Args:
            app: Only process the clone with this directory name
            apply: Apply manifests and the Image Updater config to the cluster

        Raises:
            FileNotFoundError: If the local repositories directory, the named
                application or the module mappings file is missing
        """
        repos_dir = self.root / self.config.paths.local_repos_dir
        if not repos_dir.is_dir():
            raise FileNotFoundError(f"Local app repositories directory not found: {repos_dir}")

        mappings = load_module_mappings(self.root / self.config.paths.module_mappings)

        if app:
            app_dirs = [repos_dir / app]
            if not app_dirs[0].is_dir():
                raise FileNotFoundError(f"Application directory not found: {app_dirs[0]}")
        else:
            app_dirs = sorted(p for p in repos_dir.iterdir() if p.is_dir())

        result = GenerationResult()
        self._registries = set()

        for app_dir in app_dirs:
            requirements_file = app_dir / REQUIREMENTS_FILENAME
            if not requirements_file.is_file():
                logger.warning("No %s found for %s, skipping", REQUIREMENTS_FILENAME, app_dir.name)
                result.warnings.append(f"{app_dir.name}: no {REQUIREMENTS_FILENAME}")
                continue

            result.repositories_processed += 1
            logger.info("Processing application: %s", app_dir.name)
            self._generate_local_app(app_dir, mappings, result, apply)

        if apply:
            self.apply_image_updater_config(result)

        return result

    def _generate_local_app(
        self,
        app_dir: Path,
        mappings: dict[str, dict[str, Any]],
        result: GenerationResult,
        apply: bool,
    ) -> None:
        name = app_dir.name
        try:
            requirements = PlatformRequirements.from_file(app_dir / REQUIREMENTS_FILENAME)
        except (OSError, ValueError) as e:
            logger.error("Skipping %s: %s", name, e)
            result.add_error(name, str(e), "read")
            return

        problems = requirements.validate(require_container=True)
        if problems:
            for problem in problems:
                logger.error("%s: %s", name, problem)
            result.add_error(name, "; ".join(problems), "validate")
            return

        repo_url = requirements.app.repo_url or self._clone_remote_url(app_dir)
        if not repo_url:
            message = "app.repoURL not set and the clone has no origin remote"
            logger.error("Skipping %s: %s", name, message)
            result.add_error(name, message, "validate")
            return

        enabled = requirements.enabled_modules()
        if not enabled:
            logger.warning("No platform modules required for %s", name)
        modules = order_platform_modules(enabled, mappings)
        if modules and not self.config.platform.config_repo_url:
            message = "platform.config_repo_url must be set to add platform module sources"
            logger.error("Skipping %s: %s", name, message)
            result.add_error(name, message, "validate")
            return

        if not requirements.environments:
            logger.warning("No environments defined for %s, using default: dev", name)
            result.warnings.append(f"{name}: no environments defined, using dev")

        self._registries.add(requirements.container.registry)

        for environment in requirements.effective_environments:
            result.environments += 1
            profile = resolve_environment(environment, convention=TagConvention.COMMIT_SHA)
            context = {
                "app_name": name,
                "app": requirements.app,
                "environment": environment,
                "release_name": f"{name}-{environment}".lower(),
                "profile": profile,
                "image_alias": name.lower(),
                "image_repository": requirements.image_repository,
                "modules": modules,
                "repo_url": repo_url,
                "chart_path": self.chart_path(requirements),
                "project": requirements.app.tenant or self.config.platform.project,
                "platform": self.config.platform,
                "generated_at": generated_at(),
            }
            output = application_path(self.applications_dir, name, environment)
            self._write_application(
                "application-modules.yaml.j2", context, output, name, result, apply
            )

    # =========================================================================
    # Output and apply
    # =========================================================================

    def _write_application(
        self,
        template_name: str,
        context: dict[str, Any],
        output: Path,
        subject: str,
        result: GenerationResult,
        apply: bool,
    ) -> None:
        try:
            self.renderer.render_to_file(template_name, context, output)
        except RenderError as e:
            logger.error("Failed to render %s: %s", output, e)
            result.add_error(subject, str(e), "render")
            return

        result.applications_generated += 1
        result.generated_files.append(output)
        logger.success("Generated: %s", output)

        if apply:
            self._apply(output, subject, result)

    def _apply(self, manifest: Path, subject: str, result: GenerationResult) -> bool:
        try:
            self.kubectl.apply(manifest)
        except (ToolExecutionError, ToolNotAvailableError) as e:
            logger.error("Failed to apply %s: %s", manifest, e)
            result.add_error(subject, str(e), "apply")
            return False
        result.applied.append(manifest)
        logger.success("Applied: %s", manifest)
        return True

    def write_image_updater_config(self) -> Path:
        """Render the Image Updater ConfigMap for the registries seen in this run."""
        output = self.root / self.config.paths.image_updater_config
        context = {
            "platform": self.config.platform,
            "registries": image_updater_registries(self._registries),
            "interval": "300s",
        }
        self.renderer.render_to_file("image-updater-config.yaml.j2", context, output)
        logger.success("Created ArgoCD Image Updater configuration: %s", output)
        return output

    def apply_image_updater_config(self, result: GenerationResult) -> None:
        """Write, apply and reload the Image Updater configuration.

        A failed restart is only a warning: the Image Updater may not be
        installed yet.
        """
        try:
            config_file = self.write_image_updater_config()
        except RenderError as e:
            logger.error("Failed to render Image Updater configuration: %s", e)
            result.add_error("image-updater", str(e), "render")
            return

        if not self._apply(config_file, "image-updater", result):
            return

        namespace = self.config.platform.argocd_namespace
        try:
            self.kubectl.rollout_restart(IMAGE_UPDATER_DEPLOYMENT, namespace)
            logger.success("Restarted ArgoCD Image Updater")
        except (ToolExecutionError, ToolNotAvailableError) as e:
            logger.warning("Failed to restart ArgoCD Image Updater (may not be installed yet): %s", e)
            result.warnings.append(f"Image Updater restart failed: {e}")

    def _clone_remote_url(self, app_dir: Path) -> str | None:
        try:
            return GitRepository(app_dir).remote_url()
        except (ToolExecutionError, ToolNotAvailableError) as e:
            logger.debug("Could not read origin remote of %s: %s", app_dir, e)
            return None

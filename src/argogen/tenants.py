"""Tenant onboarding.

Reads the tenant sources file, optionally discovers tenants named by
application repositories, and provisions every tenant that has no ArgoCD
AppProject yet by applying the tenant Terraform configuration with a
per-tenant variables file.
"""

import tempfile
from pathlib import Path

import httpx

from argogen.config import ArgogenConfig
from argogen.errors import (
    GitHubError,
    RenderError,
    ToolExecutionError,
    ToolNotAvailableError,
)
from argogen.github.client import GitHubClient
from argogen.models.requirements import REQUIREMENTS_FILENAME, PlatformRequirements
from argogen.models.result import RunError, TenantRunResult
from argogen.models.source import RepositorySource, read_sources_file
from argogen.models.tenant import DEFAULT_TENANT_ENVIRONMENTS, Tenant, TenantSources
from argogen.templates.renderer import ManifestRenderer
from argogen.tools.kubectl import Kubectl
from argogen.tools.terraform import Terraform
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

AUTO_DISCOVERED_DESCRIPTION = "Auto-discovered tenant"


def discover_tenants(
    sources: TenantSources,
    repositories: list[RepositorySource],
    client: GitHubClient,
) -> tuple[list[str], list[str]]:
    """Merge tenants named in application repositories into the tenant sources.

    For every repository whose requirements file sets ``app.tenant``:
    an existing tenant gets its ``modules`` replaced by the repository's;
    an unknown tenant is appended with the default quotas.

    Repositories that cannot be read are skipped with a warning.

    Args:
        sources: Tenant sources, modified in place
        repositories: Application repositories to scan
        client: Open GitHub client

    Returns:
        Tuple of (added tenant names, updated tenant names)
    """
    added: list[str] = []
    updated: list[str] = []
    quotas = sources.discovery.default_quotas

    for repository in repositories:
        logger.info("Scanning repository: %s", repository.url)
        try:
            text = client.fetch_raw(repository, REQUIREMENTS_FILENAME)
        except (GitHubError, httpx.HTTPError) as e:
            logger.warning("Could not fetch %s from %s: %s", REQUIREMENTS_FILENAME, repository.url, e)
            continue
        if text is None:
            logger.warning("Could not fetch %s from %s", REQUIREMENTS_FILENAME, repository.url)
            continue

        try:
            requirements = PlatformRequirements.from_yaml(text)
        except ValueError as e:
            logger.warning("Ignoring %s: %s", repository.url, e)
            continue

        tenant_name = requirements.app.tenant
        if not tenant_name:
            continue

        logger.info("Found tenant '%s' in repository (org: %s)", tenant_name, repository.owner)
        existing = sources.get(tenant_name)
        if existing is not None:
            existing.modules = list(requirements.modules)
            if tenant_name not in updated:
                updated.append(tenant_name)
            logger.success("Updated modules for tenant '%s'", tenant_name)
            continue

        sources.tenants.append(
            Tenant(
                name=tenant_name,
                git_org=repository.owner,
                description=AUTO_DISCOVERED_DESCRIPTION,
                cpu_quota=quotas.get("cpu_quota", ""),
                memory_quota=quotas.get("memory_quota", ""),
                storage_quota=quotas.get("storage_quota", ""),
                gpu_quota=quotas.get("gpu_quota", "0"),
                environments=list(DEFAULT_TENANT_ENVIRONMENTS),
                modules=list(requirements.modules),
            )
        )
        added.append(tenant_name)
        logger.success("Added tenant '%s' with default quotas", tenant_name)

    return added, updated


class TenantOnboarder:
    """Provisions tenants through Terraform.

    Usage:
        onboarder = TenantOnboarder(config, root=Path("."))
        result = onboarder.run()
    """

    def __init__(
        self,
        config: ArgogenConfig,
        root: Path,
        kubectl: Kubectl | None = None,
        terraform: Terraform | None = None,
        renderer: ManifestRenderer | None = None,
    ) -> None:
        self.config = config
        self.root = root
        self.sources_path = root / config.paths.tenant_sources
        self.terraform_dir = root / config.paths.tenant_terraform_dir
        self.kubectl = kubectl or Kubectl(cwd=root, timeout=config.ci.timeout)
        self.terraform = terraform or Terraform(self.terraform_dir, timeout=max(config.ci.timeout, 600))
        self.renderer = renderer or ManifestRenderer()

    def check_prerequisites(self) -> None:
        """Verify tools, cluster access and input paths.

        Raises:
            ToolNotAvailableError: If kubectl or terraform is missing
            ToolExecutionError: If the cluster cannot be reached
            FileNotFoundError: If the tenant sources file or Terraform directory is missing
        """
        for tool in (self.kubectl, self.terraform):
            if not tool.check_available():
                raise ToolNotAvailableError(tool.executable)

        if not self.kubectl.cluster_reachable():
            raise ToolExecutionError(
                "kubectl",
                "Cannot connect to Kubernetes cluster. Ensure your KUBECONFIG is set correctly.",
            )

        if not self.sources_path.is_file():
            raise FileNotFoundError(f"Tenant sources file not found: {self.sources_path}")

        if not self.terraform_dir.is_dir():
            raise FileNotFoundError(
                f"Terraform onboarding directory not found: {self.terraform_dir}"
            )

        logger.success("All prerequisites met")

    def run(
        self,
        discover: bool | None = None,
        client: GitHubClient | None = None,
    ) -> TenantRunResult:
        """Onboard every tenant in the tenant sources file.

        Args:
            discover: Force discovery on or off (None follows the file's
                ``discovery`` settings)
            client: GitHub client for discovery (created from config if None)

        Returns:
            TenantRunResult with onboarded, skipped and failed tenants

        Raises:
            ToolNotAvailableError, ToolExecutionError, FileNotFoundError:
                If prerequisites fail or ``terraform init`` fails
            ValueError: If the tenant sources file is malformed
        """
        self.check_prerequisites()
        sources = TenantSources.load(self.sources_path)

        logger.info("Initializing Terraform in %s", self.terraform_dir)
        self.terraform.init(upgrade=True)
        logger.success("Terraform initialized")

        result = TenantRunResult()

        settings = sources.discovery
        if discover is None:
            discover = settings.enabled and settings.scan_application_repos
        if discover:
            result.discovered = self._discover(sources, client)

        if not sources.tenants:
            logger.warning("No tenants found in %s", self.sources_path)
            return result

        total = len(sources.tenants)
        logger.info("Found %d tenant(s) to process", total)
        for index, tenant in enumerate(sources.tenants, start=1):
            logger.info("[%d/%d] Processing tenant: %s", index, total, tenant.name)
            self.onboard_tenant(tenant, result)

        return result

    def _discover(self, sources: TenantSources, client: GitHubClient | None = None) -> list[str]:
        sources_file = self.root / self.config.paths.sources_file
        if not sources_file.is_file():
            logger.warning("Application sources file not found: %s", sources_file)
            return []

        repositories = read_sources_file(sources_file, self.config.github.default_branch)
        logger.info("Discovering tenants from %d application repositories", len(repositories))
        with client or GitHubClient(self.config.github) as github:
            added, updated = discover_tenants(sources, repositories, github)

        if added or updated:
            sources.save(self.sources_path)
            logger.info("Wrote %s", self.sources_path)
        return added

    def onboard_tenant(self, tenant: Tenant, result: TenantRunResult) -> None:
        """Provision one tenant unless its AppProject already exists."""
        namespace = self.config.platform.argocd_namespace
        if self.kubectl.resource_exists("appproject", tenant.name, namespace):
            logger.success("Tenant '%s' already exists in the cluster, skipping", tenant.name)
            result.skipped.append(tenant.name)
            return

        logger.info("New tenant '%s', applying Terraform configuration", tenant.name)
        try:
            tfvars = self.renderer.render(
                "tenant.tfvars.j2", {"tenant": tenant}, validate_yaml=False
            )
            with tempfile.TemporaryDirectory(prefix="argogen-tenant-") as temp_dir:
                var_file = Path(temp_dir) / f"{tenant.name}.tfvars"
                var_file.write_text(tfvars, encoding="utf-8")
                self.terraform.apply(var_file)
        except (RenderError, ToolExecutionError, ToolNotAvailableError) as e:
            logger.error("Failed to onboard tenant %s: %s", tenant.name, e)
            result.failed.append(RunError(subject=tenant.name, message=str(e), stage="terraform"))
            return

        logger.success("Successfully onboarded tenant: %s", tenant.name)
        result.onboarded.append(tenant.name)
        self._verify(tenant)

    def _verify(self, tenant: Tenant) -> None:
        namespace = self.config.platform.argocd_namespace
        if self.kubectl.resource_exists("appproject", tenant.name, namespace):
            logger.success("ArgoCD project created for %s", tenant.name)
        else:
            logger.warning("ArgoCD project not found for %s", tenant.name)

        selector = f"{self.config.platform.tenant_label}={tenant.name}"
        try:
            count = self.kubectl.count_namespaces(selector)
        except (ToolExecutionError, ToolNotAvailableError) as e:
            logger.warning("Could not count tenant namespaces (%s): %s", selector, e)
            return
        logger.success("Created %d tenant namespaces for %s", count, tenant.name)

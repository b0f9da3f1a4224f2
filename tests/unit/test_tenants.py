"""Unit tests for tenant discovery and onboarding."""

import shutil
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from argogen.config import ArgogenConfig
from argogen.errors import ToolExecutionError, ToolNotAvailableError
from argogen.github.client import GitHubClient
from argogen.models.source import RepositorySource
from argogen.models.tenant import Tenant, TenantSources
from argogen.tenants import TenantOnboarder, discover_tenants

BILLING = RepositorySource(url="https://github.com/acme/billing", branch="develop", name="billing")


class TestTenantSources:
    def test_load_and_save_keep_unknown_keys(self, tmp_path: Path, tenant_sources_file: Path) -> None:
        path = tmp_path / "tenant-sources.yml"
        data = yaml.safe_load(tenant_sources_file.read_text())
        data["tenants"][0]["owner"] = "alice"
        data["version"] = 2
        path.write_text(yaml.safe_dump(data, sort_keys=False))

        sources = TenantSources.load(path)
        sources.save(path)

        saved = yaml.safe_load(path.read_text())
        assert list(saved) == ["tenants", "discovery", "version"]
        assert saved["version"] == 2
        assert saved["tenants"][0]["name"] == "commerce"
        assert saved["tenants"][0]["owner"] == "alice"
        assert saved["discovery"]["default_quotas"]["memory_quota"] == "4Gi"

    def test_tenant_requires_name(self) -> None:
        with pytest.raises(ValueError, match="missing 'name'"):
            Tenant.from_dict({"git_org": "acme"})

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "tenant-sources.yml"
        path.write_text("- commerce\n")

        with pytest.raises(ValueError, match="must contain a mapping"):
            TenantSources.load(path)

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "tenant-sources.yml"
        path.write_text("tenants: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML in tenant sources"):
            TenantSources.load(path)


class TestDiscoverTenants:
    """Tests for discover_tenants through the fake GitHub."""

    def test_adds_unknown_tenant_with_default_quotas(
        self, fake_github, tenant_sources_file: Path
    ) -> None:
        fake_github.add_repository(
            BILLING,
            {
                "platform-requirements.yml": (
                    "app:\n  name: billing\n  tenant: finance\nmodules:\n  - name: redis\n"
                )
            },
        )
        sources = TenantSources.load(tenant_sources_file)

        with GitHubClient() as client:
            added, updated = discover_tenants(sources, [BILLING], client)

        assert added == ["finance"]
        assert updated == []
        tenant = sources.get("finance")
        assert tenant.git_org == "acme"
        assert tenant.description == "Auto-discovered tenant"
        assert tenant.cpu_quota == "2"
        assert tenant.memory_quota == "4Gi"
        assert tenant.environments == ["dev", "staging", "production"]
        assert tenant.modules == [{"name": "redis"}]

    def test_updates_modules_of_known_tenant(
        self, fake_github, shop_source, requirements_text: str, tenant_sources_file: Path
    ) -> None:
        fake_github.add_repository(shop_source, {"platform-requirements.yml": requirements_text})
        sources = TenantSources.load(tenant_sources_file)

        with GitHubClient() as client:
            added, updated = discover_tenants(sources, [shop_source], client)

        assert added == []
        assert updated == ["commerce"]
        commerce = sources.get("commerce")
        assert commerce.modules == [{"name": "postgres", "size": "small"}]
        assert commerce.cpu_quota == "4"

    def test_skips_unreadable_and_tenantless(
        self, fake_github, shop_source, tenant_sources_file: Path
    ) -> None:
        fake_github.add_repository(shop_source, {"platform-requirements.yml": "app:\n  name: shop\n"})
        sources = TenantSources.load(tenant_sources_file)

        with GitHubClient() as client:
            added, updated = discover_tenants(sources, [shop_source, BILLING], client)

        assert (added, updated) == ([], [])
        assert [t.name for t in sources.tenants] == ["commerce"]


class TestTenantOnboarder:
    """Tests for TenantOnboarder with mocked kubectl and terraform."""

    @pytest.fixture
    def root(self, config_repo: Path, tenant_sources_file: Path) -> Path:
        tenants_dir = config_repo / "tenants"
        (tenants_dir / "infrastructure").mkdir(parents=True)
        shutil.copyfile(tenant_sources_file, tenants_dir / "tenant-sources.yml")
        return config_repo

    @pytest.fixture
    def kubectl(self) -> MagicMock:
        kubectl = MagicMock()
        kubectl.check_available.return_value = True
        kubectl.cluster_reachable.return_value = True
        kubectl.resource_exists.return_value = False
        kubectl.count_namespaces.return_value = 3
        return kubectl

    @pytest.fixture
    def terraform(self) -> MagicMock:
        terraform = MagicMock()
        terraform.check_available.return_value = True
        return terraform

    @pytest.fixture
    def onboarder(
        self, config: ArgogenConfig, root: Path, kubectl: MagicMock, terraform: MagicMock
    ) -> TenantOnboarder:
        return TenantOnboarder(config, root, kubectl=kubectl, terraform=terraform)

    def test_onboards_new_tenant(self, onboarder: TenantOnboarder, terraform: MagicMock) -> None:
        tfvars: list[str] = []
        terraform.apply.side_effect = lambda var_file: tfvars.append(var_file.read_text())

        result = onboarder.run(discover=False)

        assert result.success
        assert result.onboarded == ["commerce"]
        terraform.init.assert_called_once_with(upgrade=True)
        assert 'tenant_name    = "commerce"' in tfvars[0]
        assert 'cpu_quota      = "4"' in tfvars[0]

    def test_existing_tenant_skipped(
        self, onboarder: TenantOnboarder, kubectl: MagicMock, terraform: MagicMock
    ) -> None:
        kubectl.resource_exists.return_value = True

        result = onboarder.run(discover=False)

        assert result.skipped == ["commerce"]
        terraform.apply.assert_not_called()
        kubectl.resource_exists.assert_called_with("appproject", "commerce", "argocd")

    def test_terraform_failure_recorded(
        self, onboarder: TenantOnboarder, terraform: MagicMock
    ) -> None:
        terraform.apply.side_effect = ToolExecutionError("terraform", "quota exceeded", exit_code=1)

        result = onboarder.run(discover=False)

        assert not result.success
        assert [(e.subject, e.stage) for e in result.failed] == [("commerce", "terraform")]

    def test_discovery_follows_file_settings(
        self, onboarder: TenantOnboarder, root: Path, fake_github, shop_source, requirements_text: str
    ) -> None:
        fake_github.add_repository(
            BILLING, {"platform-requirements.yml": "app:\n  name: billing\n  tenant: finance\n"}
        )
        fake_github.add_repository(shop_source, {"platform-requirements.yml": requirements_text})

        result = onboarder.run()

        assert result.discovered == ["finance"]
        assert result.onboarded == ["commerce", "finance"]
        saved = TenantSources.load(root / "tenants" / "tenant-sources.yml")
        assert [t.name for t in saved.tenants] == ["commerce", "finance"]

    def test_malformed_sources_stops_before_terraform(
        self, onboarder: TenantOnboarder, root: Path, terraform: MagicMock
    ) -> None:
        (root / "tenants" / "tenant-sources.yml").write_text("tenants: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            onboarder.run(discover=False)

        terraform.init.assert_not_called()

    def test_missing_terraform(self, onboarder: TenantOnboarder, terraform: MagicMock) -> None:
        terraform.check_available.return_value = False
        terraform.executable = "terraform"

        with pytest.raises(ToolNotAvailableError):
            onboarder.run()

    def test_cluster_unreachable(self, onboarder: TenantOnboarder, kubectl: MagicMock) -> None:
        kubectl.cluster_reachable.return_value = False

        with pytest.raises(ToolExecutionError, match="Cannot connect to Kubernetes cluster"):
            onboarder.run()

    def test_missing_sources_file(self, onboarder: TenantOnboarder, root: Path) -> None:
        (root / "tenants" / "tenant-sources.yml").unlink()

        with pytest.raises(FileNotFoundError, match="Tenant sources file not found"):
            onboarder.run()

    def test_missing_terraform_dir(self, onboarder: TenantOnboarder, root: Path) -> None:
        (root / "tenants" / "infrastructure").rmdir()

        with pytest.raises(FileNotFoundError, match="Terraform onboarding directory"):
            onboarder.run()

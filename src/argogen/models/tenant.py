"""Tenant sources model (``tenants/tenant-sources.yml``).

A tenant is a team whose applications get an ArgoCD AppProject, namespaces
and resource quotas provisioned through Terraform.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_TENANT_ENVIRONMENTS = ["dev", "staging", "production"]
TENANT_KEYS = frozenset(
    {
        "name",
        "git_org",
        "description",
        "cpu_quota",
        "memory_quota",
        "storage_quota",
        "gpu_quota",
        "environments",
        "modules",
    }
)


@dataclass
class Tenant:
    """One tenant entry.

    Attributes:
        name: Tenant name (also the AppProject name)
        git_org: GitHub organization owning the tenant's repositories
        description: Free-text description
        cpu_quota: CPU quota per namespace
        memory_quota: Memory quota per namespace
        storage_quota: Storage quota per namespace
        gpu_quota: GPU quota per namespace
        environments: Environments the tenant gets namespaces for
        modules: Tenant module list, passed to Terraform as JSON
        extra: Keys argogen does not use, written back unchanged
    """

    name: str
    git_org: str = ""
    description: str = ""
    cpu_quota: str = ""
    memory_quota: str = ""
    storage_quota: str = ""
    gpu_quota: str = "0"
    environments: list[str] = field(default_factory=lambda: list(DEFAULT_TENANT_ENVIRONMENTS))
    modules: list[Any] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tenant":
        name = data.get("name")
        if not name:
            raise ValueError("Tenant entry is missing 'name'")

        def text(key: str, default: str = "") -> str:
            value = data.get(key)
            return default if value is None else str(value)

        return cls(
            name=str(name),
            git_org=text("git_org"),
            description=text("description"),
            cpu_quota=text("cpu_quota"),
            memory_quota=text("memory_quota"),
            storage_quota=text("storage_quota"),
            gpu_quota=text("gpu_quota", "0"),
            environments=list(data.get("environments") or DEFAULT_TENANT_ENVIRONMENTS),
            modules=list(data.get("modules") or []),
            extra={k: v for k, v in data.items() if k not in TENANT_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "git_org": self.git_org,
            "description": self.description,
            "cpu_quota": self.cpu_quota,
            "memory_quota": self.memory_quota,
            "storage_quota": self.storage_quota,
            "gpu_quota": self.gpu_quota,
            "environments": list(self.environments),
            "modules": list(self.modules),
            **self.extra,
        }


@dataclass
class DiscoverySettings:
    """The ``discovery`` block."""

    enabled: bool = False
    scan_application_repos: bool = False
    default_quotas: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiscoverySettings":
        quotas = data.get("default_quotas") or {}
        return cls(
            enabled=data.get("enabled") is True,
            scan_application_repos=data.get("scan_application_repos") is True,
            default_quotas={str(k): str(v) for k, v in quotas.items() if v is not None},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "scan_application_repos": self.scan_application_repos,
            "default_quotas": dict(self.default_quotas),
        }


@dataclass
class TenantSources:
    """Parsed tenant sources file.

    Unknown top-level keys are kept in ``extra`` and ``save`` writes every key
    back in the order it was read. Comments are not preserved.
    """

    tenants: list[Tenant] = field(default_factory=list)
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)
    key_order: list[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TenantSources":
        data = dict(data or {})
        order = list(data)
        tenants = [Tenant.from_dict(t) for t in data.pop("tenants", None) or []]
        discovery = DiscoverySettings.from_dict(data.pop("discovery", None) or {})
        return cls(tenants=tenants, discovery=discovery, extra=data, key_order=order)

    @classmethod
    def load(cls, path: Path) -> "TenantSources":
        """Load tenant sources from disk.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not valid YAML or not a mapping
        """
        if not path.exists():
            raise FileNotFoundError(f"Tenant sources file not found: {path}")

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in tenant sources {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Tenant sources file must contain a mapping: {path}")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        data = {**self.extra}
        data["tenants"] = [t.to_dict() for t in self.tenants]
        data["discovery"] = self.discovery.to_dict()
        ordered = {key: data.pop(key) for key in self.key_order if key in data}
        return {**ordered, **data}

    def save(self, path: Path) -> None:
        path.write_text(
            yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False),
            encoding="utf-8",
        )

    def get(self, name: str) -> Tenant | None:
        for tenant in self.tenants:
            if tenant.name == name:
                return tenant
        return None

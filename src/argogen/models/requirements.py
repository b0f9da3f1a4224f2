"""Platform requirements file model.

Every application repository carries a ``platform-requirements.yml`` at its
root. It names the application, its container image, the environments it is
deployed to and, optionally, the platform modules, tenant and components it
needs. Everything argogen generates for an application is derived from it.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

REQUIREMENTS_FILENAME = "platform-requirements.yml"

VALID_APP_TYPES = (
    "frontend",
    "backend",
    "api",
    "service",
    "worker",
    "database",
    "fullstack",
)

DEFAULT_ENVIRONMENTS = ["dev"]


def _str_or_none(value: Any) -> str | None:
    """Normalize a YAML scalar: absent, null and empty all become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    """A YAML sequence as a list; a lone scalar or mapping becomes one item."""
    if not value:
        return []
    return value if isinstance(value, list) else [value]


def sanitize_app_name(name: str) -> str:
    """Turn an arbitrary application name into a DNS-safe chart name.

    Lower-cases, replaces every character outside ``[a-z0-9-]`` with ``-``,
    collapses runs of ``-`` and strips leading/trailing ``-``.

    Args:
        name: Raw application name

    Returns:
        Sanitized name
    """
    sanitized = re.sub(r"[^a-z0-9-]", "-", name.lower())
    sanitized = re.sub(r"-+", "-", sanitized)
    return sanitized.strip("-")


@dataclass
class AppSection:
    """The ``app`` block.

    ``chart_path`` is None when ``chartPath`` is absent; generation then uses
    the configured ``github.chart_path``.
    """

    name: str | None = None
    type: str | None = None
    team: str = "development-team"
    port: str | None = None
    chart_path: str | None = None
    tenant: str | None = None
    repo_url: str | None = None
    environment: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppSection":
        return cls(
            name=_str_or_none(data.get("name")),
            type=_str_or_none(data.get("type")),
            team=_str_or_none(data.get("team")) or "development-team",
            port=_str_or_none(data.get("port")),
            chart_path=_str_or_none(data.get("chartPath")),
            tenant=_str_or_none(data.get("tenant")),
            repo_url=_str_or_none(data.get("repoURL")),
            environment=_str_or_none(data.get("environment")),
        )


@dataclass
class ContainerSection:
    """The ``container`` block.

    ``image`` falls back to the application name when it is not given.
    """

    registry: str = "docker.io"
    organization: str | None = None
    image: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContainerSection":
        return cls(
            registry=_str_or_none(data.get("registry")) or "docker.io",
            organization=_str_or_none(data.get("organization")),
            image=_str_or_none(data.get("image")),
        )


@dataclass
class ComponentSection:
    """A ``frontend`` or ``backend`` block used by chart scaffolding."""

    enabled: bool = False
    framework: str = ""
    port: int = 0
    replicas: int = 2
    domain: str | None = None
    health_check: str = "/health"
    database: str = "none"

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        default_framework: str,
        default_port: int,
    ) -> "ComponentSection":
        config = _mapping(data.get("config"))
        return cls(
            enabled=data.get("enabled") is True,
            framework=_str_or_none(data.get("framework")) or default_framework,
            port=int(config.get("port") or default_port),
            replicas=int(config.get("replicas") or 2),
            domain=_str_or_none(config.get("domain")),
            health_check=_str_or_none(config.get("health_check")) or "/health",
            database=_str_or_none(data.get("database")) or "none",
        )


@dataclass
class PlatformRequirements:
    """Parsed ``platform-requirements.yml``.

    Attributes:
        app: Application metadata
        container: Container image coordinates
        environments: Environments to generate (empty means ``dev`` only)
        microservices: Explicit service names (overrides discovery)
        frontend: Frontend component settings
        backend: Backend component settings
        platform_modules: Platform module name to enabled flag
        modules: Tenant module list, passed through verbatim
        raw: The parsed document as loaded
    """

    app: AppSection = field(default_factory=AppSection)
    container: ContainerSection = field(default_factory=ContainerSection)
    environments: list[str] = field(default_factory=list)
    microservices: list[str] = field(default_factory=list)
    frontend: ComponentSection = field(
        default_factory=lambda: ComponentSection(framework="react", port=3000)
    )
    backend: ComponentSection = field(
        default_factory=lambda: ComponentSection(framework="express", port=5000)
    )
    platform_modules: dict[str, bool] = field(default_factory=dict)
    modules: list[Any] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlatformRequirements":
        """Build requirements from a parsed YAML mapping."""
        data = _mapping(data)

        environments = [
            str(env).strip()
            for env in _as_list(data.get("environments"))
            if env is not None and str(env).strip()
        ]

        microservices: list[str] = []
        for entry in _as_list(data.get("microservices")):
            name = _str_or_none(entry.get("name")) if isinstance(entry, dict) else _str_or_none(entry)
            if name:
                microservices.append(name)

        platform = _mapping(data.get("platform"))
        platform_modules = {
            str(name): flag is True for name, flag in _mapping(platform.get("modules")).items()
        }

        modules = _as_list(data.get("modules"))

        return cls(
            app=AppSection.from_dict(_mapping(data.get("app"))),
            container=ContainerSection.from_dict(_mapping(data.get("container"))),
            environments=environments,
            microservices=microservices,
            frontend=ComponentSection.from_dict(_mapping(data.get("frontend")), "react", 3000),
            backend=ComponentSection.from_dict(_mapping(data.get("backend")), "express", 5000),
            platform_modules=platform_modules,
            modules=modules,
            raw=data,
        )

    @classmethod
    def from_yaml(cls, text: str) -> "PlatformRequirements":
        """Parse requirements from YAML text.

        Raises:
            ValueError: If the text is not valid YAML or not a mapping
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {REQUIREMENTS_FILENAME}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"{REQUIREMENTS_FILENAME} must contain a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path) -> "PlatformRequirements":
        """Load requirements from a file on disk."""
        return cls.from_yaml(path.read_text(encoding="utf-8"))

    @property
    def image_name(self) -> str:
        """Container image name (defaults to the application name)."""
        return self.container.image or self.app.name or ""

    @property
    def image_repository(self) -> str:
        """Image repository as used in Helm values and Image Updater annotations.

        Docker Hub images are written ``org/image``; any other registry is
        written with its host prefix.
        """
        path = f"{self.container.organization}/{self.image_name}"
        if self.container.registry in ("docker.io", "registry-1.docker.io"):
            return path
        return f"{self.container.registry}/{path}"

    @property
    def effective_environments(self) -> list[str]:
        return self.environments or list(DEFAULT_ENVIRONMENTS)

    def validate(self, require_container: bool = False) -> list[str]:
        """Validate the requirements.

        Args:
            require_container: Also require ``container.organization``
                (needed to build image references)

        Returns:
            List of error messages (empty if valid)
        """
        errors: list[str] = []

        if not self.app.name:
            errors.append("app.name not defined in platform-requirements.yml")

        if not self.app.type:
            errors.append("app.type not defined in platform-requirements.yml")
        elif self.app.type not in VALID_APP_TYPES:
            errors.append(
                f"Invalid app type: {self.app.type}. "
                f"Must be one of: {', '.join(VALID_APP_TYPES)}"
            )

        if self.app.port is not None and not self.app.port.isdigit():
            errors.append(f"Invalid port: {self.app.port}. Must be numeric")

        if require_container and not self.container.organization:
            errors.append("container.organization not defined in platform-requirements.yml")

        return errors

    def enabled_modules(self) -> list[str]:
        """Platform modules whose flag is true, in file order."""
        return [name for name, enabled in self.platform_modules.items() if enabled]

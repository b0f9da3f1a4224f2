"""argogen settings.

Settings live in YAML; the CLI only overrides the handful of things that
change per run (--root, --apply, --ci). String values may reference the
environment as ${VAR}.

An explicit --config file wins; otherwise .argogen/config.yaml and then
argogen.yaml are looked up under the config repository root.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# =============================================================================
# Configuration Dataclasses
# =============================================================================


def _require_http_url(value: str, setting: str) -> None:
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"{setting} must be an http(s) URL (got {value!r})")


@dataclass
class GitHubConfig:
    """GitHub API access.

    Attributes:
        api_url: REST API base URL (GitHub Enterprise uses https://host/api/v3)
        raw_url: Raw content host used for plain file fetches
        token: Personal access token (falls back to $GITHUB_TOKEN)
        timeout: Request timeout in seconds
        default_branch: Branch used when a source URL names none
        chart_path: Default Helm chart location inside application repositories
    """

    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    token: str | None = None
    timeout: float = 30.0
    default_branch: str = "main"
    chart_path: str = "deploy/helm"

    def __post_init__(self) -> None:
        """Validate GitHub configuration."""
        _require_http_url(self.api_url, "github.api_url")
        _require_http_url(self.raw_url, "github.raw_url")
        self.api_url = self.api_url.rstrip("/")
        self.raw_url = self.raw_url.rstrip("/")

        if self.timeout <= 0:
            raise ValueError(f"github.timeout must be positive (got {self.timeout})")

        if not self.token:
            self.token = os.environ.get("GITHUB_TOKEN") or None


@dataclass
class PathsConfig:
    """Locations inside the config repository, relative to its root."""

    sources_file: str = "application-sources.txt"
    applications_dir: str = "applications"
    local_repos_dir: str = "local-app-repos"
    module_mappings: str = "cluster-config/config/module-mappings.yml"
    charts_dir: str = "apps"
    landing_zone_dir: str = "landing-zone/applications"
    tenant_sources: str = "tenants/tenant-sources.yml"
    tenant_terraform_dir: str = "tenants/infrastructure"
    image_updater_config: str = "argocd-image-updater-config.yaml"


@dataclass
class PlatformConfig:
    """Values stamped into every generated ArgoCD resource.

    Attributes:
        project: AppProject used when an application names no tenant
        part_of: Value of the app.kubernetes.io/part-of label
        annotation_prefix: Prefix for argogen's own annotations
        argocd_namespace: Namespace ArgoCD and the Image Updater run in
        destination_server: Cluster API server applications deploy to
        config_repo_url: URL of this config repository (platform module charts)
        write_back_secret: <namespace>/<secret> the Image Updater writes back with
        tenant_label: Namespace label that marks tenant ownership
    """

    project: str = "platform-applications"
    part_of: str = "platform-applications"
    annotation_prefix: str = "argogen.io"
    argocd_namespace: str = "argocd"
    destination_server: str = "https://kubernetes.default.svc"
    config_repo_url: str = ""
    write_back_secret: str = "argocd/argocd-image-updater-git"
    tenant_label: str = "platform.io/tenant"

    def __post_init__(self) -> None:
        """Validate platform configuration."""
        if not self.annotation_prefix:
            raise ValueError("platform.annotation_prefix must not be empty")

        _require_http_url(self.destination_server, "platform.destination_server")

        if "/" not in self.write_back_secret:
            raise ValueError(
                "platform.write_back_secret must be <namespace>/<secret> "
                f"(got {self.write_back_secret!r})"
            )


@dataclass
class OnboardingConfig:
    """Defaults for Helm chart scaffolding."""

    organization: str = "example-org"
    image_registry: str = "ghcr.io"
    domain: str = "example.com"
    maintainer_email: str = "team@example.com"
    workflows_repo: str = "example-org/platform-workflows"
    image_pull_secret: str = "ghcr-secret"


@dataclass
class PublishConfig:
    """Branch and remote that generated manifests are committed to."""

    target_branch: str = "testing"
    remote: str = "origin"

    def __post_init__(self) -> None:
        """Validate publish configuration."""
        if not self.target_branch:
            raise ValueError("publish.target_branch must not be empty")


@dataclass
class CIConfig:
    """Behaviour under --ci.

    Attributes:
        fail_on_warning: Treat warnings as failures (exit 1 instead of 2)
        json_output: Emit JSON log lines even without --ci
        timeout: Seconds an external tool may run before it is killed
    """

    fail_on_warning: bool = False
    json_output: bool = False
    timeout: int = 300

    def __post_init__(self) -> None:
        """Validate CI configuration."""
        if self.timeout <= 0:
            raise ValueError(f"ci.timeout must be positive (got {self.timeout})")


@dataclass
class ArgogenConfig:
    """Top-level argogen configuration."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)
    onboarding: OnboardingConfig = field(default_factory=OnboardingConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    ci: CIConfig = field(default_factory=CIConfig)

    config_path: Path | None = field(default=None, repr=False, compare=False)


# =============================================================================
# Environment Variable Substitution
# =============================================================================

_ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")


def _expand(match: re.Match[str]) -> str:
    name = match.group(1)
    if name not in os.environ:
        raise ValueError(f"Environment variable not set: {name}")
    return os.environ[name]


def substitute_env_vars(value: Any) -> Any:
    """Expand ``${VAR}`` references anywhere in a loaded YAML document.

    Strings are expanded, mappings and lists are walked, everything else is
    returned unchanged. A reference to an unset variable raises ValueError.
    """
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(_expand, value)
    if isinstance(value, dict):
        return {key: substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    return value


# =============================================================================
# Config File Discovery
# =============================================================================

CONFIG_LOCATIONS = (Path(".argogen") / "config.yaml", Path("argogen.yaml"))


def find_config_file(start_path: Path | None = None) -> Path | None:
    """First of CONFIG_LOCATIONS that exists under ``start_path`` (default: cwd)."""
    base = (start_path or Path.cwd()).resolve()
    return next((base / loc for loc in CONFIG_LOCATIONS if (base / loc).exists()), None)


# =============================================================================
# Config Loading
# =============================================================================

_SECTIONS: dict[str, type] = {
    "github": GitHubConfig,
    "paths": PathsConfig,
    "platform": PlatformConfig,
    "onboarding": OnboardingConfig,
    "publish": PublishConfig,
    "ci": CIConfig,
}


def load_config_from_dict(data: dict[str, Any]) -> ArgogenConfig:
    """Build an ArgogenConfig from parsed YAML.

    Missing sections keep their defaults. Unknown keys inside a section are
    rejected so that typos surface early.
    """
    data = substitute_env_vars(data)

    sections: dict[str, Any] = {}
    for name, section_cls in _SECTIONS.items():
        raw = data.get(name)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        try:
            sections[name] = section_cls(**raw)
        except TypeError as e:
            raise ValueError(f"Invalid key in config section '{name}': {e}") from e

    return ArgogenConfig(**sections)


def load_config(config_path: Path | None = None, start_path: Path | None = None) -> ArgogenConfig:
    """Load the configuration for a run.

    An explicit ``config_path`` must exist. Without one the standard
    locations under ``start_path`` are searched, and defaults are used when
    none of them exists.

    Raises:
        FileNotFoundError: If ``config_path`` is given but missing
        ValueError: If the file is not a valid YAML mapping or holds an invalid setting
    """
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    path = config_path or find_config_file(start_path)
    if path is None:
        return ArgogenConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")

    config = load_config_from_dict(data)
    config.config_path = path
    return config


def create_default_config() -> str:
    """Commented YAML written by `argogen init`."""
    return '''# argogen configuration

# GitHub API access
github:
  api_url: "https://api.github.com"
  raw_url: "https://raw.githubusercontent.com"
  # token: "${GITHUB_TOKEN}"   # falls back to $GITHUB_TOKEN when omitted
  timeout: 30
  default_branch: "main"
  chart_path: "deploy/helm"

# Locations inside this config repository
paths:
  sources_file: "application-sources.txt"
  applications_dir: "applications"
  local_repos_dir: "local-app-repos"
  module_mappings: "cluster-config/config/module-mappings.yml"
  charts_dir: "apps"
  landing_zone_dir: "landing-zone/applications"
  tenant_sources: "tenants/tenant-sources.yml"
  tenant_terraform_dir: "tenants/infrastructure"
  image_updater_config: "argocd-image-updater-config.yaml"

# Values stamped into generated ArgoCD resources
platform:
  project: "platform-applications"
  part_of: "platform-applications"
  annotation_prefix: "argogen.io"
  argocd_namespace: "argocd"
  destination_server: "https://kubernetes.default.svc"
  # config_repo_url: "https://github.com/example-org/config-repo.git"
  write_back_secret: "argocd/argocd-image-updater-git"
  tenant_label: "platform.io/tenant"

# Helm chart scaffolding defaults (argogen onboard)
onboarding:
  organization: "example-org"
  image_registry: "ghcr.io"
  domain: "example.com"
  maintainer_email: "team@example.com"
  workflows_repo: "example-org/platform-workflows"
  image_pull_secret: "ghcr-secret"

# Where `argogen publish` commits generated manifests
publish:
  target_branch: "testing"
  remote: "origin"

# Behaviour under --ci
ci:
  fail_on_warning: false
  json_output: false
  timeout: 300
'''

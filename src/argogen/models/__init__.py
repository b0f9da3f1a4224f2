"""argogen data models.

This module exports the core entities used throughout the application:
- RepositorySource: Application repository listed in the sources file
- PlatformRequirements: Parsed platform-requirements.yml
- EnvironmentProfile: How an environment tracks images and revisions
- TenantSources / Tenant: Parsed tenant-sources.yml
- GenerationResult / TenantRunResult: Batch run outcomes
"""

from argogen.models.environment import (
    EnvironmentProfile,
    TagConvention,
    expected_image_tag,
    resolve_environment,
)
from argogen.models.requirements import PlatformRequirements, sanitize_app_name
from argogen.models.result import GenerationResult, RunError, TenantRunResult
from argogen.models.source import RepositorySource, parse_repo_url, read_sources_file
from argogen.models.tenant import DiscoverySettings, Tenant, TenantSources

__all__ = [
    "RepositorySource",
    "parse_repo_url",
    "read_sources_file",
    "PlatformRequirements",
    "sanitize_app_name",
    "EnvironmentProfile",
    "TagConvention",
    "resolve_environment",
    "expected_image_tag",
    "Tenant",
    "TenantSources",
    "DiscoverySettings",
    "GenerationResult",
    "TenantRunResult",
    "RunError",
]

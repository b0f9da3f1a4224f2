"""Repository probing through the GitHub API.

Decides whether a repository can be deployed and which services it
consists of, without cloning it.
"""

from argogen.errors import DiscoveryError
from argogen.github.client import GitHubClient
from argogen.models.requirements import REQUIREMENTS_FILENAME, PlatformRequirements
from argogen.models.source import RepositorySource
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

SINGLE_SERVICE_NAME = "app"
SHARED_DIRECTORY = "shared"


def validate_repository_structure(
    client: GitHubClient,
    source: RepositorySource,
    chart_path: str = "deploy/helm",
) -> list[str]:
    """Check that a repository has the files generation needs.

    Args:
        client: Open GitHub client
        source: Repository and branch
        chart_path: Helm chart directory inside the repository

    Returns:
        List of problems (empty if the structure is valid)
    """
    problems: list[str] = []

    if not client.file_exists(source, REQUIREMENTS_FILENAME):
        problems.append(
            f"{REQUIREMENTS_FILENAME} not found in {source.url} (branch: {source.branch})"
        )

    chart_file = f"{chart_path.strip('/')}/Chart.yaml"
    if not client.file_exists(source, chart_file):
        problems.append(
            f"Helm chart ({chart_file}) not found in {source.url} (branch: {source.branch})"
        )

    return problems


def discover_microservices(
    client: GitHubClient,
    source: RepositorySource,
    requirements: PlatformRequirements,
) -> list[str]:
    """Find the services an application is built from.

    Resolution order:
    1. The explicit ``microservices`` list of the requirements file
    2. ``src/<dir>`` directories (except ``shared``) that contain a Dockerfile
    3. A single service named ``app`` when there is no ``src/`` directory, or
       when no ``src/`` directory qualifies but the root has a Dockerfile

    Args:
        client: Open GitHub client
        source: Repository and branch
        requirements: Parsed requirements of the repository

    Returns:
        Service names, in requirements or API listing order

    Raises:
        DiscoveryError: If directories exist under src/ but no Dockerfile is found
    """
    if requirements.microservices:
        logger.info("Using explicitly defined microservices from %s", REQUIREMENTS_FILENAME)
        return list(requirements.microservices)

    directories = client.list_directories(source, "src")
    if not directories:
        logger.info("No src/ directory found, assuming single-service application")
        return [SINGLE_SERVICE_NAME]

    services: list[str] = []
    for directory in directories:
        if directory == SHARED_DIRECTORY:
            continue
        if client.file_exists(source, f"src/{directory}/Dockerfile"):
            logger.info("Found microservice: %s (has Dockerfile)", directory)
            services.append(directory)
        else:
            logger.warning("Directory src/%s has no Dockerfile, skipping", directory)

    if services:
        logger.info("Discovered %d microservice(s): %s", len(services), ", ".join(services))
        return services

    if client.file_exists(source, "Dockerfile"):
        logger.info("Single-service application detected (root Dockerfile)")
        return [SINGLE_SERVICE_NAME]

    raise DiscoveryError(f"No Dockerfiles found in src/ directories or root of {source.url}")

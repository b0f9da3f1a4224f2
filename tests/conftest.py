"""Shared pytest fixtures for argogen tests.

Fixtures are organized by category:
- Path fixtures: requirements, module mappings and tenant sources files
- Configuration fixtures: ArgogenConfig instances and config repositories
- GitHub fixtures: an in-memory GitHub served through respx
"""

import base64
import logging
import shutil
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
import respx
import yaml

from argogen.config import ArgogenConfig, PlatformConfig
from argogen.models.source import RepositorySource

# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True)
def reset_argogen_handlers() -> Iterator[None]:
    """Drop handlers the CLI attached to a runner stream that is now closed."""
    yield
    logging.getLogger("argogen").handlers.clear()


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def requirements_file(fixtures_dir: Path) -> Path:
    """Multi-service fullstack platform-requirements.yml."""
    return fixtures_dir / "platform-requirements.yml"


@pytest.fixture
def requirements_text(requirements_file: Path) -> str:
    return requirements_file.read_text(encoding="utf-8")


@pytest.fixture
def module_mappings_file(fixtures_dir: Path) -> Path:
    return fixtures_dir / "module-mappings.yml"


@pytest.fixture
def tenant_sources_file(fixtures_dir: Path) -> Path:
    return fixtures_dir / "tenant-sources.yml"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config() -> ArgogenConfig:
    """Default configuration with a config repository URL set."""
    return ArgogenConfig(
        platform=PlatformConfig(config_repo_url="https://github.com/acme/config-repo.git"),
    )


@pytest.fixture
def config_repo(tmp_path: Path, module_mappings_file: Path) -> Path:
    """Create a config repository root with a sources file and module mappings."""
    root = tmp_path / "config-repo"
    root.mkdir()
    (root / "application-sources.txt").write_text(
        "# application repositories\n"
        "https://github.com/acme/shop\n"
        "\n"
        "https://github.com/acme/billing/tree/develop\n",
        encoding="utf-8",
    )
    mappings = root / "cluster-config" / "config" / "module-mappings.yml"
    mappings.parent.mkdir(parents=True)
    shutil.copyfile(module_mappings_file, mappings)
    return root


@pytest.fixture
def local_clone(config_repo: Path, requirements_text: str) -> Path:
    """A local clone of the shop application under local-app-repos/."""
    clone = config_repo / "local-app-repos" / "shop"
    clone.mkdir(parents=True)
    data = yaml.safe_load(requirements_text)
    data["app"]["repoURL"] = "https://github.com/acme/shop"
    (clone / "platform-requirements.yml").write_text(
        yaml.safe_dump(data, sort_keys=False), encoding="utf-8"
    )
    return clone


@pytest.fixture
def shop_source() -> RepositorySource:
    return RepositorySource(url="https://github.com/acme/shop", branch="main", name="shop")


# =============================================================================
# GitHub Fixtures
# =============================================================================


class FakeGitHub:
    """In-memory repositories answered through respx.

    Files are keyed by ``(owner, repo, branch)``. Directories are implied by
    file paths. Anything not registered answers 404.
    """

    def __init__(self) -> None:
        self.repos: dict[tuple[str, str, str], dict[str, str]] = {}

    def add_repository(
        self,
        source: RepositorySource,
        files: dict[str, str],
    ) -> None:
        self.repos[(source.owner, source.name, source.branch)] = dict(files)

    def _entry(self, files: dict[str, str], path: str) -> Any:
        if path in files:
            content = base64.b64encode(files[path].encode("utf-8")).decode("ascii")
            return {"type": "file", "name": path.rsplit("/", 1)[-1], "content": content}

        prefix = path.rstrip("/") + "/"
        children: dict[str, str] = {}
        for file_path in files:
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            name, _, deeper = rest.partition("/")
            children[name] = "dir" if deeper else "file"
        if not children:
            return None
        return [{"name": name, "type": kind} for name, kind in children.items()]

    def api(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if parts == ["rate_limit"]:
            return httpx.Response(200, json={"resources": {"core": {"remaining": 4999}}})

        if len(parts) < 4 or parts[0] != "repos" or parts[3] != "contents":
            return httpx.Response(404, json={"message": "Not Found"})

        owner, repo = parts[1], parts[2]
        path = "/".join(parts[4:])
        branch = request.url.params.get("ref", "main")
        files = self.repos.get((owner, repo, branch))
        entry = self._entry(files, path) if files is not None else None
        if entry is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=entry)

    def raw(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if len(parts) < 4:
            return httpx.Response(404, text="404: Not Found")
        owner, repo, branch = parts[0], parts[1], parts[2]
        path = "/".join(parts[3:])
        files = self.repos.get((owner, repo, branch)) or {}
        if path not in files:
            return httpx.Response(404, text="404: Not Found")
        return httpx.Response(200, text=files[path])


@pytest.fixture
def fake_github() -> Iterator[FakeGitHub]:
    """Route api.github.com and raw.githubusercontent.com to a FakeGitHub."""
    fake = FakeGitHub()
    with respx.mock(assert_all_called=False) as router:
        router.route(host="api.github.com").mock(side_effect=fake.api)
        router.route(host="raw.githubusercontent.com").mock(side_effect=fake.raw)
        yield fake


@pytest.fixture
def shop_files(requirements_text: str) -> dict[str, str]:
    """Repository content of a two-service application with a Helm chart."""
    return {
        "platform-requirements.yml": requirements_text,
        "deploy/helm/Chart.yaml": "apiVersion: v2\nname: shop\nversion: 0.1.0\n",
        "src/frontend/Dockerfile": "FROM node:20\n",
        "src/backend/Dockerfile": "FROM node:20\n",
        "src/shared/utils.js": "module.exports = {}\n",
    }

"""GitHub REST API client.

Reads repository content without cloning:

    GET {api}/repos/{owner}/{repo}/contents/{path}?ref={branch}
    GET {raw}/{owner}/{repo}/{branch}/{path}

A 404 means "absent" and is returned as None. Transport failures and
timeouts are retried with exponential backoff; any other HTTP error is
raised as GitHubError.
"""

import base64
import binascii
import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from argogen.config import GitHubConfig
from argogen.errors import GitHubError
from argogen.models.source import RepositorySource

logger = logging.getLogger(__name__)


class GitHubClient:
    """Synchronous GitHub API client.

    Usage:
        with GitHubClient(config.github) as client:
            text = client.read_file(source, "platform-requirements.yml")
    """

    def __init__(self, config: GitHubConfig | None = None) -> None:
        """Initialize the client.

        The HTTP connection pool is created in ``__enter__``.

        Args:
            config: GitHub configuration (defaults to public github.com)
        """
        self.config = config or GitHubConfig()
        self._client: httpx.Client | None = None

    def __enter__(self) -> "GitHubClient":
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "argogen",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        self._client = httpx.Client(
            base_url=self.config.api_url,
            headers=headers,
            timeout=self.config.timeout,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response | None:
        """GET a URL (relative to the API base or absolute).

        Returns:
            The response, or None on 404

        Raises:
            GitHubError: On any other 4xx/5xx answer
            httpx.TransportError: When the request fails after retries
            RuntimeError: If used outside a ``with`` block
        """
        if self._client is None:
            raise RuntimeError("GitHubClient must be used as a context manager")

        logger.debug("GET %s %s", url, params or "")
        response = self._client.get(url, params=params)

        if response.status_code == 404:
            return None

        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubError(response.status_code, message or response.reason_phrase, str(response.url))

        return response

    def get_contents(self, source: RepositorySource, path: str) -> Any | None:
        """Fetch the contents API entry for a path.

        Args:
            source: Repository and branch
            path: Path inside the repository

        Returns:
            Parsed JSON (a dict for files, a list for directories), or None if absent
        """
        url = f"/repos/{source.api_repo_path}/contents/{path.strip('/')}"
        response = self._get(url, params={"ref": source.branch})
        if response is None:
            return None
        return response.json()

    def read_file(self, source: RepositorySource, path: str) -> str | None:
        """Read a text file through the contents API.

        Returns:
            Decoded UTF-8 content, or None if the path is absent or not a file
        """
        entry = self.get_contents(source, path)
        if not isinstance(entry, dict) or entry.get("type", "file") != "file":
            return None

        content = entry.get("content")
        if content is None:
            return None

        try:
            return base64.b64decode(content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise GitHubError(None, f"Could not decode {path}: {e}", source.url) from e

    def file_exists(self, source: RepositorySource, path: str) -> bool:
        entry = self.get_contents(source, path)
        return isinstance(entry, dict) and entry.get("type", "file") == "file"

    def list_directories(self, source: RepositorySource, path: str) -> list[str]:
        """Names of sub-directories of a path, in API order.

        Returns:
            Directory names (empty if the path is absent or not a directory)
        """
        entries = self.get_contents(source, path)
        if not isinstance(entries, list):
            return []
        return [e["name"] for e in entries if isinstance(e, dict) and e.get("type") == "dir"]

    def fetch_raw(self, source: RepositorySource, path: str) -> str | None:
        """Fetch a file from the raw content host.

        Returns:
            File text, or None if absent
        """
        url = f"{self.config.raw_url}/{source.api_repo_path}/{source.branch}/{path.strip('/')}"
        response = self._get(url)
        if response is None:
            return None
        return response.text

    def check_connectivity(self) -> tuple[bool, str]:
        """Check that the API answers and the token (if any) is accepted.

        Returns:
            Tuple of (reachable, human-readable message)
        """
        try:
            response = self._get("/rate_limit")
        except GitHubError as e:
            return False, str(e)
        except httpx.HTTPError as e:
            return False, f"GitHub API not reachable at {self.config.api_url}: {e}"

        if response is None:
            return False, f"GitHub API not found at {self.config.api_url}"

        core = response.json().get("resources", {}).get("core", {})
        remaining = core.get("remaining")
        auth = "authenticated" if self.config.token else "anonymous"
        if remaining is None:
            return True, f"GitHub API reachable ({auth})"
        return True, f"GitHub API reachable ({auth}, {remaining} requests remaining)"

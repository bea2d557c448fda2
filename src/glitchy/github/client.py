"""Installation-authenticated GitHub API client."""
from __future__ import annotations

from typing import Any

import httpx
import structlog

GITHUB_API = "https://api.github.com"
ACCEPT_JSON = "application/vnd.github.v3+json"
ACCEPT_DIFF = "application/vnd.github.v3.diff"
INSTALLATION_USERNAME = "x-access-token"

logger = structlog.get_logger(__name__)


class InstallationClient:
    """GitHub API client authenticated as one App installation.

    Every request carries HTTP Basic credentials ``x-access-token:<token>``.
    Each instance owns its own connection pool; do not share one across
    unrelated work items.

    Args:
        token: Installation access token.
        timeout: Timeout in seconds for every request.
        base_url: GitHub API root.
    """

    def __init__(
        self,
        token: str,
        timeout: float = 15.0,
        base_url: str = GITHUB_API,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            auth=httpx.BasicAuth(INSTALLATION_USERNAME, token),
            headers={"Accept": ACCEPT_JSON},
            timeout=timeout,
        )

    @property
    def http(self) -> httpx.Client:
        """The underlying httpx client."""
        return self._client

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request and raise on non-success status."""
        resp = self._client.request(method, path, **kwargs)
        resp.raise_for_status()
        return resp

    def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        """Fetch the unified diff of a pull request.

        Returns:
            The raw diff text.
        """
        resp = self.request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{number}",
            headers={"Accept": ACCEPT_DIFF},
        )
        logger.debug("Fetched PR diff", pr=number, size=len(resp.text))
        return resp.text

    def create_review(
        self,
        owner: str,
        repo: str,
        number: int,
        body: str,
        event: str = "COMMENT",
    ) -> dict:
        """Submit a pull request review.

        Args:
            owner: Repository owner login.
            repo: Repository name.
            number: Pull request number.
            body: Review body in Markdown.
            event: Review event (COMMENT, APPROVE, REQUEST_CHANGES).

        Returns:
            GitHub API response as dict.
        """
        resp = self.request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/reviews",
            json={"body": body, "event": event},
        )
        return resp.json()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> InstallationClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

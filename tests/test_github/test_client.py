"""Tests for the installation-authenticated GitHub client."""
from __future__ import annotations

import json
from collections.abc import Iterator

import httpx
import pytest
import respx

from glitchy.github.client import GITHUB_API, InstallationClient

PR_URL = f"{GITHUB_API}/repos/owner/repo/pulls/7"


@pytest.fixture()
def client() -> Iterator[InstallationClient]:
    with InstallationClient("ghs_test", timeout=5.0) as c:
        yield c


class TestGetPullRequestDiff:
    @respx.mock
    def test_requests_diff_media_type(self, client: InstallationClient) -> None:
        route = respx.get(PR_URL).mock(
            return_value=httpx.Response(200, text="diff --git a/x b/x\n+hello\n")
        )
        diff = client.get_pull_request_diff("owner", "repo", 7)

        assert diff.startswith("diff --git")
        assert route.calls.last.request.headers["Accept"] == "application/vnd.github.v3.diff"

    @respx.mock
    def test_not_found_raises(self, client: InstallationClient) -> None:
        respx.get(PR_URL).mock(return_value=httpx.Response(404))
        with pytest.raises(httpx.HTTPStatusError):
            client.get_pull_request_diff("owner", "repo", 7)


class TestCreateReview:
    @respx.mock
    def test_posts_comment_review(self, client: InstallationClient) -> None:
        route = respx.post(f"{PR_URL}/reviews").mock(
            return_value=httpx.Response(200, json={"id": 99, "state": "COMMENTED"})
        )
        result = client.create_review("owner", "repo", 7, "Looks good overall.")

        assert result["id"] == 99
        sent = json.loads(route.calls.last.request.content)
        assert sent == {"body": "Looks good overall.", "event": "COMMENT"}

    @respx.mock
    def test_expired_token_surfaces_as_http_error(self, client: InstallationClient) -> None:
        respx.post(f"{PR_URL}/reviews").mock(
            return_value=httpx.Response(401, json={"message": "Bad credentials"})
        )
        with pytest.raises(httpx.HTTPStatusError):
            client.create_review("owner", "repo", 7, "body")


def test_default_headers() -> None:
    with InstallationClient("ghs_test") as c:
        assert c.http.headers["Accept"] == "application/vnd.github.v3+json"
        assert str(c.http.base_url).rstrip("/") == GITHUB_API

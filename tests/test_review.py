"""Tests for the background review workflow."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from glitchy.claude import ClaudeClient
from glitchy.errors import AuthError, ReviewError, SigningError
from glitchy.github.app import GitHubApp
from glitchy.github.client import GITHUB_API
from glitchy.github.webhook import PullRequestEvent
from glitchy.review import ReviewWorkflow

EVENT = PullRequestEvent(
    action="opened", owner="owner", repo="repo", number=42, installation_id=1234
)


@pytest.fixture()
def gh_client() -> MagicMock:
    client = MagicMock()
    client.get_pull_request_diff.return_value = "diff --git a/x b/x\n+new\n"
    client.create_review.return_value = {"id": 1}
    return client


@pytest.fixture()
def github_app_mock(gh_client: MagicMock) -> MagicMock:
    app = MagicMock(spec=GitHubApp)
    app.get_installation_client.return_value = gh_client
    return app


@pytest.fixture()
def claude_mock() -> MagicMock:
    claude = MagicMock(spec=ClaudeClient)
    claude.review_pull_request.return_value = "Consider handling None."
    return claude


@pytest.fixture()
def workflow(github_app_mock: MagicMock, claude_mock: MagicMock) -> ReviewWorkflow:
    return ReviewWorkflow(github_app=github_app_mock, claude=claude_mock)


class TestProcessPullRequest:
    def test_happy_path(
        self,
        workflow: ReviewWorkflow,
        github_app_mock: MagicMock,
        gh_client: MagicMock,
        claude_mock: MagicMock,
    ) -> None:
        assert workflow.process_pull_request(EVENT) is True

        github_app_mock.get_installation_client.assert_called_once_with(1234)
        gh_client.get_pull_request_diff.assert_called_once_with("owner", "repo", 42)
        claude_mock.review_pull_request.assert_called_once_with("diff --git a/x b/x\n+new\n")
        gh_client.create_review.assert_called_once_with(
            "owner", "repo", 42, "Consider handling None."
        )
        gh_client.__exit__.assert_called_once()

    @pytest.mark.parametrize(
        "error",
        [AuthError("error getting installation token", installation_id=1234), SigningError("bad key")],
    )
    def test_auth_failure_is_contained(
        self,
        workflow: ReviewWorkflow,
        github_app_mock: MagicMock,
        claude_mock: MagicMock,
        error: Exception,
    ) -> None:
        github_app_mock.get_installation_client.side_effect = error

        assert workflow.process_pull_request(EVENT) is False
        claude_mock.review_pull_request.assert_not_called()

    def test_diff_failure_is_contained(
        self, workflow: ReviewWorkflow, gh_client: MagicMock, claude_mock: MagicMock
    ) -> None:
        gh_client.get_pull_request_diff.side_effect = httpx.ConnectError("down")

        assert workflow.process_pull_request(EVENT) is False
        claude_mock.review_pull_request.assert_not_called()
        gh_client.__exit__.assert_called_once()

    def test_claude_failure_is_contained(
        self, workflow: ReviewWorkflow, gh_client: MagicMock, claude_mock: MagicMock
    ) -> None:
        claude_mock.review_pull_request.side_effect = ReviewError("API error (status 500)")

        assert workflow.process_pull_request(EVENT) is False
        gh_client.create_review.assert_not_called()

    def test_post_failure_is_contained(
        self, workflow: ReviewWorkflow, gh_client: MagicMock
    ) -> None:
        request = httpx.Request("POST", f"{GITHUB_API}/repos/owner/repo/pulls/42/reviews")
        gh_client.create_review.side_effect = httpx.HTTPStatusError(
            "422", request=request, response=httpx.Response(422, request=request)
        )
        assert workflow.process_pull_request(EVENT) is False

    def test_undecodable_post_response_is_contained(
        self, workflow: ReviewWorkflow, gh_client: MagicMock
    ) -> None:
        gh_client.create_review.side_effect = json.JSONDecodeError("Expecting value", "", 0)
        assert workflow.process_pull_request(EVENT) is False
        gh_client.__exit__.assert_called_once()


class TestEndToEnd:
    """Full workflow against stubbed GitHub and Claude endpoints."""

    @respx.mock
    def test_posts_review(self, github_app: GitHubApp) -> None:
        respx.post(f"{GITHUB_API}/app/installations/1234/access_tokens").mock(
            return_value=httpx.Response(201, json={"token": "tok-abc"})
        )
        respx.get(f"{GITHUB_API}/repos/owner/repo/pulls/42").mock(
            return_value=httpx.Response(200, text="diff --git a/x b/x\n")
        )
        respx.post("https://api.anthropic.com/v1/messages").mock(
            return_value=httpx.Response(
                200, json={"content": [{"type": "text", "text": "Ship it."}]}
            )
        )
        review_route = respx.post(f"{GITHUB_API}/repos/owner/repo/pulls/42/reviews").mock(
            return_value=httpx.Response(200, json={"id": 5})
        )

        workflow = ReviewWorkflow(
            github_app=github_app,
            claude=ClaudeClient(api_key="sk-ant-test", model="claude-test"),
        )
        assert workflow.process_pull_request(EVENT) is True
        assert review_route.call_count == 1

    @respx.mock
    def test_token_exchange_failure_posts_nothing(self, github_app: GitHubApp) -> None:
        respx.post(f"{GITHUB_API}/app/installations/1234/access_tokens").mock(
            return_value=httpx.Response(500)
        )
        workflow = ReviewWorkflow(
            github_app=github_app,
            claude=ClaudeClient(api_key="sk-ant-test", model="claude-test"),
        )
        assert workflow.process_pull_request(EVENT) is False
        assert len(respx.calls) == 1

    @respx.mock
    def test_non_json_review_response_returns_false(self, github_app: GitHubApp) -> None:
        respx.post(f"{GITHUB_API}/app/installations/1234/access_tokens").mock(
            return_value=httpx.Response(201, json={"token": "tok-abc"})
        )
        respx.get(f"{GITHUB_API}/repos/owner/repo/pulls/42").mock(
            return_value=httpx.Response(200, text="diff --git a/x b/x\n")
        )
        respx.post("https://api.anthropic.com/v1/messages").mock(
            return_value=httpx.Response(
                200, json={"content": [{"type": "text", "text": "Ship it."}]}
            )
        )
        respx.post(f"{GITHUB_API}/repos/owner/repo/pulls/42/reviews").mock(
            return_value=httpx.Response(200, text="<html>proxy error</html>")
        )

        workflow = ReviewWorkflow(
            github_app=github_app,
            claude=ClaudeClient(api_key="sk-ant-test", model="claude-test"),
        )
        assert workflow.process_pull_request(EVENT) is False

"""Background pull request review workflow."""
from __future__ import annotations

import httpx
import structlog

from .claude import ClaudeClient
from .errors import GlitchyError
from .github.app import GitHubApp
from .github.webhook import PullRequestEvent

logger = structlog.get_logger(__name__)


class ReviewWorkflow:
    """Fetches a PR diff, asks Claude for a review, and posts it back.

    Runs after the webhook has already been acknowledged, so failures are
    logged and contained here instead of propagating to the HTTP layer.
    """

    def __init__(self, github_app: GitHubApp, claude: ClaudeClient) -> None:
        self.github_app = github_app
        self.claude = claude

    def process_pull_request(self, event: PullRequestEvent) -> bool:
        """Review one pull request.

        Returns:
            True if a review was posted, False if any step failed.
        """
        log = logger.bind(pr=event.number, repo=event.full_name)
        log.info("Processing pull request")

        try:
            client = self.github_app.get_installation_client(event.installation_id)
        except GlitchyError as e:
            log.error("Failed to get GitHub client", error=str(e))
            return False

        with client:
            try:
                diff = client.get_pull_request_diff(event.owner, event.repo, event.number)
            except httpx.HTTPError as e:
                log.error("Failed to get PR diff", error=str(e))
                return False

            log.info("Requesting review from Claude")
            try:
                review = self.claude.review_pull_request(diff)
            except GlitchyError as e:
                log.error("Failed to get review from Claude", error=str(e))
                return False

            log.info("Submitting review to GitHub")
            try:
                client.create_review(event.owner, event.repo, event.number, review)
            except (httpx.HTTPError, ValueError) as e:
                log.error("Failed to create PR review", error=str(e))
                return False

        log.info("Successfully submitted review")
        return True

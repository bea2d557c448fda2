"""Claude Messages API client for pull request reviews.

API docs: https://docs.anthropic.com/en/api/messages
"""
from __future__ import annotations

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from .errors import ReviewError

logger = structlog.get_logger(__name__)

CLAUDE_API_BASE = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 120.0

REVIEW_PROMPT = """
You are an expert code reviewer examining a GitHub pull request.
Please provide detailed, constructive feedback on this code.
Focus on:

1. Potential bugs, edge cases, or performance issues
2. Code structure and organization
3. Readability and maintainability
4. Security vulnerabilities
5. Adherence to best practices and design patterns

For each issue found, include:
- The exact line numbers
- What the problem is
- Why it's a concern
- A suggested improvement

Here is the diff to review:

{diff}
"""


class ContentBlock(BaseModel):
    type: str
    text: str | None = None


class MessagesResponse(BaseModel):
    """The subset of a Messages API response that reviews rely on."""

    content: list[ContentBlock]

    def first_text(self) -> str:
        """Return the text of the first content block.

        Raises:
            ReviewError: If there is no content or it carries no text.
        """
        if not self.content:
            raise ReviewError("invalid response format: empty content")
        text = self.content[0].text
        if text is None:
            raise ReviewError("text field not found in content")
        return text


def build_prompt(diff: str) -> str:
    """Wrap a diff in the review prompt."""
    return REVIEW_PROMPT.format(diff=diff)


class ClaudeClient:
    """Client for the Claude Messages API.

    Args:
        api_key: Anthropic API key.
        model: Model ID used for reviews.
        max_tokens: Maximum response tokens.
        timeout: Request timeout in seconds.
        base_url: API root.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = CLAUDE_API_BASE,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url
        self._headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def review_pull_request(self, diff: str) -> str:
        """Ask Claude to review a diff.

        Returns:
            The review text.

        Raises:
            ReviewError: If the request fails, the API returns a non-200
                status, or the response does not match the expected schema.
        """
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": build_prompt(diff)}],
        }
        url = f"{self.base_url}/messages"
        logger.debug("Sending request to Claude API", url=url)
        try:
            resp = httpx.post(url, json=payload, headers=self._headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error("Claude API request failed", error=str(e))
            raise ReviewError(f"error making request: {e}") from e

        if resp.status_code != 200:
            logger.error("Claude API returned error", status=resp.status_code)
            raise ReviewError(f"API error (status {resp.status_code}): {resp.text}")

        try:
            message = MessagesResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise ReviewError(f"error decoding response: {e}") from e

        text = message.first_text()
        logger.debug("Parsed Claude API response", response_length=len(text))
        return text

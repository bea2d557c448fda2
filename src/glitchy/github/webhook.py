"""Webhook receiver for GitHub App events (FastAPI)."""
from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import platform
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
SIGNATURE_ALGORITHM = "sha256"

_HANDLED_ACTIONS = {"opened", "synchronize"}


def verify_signature(payload: bytes, signature_header: str, secret: str) -> bool:
    """Verify a GitHub webhook HMAC-SHA256 signature.

    Never raises: every malformed header is reported as ``False``.

    Args:
        payload: Raw request body bytes.
        signature_header: The X-Hub-Signature-256 header value (sha256=...).
        secret: The webhook secret configured in the GitHub App.

    Returns:
        True only if the header is well formed and the digest matches.
    """
    if not signature_header or signature_header.count("=") != 1:
        return False

    algorithm, hex_digest = signature_header.split("=")
    if algorithm != SIGNATURE_ALGORITHM:
        return False

    try:
        signature = binascii.unhexlify(hex_digest)
    except (binascii.Error, ValueError):
        return False

    expected = hmac.new(secret.encode(), payload, hashlib.sha256).digest()
    return hmac.compare_digest(signature, expected)


class WebhookVerifier:
    """Verifies inbound payloads against the process-wide webhook secret.

    Stateless apart from the immutable secret; safe to share across
    concurrent requests.
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, payload: bytes, signature_header: str) -> bool:
        return verify_signature(payload, signature_header, self._secret)

    def __repr__(self) -> str:
        return "WebhookVerifier(secret=<redacted>)"


@dataclass(frozen=True)
class PullRequestEvent:
    """The fields of a ``pull_request`` webhook the review needs."""

    action: str
    owner: str
    repo: str
    number: int
    installation_id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PullRequestEvent:
        """Parse a ``pull_request`` webhook payload.

        Raises:
            ValueError: If a required field is missing or has the wrong type.
        """
        try:
            repository = payload["repository"]
            number = payload["pull_request"]["number"]
            owner = repository["owner"]["login"]
            repo = repository["name"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"missing field in pull_request payload: {e}") from e
        if not isinstance(number, int) or isinstance(number, bool):
            raise ValueError("pull_request.number must be an integer")
        action = payload.get("action", "")
        if not isinstance(action, str):
            raise ValueError("action must be a string")

        installation_id = (payload.get("installation") or {}).get("id")
        return cls(
            action=action,
            owner=owner,
            repo=repo,
            number=number,
            installation_id=installation_id if isinstance(installation_id, int) else None,
        )


class PullRequestHandler(Protocol):
    def process_pull_request(self, event: PullRequestEvent) -> bool: ...


def create_app(
    verifier: WebhookVerifier,
    handler: PullRequestHandler | None = None,
    app_id: int | None = None,
    allowed_repos: list[str] | None = None,
) -> FastAPI:
    """Create a FastAPI application with webhook, health and debug endpoints.

    Args:
        verifier: Checks the signature of every webhook delivery.
        handler: Receives accepted pull request events as a background task
            after the response is sent. If None, events are only acknowledged.
        app_id: GitHub App ID reported by ``/debug``.
        allowed_repos: Optional list of repo full-names to accept events from.
            If None, all repos are accepted.

    Returns:
        A FastAPI application.
    """
    app = FastAPI(title="glitchy webhook")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/debug")
    async def debug(request: Request) -> JSONResponse:
        """Report basic runtime information."""
        logger.debug("Debug endpoint accessed", method=request.method, path=request.url.path)
        return JSONResponse(
            content={
                "status": "running",
                "version": platform.python_version(),
                "app_id": str(app_id) if app_id is not None else "",
                "webhook_configured": "true",
            }
        )

    @app.post("/webhook")
    async def webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
        """Receive, verify and dispatch GitHub webhook events."""
        logger.info("Received webhook", method=request.method, path=request.url.path)
        body = await request.body()
        logger.debug("Payload received", size=len(body))

        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not signature:
            logger.warning("Missing X-Hub-Signature-256 header")
        if not verifier.verify(body, signature):
            logger.error("Invalid signature")
            return Response(content="Invalid signature", status_code=401)

        event_type = request.headers.get(EVENT_HEADER, "")
        logger.info("Processing webhook event", type=event_type)

        if event_type == "ping":
            logger.info("Received ping event")
            return Response(content="Pong!", status_code=200)

        if event_type != "pull_request":
            logger.info("Ignoring non-pull request event", type=event_type)
            return Response(content="ignored", status_code=200)

        try:
            payload = json.loads(body)
            event = PullRequestEvent.from_payload(payload)
        except (ValueError, AttributeError) as e:
            logger.error("Failed to parse webhook", error=str(e))
            return Response(content="Invalid event payload", status_code=400)

        logger.info("Pull request action", action=event.action)
        if event.action not in _HANDLED_ACTIONS:
            logger.info("Ignoring pull request action", action=event.action)
            return Response(content="ignored", status_code=200)

        if allowed_repos and event.full_name not in allowed_repos:
            logger.info("Ignoring repository", repo=event.full_name)
            return Response(content="ignored", status_code=200)

        logger.info(
            "Scheduling pull request review",
            pr=event.number,
            repo=event.full_name,
        )
        if handler is not None:
            background_tasks.add_task(handler.process_pull_request, event)
        return Response(content="accepted", status_code=200)

    return app

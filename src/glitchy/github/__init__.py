"""GitHub App integration: authentication, webhooks, and the installation client."""
from __future__ import annotations

from .app import GitHubApp, Installation, InstallationToken
from .client import InstallationClient
from .webhook import PullRequestEvent, WebhookVerifier, create_app, verify_signature

__all__ = [
    "GitHubApp",
    "Installation",
    "InstallationToken",
    "InstallationClient",
    "PullRequestEvent",
    "WebhookVerifier",
    "create_app",
    "verify_signature",
]

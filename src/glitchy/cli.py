"""CLI entry point for glitchy.

Commands:
  serve               Run the webhook server.
  list-installations  List installations of the GitHub App.
  check               Verify configuration and GitHub App access.
"""
from __future__ import annotations

import sys

import click
import uvicorn
from fastapi import FastAPI
from rich.console import Console
from rich.table import Table

from .claude import ClaudeClient
from .config import Settings, load_settings
from .errors import AuthError, ConfigError, SigningError
from .github.app import GitHubApp
from .github.webhook import WebhookVerifier, create_app
from .log import configure_logging
from .review import ReviewWorkflow

console = Console()


def build_app(settings: Settings, github_app: GitHubApp) -> FastAPI:
    """Wire the webhook server from settings and an initialized GitHub App."""
    workflow = ReviewWorkflow(
        github_app=github_app,
        claude=ClaudeClient(api_key=settings.claude_api_key, model=settings.claude_model),
    )
    return create_app(
        verifier=WebhookVerifier(settings.webhook_secret),
        handler=workflow,
        app_id=settings.credentials.app_id,
        allowed_repos=list(settings.allowed_repos) or None,
    )


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}")
    sys.exit(1)


def _startup() -> tuple[Settings, GitHubApp]:
    """Load settings, configure logging and initialize the GitHub App.

    Exits with status 1 on any configuration error.
    """
    try:
        settings = load_settings()
    except ConfigError as e:
        _fail(str(e))
    configure_logging(settings.log_level, settings.log_json)
    try:
        github_app = GitHubApp.from_settings(settings)
    except ConfigError as e:
        _fail(f"Error initializing GitHub App auth: {e}")
    return settings, github_app


@click.group()
def cli():
    """glitchy: pull request reviews from Claude, as a GitHub App."""
    pass


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind.")
@click.option("--port", type=int, default=None, help="Port to bind. Default: PORT or 8080")
def serve(host, port):
    """Run the webhook server."""
    settings, github_app = _startup()

    issues = settings.validate()
    if issues:
        for issue in issues:
            console.print(f"[red]✗ {issue}")
        sys.exit(1)

    app = build_app(settings, github_app)
    bind_port = port or settings.port
    console.print(f"[blue]Webhook URL: http://localhost:{bind_port}/webhook")
    console.print(f"[blue]Debug URL: http://localhost:{bind_port}/debug")
    uvicorn.run(app, host=host, port=bind_port)


@cli.command("list-installations")
def list_installations():
    """List all installations of the GitHub App."""
    _, github_app = _startup()
    try:
        installations = github_app.list_installations()
    except (AuthError, SigningError) as e:
        _fail(f"Error getting installations: {e}")

    table = Table(title="GitHub App Installations", border_style="cyan")
    table.add_column("ID", justify="right", style="bold")
    table.add_column("Account")
    for inst in installations:
        table.add_row(str(inst.id), inst.account_login)
    console.print(table)


@cli.command()
def check():
    """Verify configuration and GitHub App access."""
    settings, github_app = _startup()
    issues = settings.validate()

    if issues:
        console.print("[bold red]Configuration issues found:\n")
        for issue in issues:
            console.print(f"  [red]✗ {issue}")
        sys.exit(1)

    console.print("[bold green]✓ Configuration looks good!")
    console.print(f"  App ID: {settings.credentials.app_id}")
    console.print(f"  Installation ID: {settings.credentials.installation_id}")
    console.print(f"  Model: {settings.claude_model}")

    try:
        installations = github_app.list_installations()
    except (AuthError, SigningError) as e:
        console.print(f"  [red]✗ GitHub App access failed: {e}")
        sys.exit(1)

    ids = {inst.id for inst in installations}
    if settings.credentials.installation_id in ids:
        console.print(f"  [green]✓ GitHub App access verified: {len(ids)} installation(s)")
    else:
        console.print(
            f"  [yellow]! Installation {settings.credentials.installation_id} "
            f"not found among {len(ids)} installation(s)"
        )


if __name__ == "__main__":
    cli()

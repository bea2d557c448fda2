"""Configuration and environment management."""
from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from dotenv import load_dotenv

from .errors import ConfigError

logger = structlog.get_logger(__name__)

DEFAULT_PRIVATE_KEY_PATH = "./glitchy.pem"
DEFAULT_CLAUDE_MODEL = "claude-3-7-sonnet-20250219"
DEFAULT_PORT = 8080
DEFAULT_HTTP_TIMEOUT = 15.0

_MAX_INT64 = 2**63 - 1
_DIGITS = re.compile(r"[0-9]+")
_TRUTHY = {"1", "true", "yes", "on"}


def parse_id(name: str, value: str | None) -> int:
    """Parse a GitHub numeric identifier from its string form.

    Args:
        name: Environment variable name, used in the error message.
        value: Raw string value.

    Returns:
        The identifier as a positive int that fits in 64 bits.

    Raises:
        ConfigError: If the value is missing, non-numeric, zero, or too large.
    """
    raw = (value or "").strip()
    if not raw:
        raise ConfigError(f"{name} is required")
    if not _DIGITS.fullmatch(raw):
        raise ConfigError(f"invalid {name}: {value!r} is not an integer")
    parsed = int(raw)
    if parsed <= 0 or parsed > _MAX_INT64:
        raise ConfigError(f"invalid {name}: {value!r} is out of range")
    return parsed


@dataclass(frozen=True)
class AppCredentials:
    """Identity of the GitHub App and the installation this process acts for."""

    app_id: int
    installation_id: int
    private_key_path: Path

    @classmethod
    def from_strings(
        cls,
        app_id: str | None,
        installation_id: str | None,
        private_key_path: str | None,
    ) -> AppCredentials:
        """Build credentials from raw configuration strings.

        Raises:
            ConfigError: If either identifier does not parse.
        """
        key_path = (private_key_path or "").strip()
        if not key_path:
            key_path = DEFAULT_PRIVATE_KEY_PATH
            logger.warning(
                "GITHUB_APP_PRIVATE_KEY_PATH not set, using default path",
                path=key_path,
            )
        return cls(
            app_id=parse_id("GITHUB_APP_ID", app_id),
            installation_id=parse_id("GITHUB_APP_INSTALLATION_ID", installation_id),
            private_key_path=Path(key_path),
        )


@dataclass(frozen=True)
class Settings:
    """Application settings, built once at startup and never mutated."""

    credentials: AppCredentials
    webhook_secret: str = ""
    claude_api_key: str = ""
    claude_model: str = DEFAULT_CLAUDE_MODEL
    port: int = DEFAULT_PORT
    log_level: str = "info"
    log_json: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    cache_installation_tokens: bool = False
    allowed_repos: tuple[str, ...] = field(default_factory=tuple)

    def validate(self) -> list[str]:
        """Check the settings needed to serve webhooks, return list of issues."""
        issues = []
        if not self.webhook_secret:
            issues.append("WEBHOOK_SECRET is required to verify webhook signatures")
        if not self.claude_api_key:
            issues.append("CLAUDE_API_KEY is required for reviews")
        return issues


def _parse_int(name: str, value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"invalid {name}: {value!r} is not an integer") from None


def _parse_float(name: str, value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigError(f"invalid {name}: {value!r} is not a number") from None
    if parsed <= 0:
        raise ConfigError(f"invalid {name}: must be positive")
    return parsed


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _parse_repos(value: str | None) -> tuple[str, ...]:
    return tuple(r.strip() for r in (value or "").split(",") if r.strip())


def load_settings(
    env: Mapping[str, str] | None = None,
    dotenv: bool = True,
) -> Settings:
    """Load settings from the environment.

    Args:
        env: Mapping to read from instead of ``os.environ``.
        dotenv: Whether to load a ``.env`` file first. Ignored when ``env``
            is given.

    Raises:
        ConfigError: If any value is malformed.
    """
    if env is None:
        if dotenv and not load_dotenv():
            logger.warning(".env file not found, using environment variables")
        env = os.environ

    credentials = AppCredentials.from_strings(
        env.get("GITHUB_APP_ID"),
        env.get("GITHUB_APP_INSTALLATION_ID"),
        env.get("GITHUB_APP_PRIVATE_KEY_PATH"),
    )
    return Settings(
        credentials=credentials,
        webhook_secret=env.get("WEBHOOK_SECRET", ""),
        claude_api_key=env.get("CLAUDE_API_KEY", ""),
        claude_model=env.get("CLAUDE_MODEL") or DEFAULT_CLAUDE_MODEL,
        port=_parse_int("PORT", env.get("PORT"), DEFAULT_PORT),
        log_level=(env.get("LOG_LEVEL") or "info").lower(),
        log_json=_parse_bool(env.get("LOG_JSON")),
        http_timeout=_parse_float(
            "HTTP_TIMEOUT", env.get("HTTP_TIMEOUT"), DEFAULT_HTTP_TIMEOUT
        ),
        cache_installation_tokens=_parse_bool(env.get("CACHE_INSTALLATION_TOKENS")),
        allowed_repos=_parse_repos(env.get("ALLOWED_REPOS")),
    )

"""Shared pytest fixtures for glitchy test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)

from glitchy.config import AppCredentials
from glitchy.github.app import GitHubApp

APP_ID = 12345
INSTALLATION_ID = 67890


@pytest.fixture(scope="session")
def rsa_private_key() -> RSAPrivateKey:
    """One RSA key for the whole session; generation is slow."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def key_file(tmp_path: Path, rsa_private_key: RSAPrivateKey) -> Path:
    """Write the session RSA key to a temp PEM file."""
    pem = rsa_private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    path = tmp_path / "test-app.pem"
    path.write_bytes(pem)
    return path


@pytest.fixture()
def credentials(key_file: Path) -> AppCredentials:
    return AppCredentials(
        app_id=APP_ID,
        installation_id=INSTALLATION_ID,
        private_key_path=key_file,
    )


@pytest.fixture()
def github_app(credentials: AppCredentials) -> GitHubApp:
    """A GitHubApp with a valid test key."""
    return GitHubApp.from_credentials(credentials)


@pytest.fixture()
def service_env(key_file: Path) -> dict[str, str]:
    """Environment mapping with everything the server needs."""
    return {
        "GITHUB_APP_ID": str(APP_ID),
        "GITHUB_APP_INSTALLATION_ID": str(INSTALLATION_ID),
        "GITHUB_APP_PRIVATE_KEY_PATH": str(key_file),
        "WEBHOOK_SECRET": "test-webhook-secret",
        "CLAUDE_API_KEY": "sk-ant-test",
    }


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo configure_logging() so later tests never write to a closed stream."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)

"""GitHub App configuration and JWT authentication."""
from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import httpx
import jwt
import structlog
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from ..config import AppCredentials, Settings
from ..errors import AuthError, ConfigError, SigningError
from .client import ACCEPT_JSON, GITHUB_API, InstallationClient

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "RS256"
JWT_LIFETIME = 10 * 60  # fixed by GitHub, not tunable
TOKEN_REFRESH_MARGIN = 5 * 60
_PAGE_SIZE = 100


@dataclass(frozen=True)
class Installation:
    """One installation of the App on an account."""

    id: int
    account_login: str


@dataclass(frozen=True)
class InstallationToken:
    """Installation access token returned by GitHub."""

    token: str
    expires_at: datetime | None = None

    def is_fresh(self, now: float, margin: float = TOKEN_REFRESH_MARGIN) -> bool:
        """Whether the token is still usable for at least ``margin`` seconds."""
        if self.expires_at is None:
            return False
        return now + margin < self.expires_at.timestamp()


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def load_private_key(path: Path) -> RSAPrivateKey:
    """Load an RSA private key from a PEM file.

    Raises:
        ConfigError: If the file is missing or unreadable, or is not an
            unencrypted PEM RSA private key.
    """
    logger.debug("Loading private key", path=str(path))
    if not path.exists():
        logger.error("Private key file not found", path=str(path))
        raise ConfigError(f"private key file not found at {path}")

    try:
        pem_data = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read private key", path=str(path), error=str(e))
        raise ConfigError(f"error reading private key: {e}") from e

    try:
        key = load_pem_private_key(pem_data, password=None)
    except (ValueError, TypeError) as e:
        raise ConfigError(f"error parsing private key: {e}") from e
    if not isinstance(key, RSAPrivateKey):
        raise ConfigError("error parsing private key: not an RSA key")
    return key


class GitHubApp:
    """GitHub App authentication manager.

    Mints RS256 JWTs identifying the App and redeems them for installation
    access tokens. The signing key is read-only after construction, so one
    instance can be shared by concurrent callers.

    By default every call mints a fresh JWT and a fresh installation token.
    With ``cache_tokens=True`` installation tokens are reused until
    ``TOKEN_REFRESH_MARGIN`` seconds before their reported expiry.

    Args:
        app_id: The GitHub App ID.
        installation_id: Installation this process acts on behalf of.
        private_key: RSA key used to sign JWTs.
        timeout: Timeout in seconds for every outbound request.
        base_url: GitHub API root.
        cache_tokens: Reuse installation tokens until close to expiry.
    """

    def __init__(
        self,
        app_id: int,
        installation_id: int,
        private_key: RSAPrivateKey,
        timeout: float = 15.0,
        base_url: str = GITHUB_API,
        cache_tokens: bool = False,
    ) -> None:
        self.app_id = app_id
        self.installation_id = installation_id
        self._private_key = private_key
        self.timeout = timeout
        self.base_url = base_url
        self.cache_tokens = cache_tokens
        self._token_cache: dict[int, InstallationToken] = {}
        self._cache_lock = threading.Lock()
        self._refresh_locks: dict[int, threading.Lock] = {}

    @classmethod
    def from_credentials(
        cls,
        credentials: AppCredentials,
        timeout: float = 15.0,
        base_url: str = GITHUB_API,
        cache_tokens: bool = False,
    ) -> GitHubApp:
        """Initialize from parsed credentials, loading the private key.

        Raises:
            ConfigError: If the private key cannot be loaded.
        """
        logger.debug("Initializing GitHub App authentication")
        private_key = load_private_key(credentials.private_key_path)
        logger.debug(
            "GitHub App authentication initialized",
            app_id=credentials.app_id,
            installation_id=credentials.installation_id,
        )
        return cls(
            app_id=credentials.app_id,
            installation_id=credentials.installation_id,
            private_key=private_key,
            timeout=timeout,
            base_url=base_url,
            cache_tokens=cache_tokens,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> GitHubApp:
        """Initialize from application settings."""
        return cls.from_credentials(
            settings.credentials,
            timeout=settings.http_timeout,
            cache_tokens=settings.cache_installation_tokens,
        )

    def mint_assertion(self) -> str:
        """Create a JWT for GitHub App authentication.

        The JWT uses RS256 (declared explicitly in the header), is issued
        now, expires exactly 10 minutes later, and carries the app ID as
        the issuer claim. A random ``jti`` keeps tokens minted within the
        same second distinct.

        Returns:
            Encoded JWT string.

        Raises:
            SigningError: If the signing primitive fails.
        """
        logger.debug("Creating JWT for GitHub App")
        now = int(time.time())
        payload = {
            "iat": now,
            "exp": now + JWT_LIFETIME,
            "iss": str(self.app_id),
            "jti": uuid.uuid4().hex,
        }
        try:
            return jwt.encode(
                payload,
                self._private_key,
                algorithm=JWT_ALGORITHM,
                headers={"alg": JWT_ALGORITHM},
            )
        except Exception as e:
            logger.error("Failed to sign JWT", app_id=self.app_id, error=str(e))
            raise SigningError(f"error signing JWT: {e}") from e

    def _jwt_client(self) -> httpx.Client:
        """Build a client that authenticates as the App itself."""
        return httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.mint_assertion()}",
                "Accept": ACCEPT_JSON,
            },
            timeout=self.timeout,
        )

    def create_installation_token(
        self, installation_id: int | None = None
    ) -> InstallationToken:
        """Exchange a fresh JWT for an installation access token.

        Args:
            installation_id: Installation to act for. Defaults to the
                configured installation.

        Raises:
            AuthError: If the request fails or GitHub rejects it.
            SigningError: If the JWT cannot be signed.
        """
        target = installation_id if installation_id is not None else self.installation_id
        logger.debug("Requesting installation token", installation_id=target)
        try:
            with self._jwt_client() as client:
                resp = client.post(f"/app/installations/{target}/access_tokens")
                resp.raise_for_status()
                data = resp.json()
            token = InstallationToken(
                token=data["token"],
                expires_at=_parse_timestamp(data.get("expires_at")),
            )
        except httpx.HTTPError as e:
            raise AuthError(
                "error getting installation token", installation_id=target, cause=e
            ) from e
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError(
                "malformed installation token response",
                installation_id=target,
                cause=e,
            ) from e
        return token

    def get_installation_token(self, installation_id: int | None = None) -> str:
        """Return an installation token, from cache when enabled and fresh."""
        target = installation_id if installation_id is not None else self.installation_id
        if not self.cache_tokens:
            return self.create_installation_token(target).token

        cached = self._cached_token(target)
        if cached is not None:
            return cached

        # One exchange per installation at a time; other installations and
        # cache hits never wait on it.
        with self._refresh_lock(target):
            cached = self._cached_token(target)
            if cached is not None:
                return cached
            token = self.create_installation_token(target)
            with self._cache_lock:
                self._token_cache[target] = token
            return token.token

    def _cached_token(self, installation_id: int) -> str | None:
        with self._cache_lock:
            cached = self._token_cache.get(installation_id)
        if cached is not None and cached.is_fresh(time.time()):
            return cached.token
        return None

    def _refresh_lock(self, installation_id: int) -> threading.Lock:
        with self._cache_lock:
            return self._refresh_locks.setdefault(installation_id, threading.Lock())

    def get_installation_client(
        self, installation_id: int | None = None
    ) -> InstallationClient:
        """Return a GitHub client authenticated as an installation.

        Args:
            installation_id: Installation to act for. Defaults to the
                configured installation.

        Raises:
            AuthError: If the token exchange fails.
            SigningError: If the JWT cannot be signed.
        """
        logger.debug("Getting GitHub installation client")
        token = self.get_installation_token(installation_id)
        client = InstallationClient(token, timeout=self.timeout, base_url=self.base_url)
        logger.debug("GitHub installation client created")
        return client

    def list_installations(self) -> list[Installation]:
        """List all installations of this GitHub App.

        Follows pagination until GitHub returns a short page.

        Raises:
            AuthError: If any request fails.
        """
        logger.debug("Listing GitHub App installations")
        installations: list[Installation] = []
        try:
            with self._jwt_client() as client:
                page = 1
                while True:
                    resp = client.get(
                        "/app/installations",
                        params={"per_page": _PAGE_SIZE, "page": page},
                    )
                    resp.raise_for_status()
                    batch = resp.json()
                    for item in batch:
                        installations.append(
                            Installation(
                                id=item["id"],
                                account_login=(item.get("account") or {}).get("login", ""),
                            )
                        )
                    if len(batch) < _PAGE_SIZE:
                        break
                    page += 1
        except httpx.HTTPError as e:
            raise AuthError("error listing installations", cause=e) from e
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError("malformed installations response", cause=e) from e

        logger.debug("Found GitHub App installations", count=len(installations))
        return installations

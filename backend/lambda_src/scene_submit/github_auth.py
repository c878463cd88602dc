from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from common.time_utils import epoch_seconds, utc_now
from scene_submit.github_client import GitHubApiError, GitHubClient

logger = logging.getLogger(__name__)

APP_JWT_LIFETIME_SECONDS = 9 * 60


class CredentialError(RuntimeError):
    """Raised when an installation token cannot be obtained."""

    code = "auth_failed"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthConfigError(CredentialError):
    """Raised when the GitHub App credentials are missing from configuration."""

    code = "auth_config_error"


def normalize_private_key(pem: str) -> str:
    """Expand escaped newlines from single-line environment values."""
    key = pem.strip()
    if "\\n" in key and "\n" not in key:
        key = key.replace("\\n", "\n")
    return key


class GitHubAppCredentials:
    """Mints a fresh installation access token for every submission.

    The app JWT is signed with the private key, lives nine minutes, and is
    presented exactly once to the installation token endpoint. Neither the
    JWT nor the resulting token is cached.
    """

    def __init__(
        self,
        app_id: str,
        installation_id: str,
        private_key: str,
        client: GitHubClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.app_id = str(app_id or "").strip()
        self.installation_id = str(installation_id or "").strip()
        self._private_key = normalize_private_key(str(private_key or ""))
        self._client = client or GitHubClient()
        self._clock = clock

    def build_app_jwt(self) -> str:
        if not self.app_id or not self._private_key:
            raise AuthConfigError("Missing GitHub App credentials.")

        signing_key = self._load_signing_key()
        now = epoch_seconds(self._clock())
        payload = {
            "iss": self.app_id,
            "iat": now,
            "exp": now + APP_JWT_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(payload, signing_key, algorithm="RS256")
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise CredentialError(f"Failed to sign GitHub App JWT: {exc}") from exc

    def _load_signing_key(self) -> RSAPrivateKey:
        try:
            key = serialization.load_pem_private_key(self._private_key.encode("utf-8"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CredentialError(f"Failed to load GitHub App private key: {exc}") from exc
        if not isinstance(key, RSAPrivateKey):
            raise CredentialError("GitHub App private key must be an RSA private key.")
        return key

    def mint_installation_token(self) -> str:
        if not self.installation_id:
            raise AuthConfigError("Missing GITHUB_INSTALLATION_ID.")

        app_jwt = self.build_app_jwt()
        url = f"/app/installations/{self.installation_id}/access_tokens"
        try:
            data = self._client.request(app_jwt, url, method="POST")
        except GitHubApiError as exc:
            raise CredentialError(
                f"Installation token mint failed ({exc.status_code}): {exc.body}",
                status_code=exc.status_code,
                body=exc.body,
            ) from exc

        token = ""
        if isinstance(data, dict):
            token = str(data.get("token") or "").strip()
        if not token:
            raise CredentialError("Installation token response missing token.", body=data)

        logger.info("Minted installation token for installation %s", self.installation_id)
        return token

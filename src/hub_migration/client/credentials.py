"""Service-account credential handling.

One service-account JSON authenticates both the identity provider and the
document store clients. It is read from a local file, or from an environment
variable holding the JSON text (the convention used by scheduled backup
jobs). Its absence stops the process before any client is created.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import google.auth.transport.requests
from google.auth import exceptions as auth_exceptions
from google.oauth2 import service_account

from hub_migration.client.exceptions import (
    AuthenticationError,
    ConfigurationError,
    CredentialMissingError,
    NetworkError,
)
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)

CREDENTIAL_ENV_VAR = "FIREBASE_SERVICE_ACCOUNT"

SCOPES = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/datastore",
    "https://www.googleapis.com/auth/identitytoolkit",
    "https://www.googleapis.com/auth/userinfo.email",
]

REQUIRED_KEYS = ("project_id", "client_email", "private_key")

EMULATOR_TOKEN = "owner"


class ServiceAccount:
    """A parsed service-account credential that mints access tokens."""

    def __init__(self, info: dict[str, Any], source: str):
        """Initialize service account.

        Args:
            info: Parsed service-account JSON
            source: Where the credential was read from (for logging)
        """
        self.info = info
        self.source = source
        self._credentials: service_account.Credentials | None = None
        self._lock = asyncio.Lock()

    @property
    def project_id(self) -> str:
        return self.info["project_id"]

    @property
    def client_email(self) -> str:
        return self.info["client_email"]

    async def access_token(self) -> str:
        """Return a valid OAuth2 access token, refreshing it when expired.

        google-auth refreshes synchronously, so the refresh runs in a worker
        thread to keep the event loop responsive.

        Raises:
            ConfigurationError: If the private key cannot be loaded
            AuthenticationError: If the token endpoint refuses the credential
            NetworkError: If the token endpoint cannot be reached
        """
        async with self._lock:
            if self._credentials is None:
                try:
                    self._credentials = service_account.Credentials.from_service_account_info(
                        self.info, scopes=SCOPES
                    )
                except ValueError as e:
                    raise ConfigurationError(
                        f"Service-account private key is invalid ({self.source}): {e}"
                    ) from e
            if not self._credentials.valid:
                request = google.auth.transport.requests.Request()
                try:
                    await asyncio.to_thread(self._credentials.refresh, request)
                except auth_exceptions.RefreshError as e:
                    logger.error("access_token_refresh_failed", client_email=self.client_email)
                    raise AuthenticationError(
                        f"Access token refresh rejected for {self.client_email}: {e}"
                    ) from e
                except auth_exceptions.TransportError as e:
                    raise NetworkError(f"Cannot reach the token endpoint: {e}") from e
                logger.debug("access_token_refreshed", client_email=self.client_email)
            return self._credentials.token


def _parse_info(raw: str, source: str) -> dict[str, Any]:
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Service-account credential is not valid JSON ({source}): {e}") from e

    if not isinstance(info, dict):
        raise ConfigurationError(f"Service-account credential must be a JSON object ({source})")

    missing = [key for key in REQUIRED_KEYS if not info.get(key)]
    if missing:
        raise ConfigurationError(
            f"Service-account credential is missing {', '.join(missing)} ({source})"
        )
    return info


def load_service_account(
    path: str | Path,
    env_var: str = CREDENTIAL_ENV_VAR,
) -> ServiceAccount:
    """Load the service-account credential.

    The file at ``path`` wins; the environment variable is consulted only when
    the file does not exist.

    Args:
        path: Path to the service-account JSON file
        env_var: Environment variable that may hold the JSON text

    Returns:
        ServiceAccount: Parsed credential

    Raises:
        CredentialMissingError: If neither the file nor the variable is present
        ConfigurationError: If the credential cannot be parsed
    """
    path = Path(path)

    if path.is_file():
        info = _parse_info(path.read_text(encoding="utf-8"), str(path))
        logger.info("credential_loaded", source=str(path), project_id=info["project_id"])
        return ServiceAccount(info, source=str(path))

    raw = os.environ.get(env_var)
    if raw:
        info = _parse_info(raw, f"${env_var}")
        logger.info("credential_loaded", source=f"${env_var}", project_id=info["project_id"])
        return ServiceAccount(info, source=f"${env_var}")

    raise CredentialMissingError(
        f"Cannot find service-account credential: {path} does not exist and ${env_var} is not set"
    )

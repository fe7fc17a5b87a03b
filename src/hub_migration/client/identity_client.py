"""Identity provider client (Identity Toolkit admin REST API).

This client exposes the operations the migration consumes: list existing
accounts, create an account, and look an account up by e-mail.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from hub_migration.client.base_client import BaseAPIClient, TokenProvider
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class IdentityAccount:
    """An account held by the identity provider."""

    uid: str
    email: str | None
    display_name: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "IdentityAccount":
        return cls(
            uid=data["localId"],
            email=data.get("email"),
            display_name=data.get("displayName"),
        )


class IdentityClient(BaseAPIClient):
    """Client for the identity provider's admin API."""

    def __init__(
        self,
        base_url: str,
        project_id: str,
        token_provider: TokenProvider,
        page_size: int = 1000,
        **kwargs: Any,
    ):
        """Initialize identity provider client.

        Args:
            base_url: REST base URL (``https://identitytoolkit.googleapis.com/v1``)
            project_id: Project that owns the accounts
            token_provider: Coroutine function returning a bearer token
            page_size: Accounts per page when listing (maximum 1000)
            **kwargs: Passed through to BaseAPIClient
        """
        super().__init__(base_url=base_url, token_provider=token_provider, **kwargs)
        self.project_id = project_id
        self.page_size = page_size
        self.accounts_path = f"projects/{project_id}/accounts"
        logger.info("identity_client_initialized", project_id=project_id)

    async def iter_accounts(self) -> AsyncIterator[IdentityAccount]:
        """Page through every account of the project."""
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {"maxResults": self.page_size}
            if page_token:
                params["nextPageToken"] = page_token

            data = await self.request_with_retry(
                "GET", f"{self.accounts_path}:batchGet", params=params
            )

            for user in data.get("users", []):
                yield IdentityAccount.from_api(user)

            page_token = data.get("nextPageToken")
            if not page_token:
                break

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> IdentityAccount:
        """Create an account.

        Not retried: a create whose response was lost would otherwise surface
        as a duplicate. Callers resolve ConflictError with a lookup.

        Raises:
            ConflictError: If an account with this e-mail already exists
        """
        payload: dict[str, Any] = {"email": email, "password": password}
        if display_name:
            payload["displayName"] = display_name

        data = await self.request("POST", self.accounts_path, json_data=payload)

        logger.info("identity_account_created", email=email, uid=data.get("localId"))
        return IdentityAccount(uid=data["localId"], email=email, display_name=display_name)

    async def find_account_by_email(self, email: str) -> IdentityAccount | None:
        """Look an account up by e-mail, or return None."""
        data = await self.request_with_retry(
            "POST", f"{self.accounts_path}:lookup", json_data={"email": [email]}
        )
        users = data.get("users") or []
        return IdentityAccount.from_api(users[0]) if users else None

"""Custom exceptions for Hub Bridge.

This module defines exception classes for the error conditions that abort a
unit of work: API failures against the identity provider and document store,
missing credentials, and batch commit failures.

Expected per-row and per-table conditions (missing export file, unmapped
reference, failed account creation) are reported as outcomes, not raised.
"""


class HubMigrationError(Exception):
    """Base exception for all Hub Bridge errors."""

    pass


class APIError(HubMigrationError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a document or account is not found (404 Not Found)."""

    pass


class ConflictError(APIError):
    """Raised when the target already exists.

    The identity provider reports a duplicate e-mail as ``EMAIL_EXISTS``
    and the document store reports ``ALREADY_EXISTS``. Both are used for
    idempotency checks.
    """

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(HubMigrationError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class ConfigurationError(HubMigrationError):
    """Raised when configuration is invalid or missing."""

    pass


class CredentialMissingError(ConfigurationError):
    """Raised when no service-account credential can be found.

    This is fatal at startup: no client is created and nothing is contacted.
    """

    pass


class StateError(HubMigrationError):
    """Raised when in-memory migration state is used out of order."""

    pass


class MigrationError(HubMigrationError):
    """Raised when migration operations fail."""

    pass


class BatchCommitError(MigrationError):
    """Raised when an atomic batch commit against the document store fails.

    Chunks committed before the failing one keep their state; there is no
    rollback across chunks.
    """

    def __init__(
        self,
        message: str,
        collection: str,
        chunk_index: int,
        committed: int = 0,
    ):
        """Initialize batch commit error.

        Args:
            message: Error message
            collection: Collection the batch was written to
            chunk_index: Zero-based index of the failing chunk
            committed: Number of writes committed by earlier chunks
        """
        self.collection = collection
        self.chunk_index = chunk_index
        self.committed = committed
        super().__init__(
            f"{message} (collection={collection}, chunk={chunk_index}, committed={committed})"
        )


class IdentityCreationError(MigrationError):
    """Raised when the identity provider refuses to create an account."""

    def __init__(self, message: str, email: str):
        """Initialize identity creation error.

        Args:
            message: Error message
            email: Normalized e-mail of the account that could not be created
        """
        self.email = email
        super().__init__(f"{message} (email={email})")

"""Base HTTP client for Hub Bridge.

This module provides a base async HTTP client with connection pooling,
rate limiting, retry logic, bearer-token authentication and mapping of
Google-style API errors onto the exception hierarchy.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from hub_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from hub_migration.utils.logging import (
    get_logger,
    log_api_request,
    sanitize_payload,
    should_log_payloads,
    truncate_payload,
)
from hub_migration.utils.retry import retry_with_backoff

logger = get_logger(__name__)

TokenProvider = Callable[[], Awaitable[str]]

# Error codes the identity provider returns with HTTP 400 for duplicates
DUPLICATE_ERROR_CODES = ("EMAIL_EXISTS", "DUPLICATE_EMAIL", "DUPLICATE_LOCAL_ID", "ALREADY_EXISTS")


class BaseAPIClient:
    """Base async HTTP client with retry logic and rate limiting.

    This client provides:
    - Connection pooling
    - Rate limiting
    - Request/response logging
    - Retry of transient failures for calls that opt in
    - Mapping of error responses to exceptions
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout: int = 30,
        rate_limit: int = 10,
        retry_attempts: int = 5,
        retry_backoff_min: float = 2,
        retry_backoff_max: float = 60,
        max_connections: int = 10,
        max_keepalive_connections: int = 5,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for API requests
            token_provider: Coroutine function returning a bearer token
            timeout: Request timeout in seconds
            rate_limit: Maximum requests per second
            retry_attempts: Attempts per retried call
            retry_backoff_min: Minimum backoff between attempts (seconds)
            retry_backoff_max: Maximum backoff between attempts (seconds)
            max_connections: Maximum number of connections in pool
            max_keepalive_connections: Maximum keep-alive connections
            log_payloads: Enable request/response payload logging at DEBUG level
            max_payload_size: Maximum payload size (chars) to log before truncation
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider

        self.log_payloads = log_payloads
        self.max_payload_size = max_payload_size

        self.retry_attempts = retry_attempts
        self.retry_backoff_min = retry_backoff_min
        self.retry_backoff_max = retry_backoff_max

        self.rate_limit = rate_limit
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0
        self._min_request_interval = 1.0 / rate_limit if rate_limit > 0 else 0

        self.client = httpx.AsyncClient(
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            transport=transport,
        )

        logger.info(
            "client_initialized",
            base_url=self.base_url,
            rate_limit=rate_limit,
            max_connections=max_connections,
        )

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint.

        Google endpoints carry ':' verbs and '(default)' segments, so the
        endpoint is appended verbatim instead of going through urljoin.
        """
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _rate_limit_wait(self) -> None:
        """Implement rate limiting by waiting if necessary."""
        if self._min_request_interval > 0:
            async with self._rate_limit_lock:
                now = time.monotonic()
                time_since_last = now - self._last_request_time

                if time_since_last < self._min_request_interval:
                    await asyncio.sleep(self._min_request_interval - time_since_last)

                self._last_request_time = time.monotonic()

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Handle error responses by raising appropriate exceptions.

        Google APIs answer with ``{"error": {"code", "message", "status"}}``.
        The identity provider puts its machine-readable code (for example
        ``EMAIL_EXISTS``) in ``message``.

        Raises:
            AuthenticationError: For 401 responses
            AuthorizationError: For 403 responses
            NotFoundError: For 404 responses
            ConflictError: For 409 responses and duplicate-account 400 responses
            RateLimitError: For 429 responses
            ServerError: For 5xx responses
            APIError: For other error responses
        """
        status_code = response.status_code

        try:
            error_data = response.json()
        except ValueError:
            error_data = {"error": {"message": response.text}}

        if not isinstance(error_data, dict):
            error_data = {"error": {"message": str(error_data)}}

        error = error_data.get("error")
        if isinstance(error, dict):
            error_message = str(error.get("message") or error.get("status") or "Unknown error")
            error_status = str(error.get("status") or "")
        else:
            error_message = str(error or "Unknown error")
            error_status = ""

        if status_code == 401:
            raise AuthenticationError(
                message="Authentication failed", status_code=status_code, response=error_data
            )
        elif status_code == 403:
            raise AuthorizationError(
                message="Authorization failed", status_code=status_code, response=error_data
            )
        elif status_code == 404:
            raise NotFoundError(
                message="Resource not found", status_code=status_code, response=error_data
            )
        elif status_code == 409 or (
            status_code == 400
            and any(code in error_message or code == error_status for code in DUPLICATE_ERROR_CODES)
        ):
            raise ConflictError(message=error_message, status_code=status_code, response=error_data)
        elif status_code == 429:
            retry_after = response.headers.get("Retry-After")
            retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            raise RateLimitError(
                message="Rate limit exceeded",
                status_code=status_code,
                response=error_data,
                retry_after=retry_seconds,
            )
        elif 500 <= status_code < 600:
            raise ServerError(
                message=f"Server error: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        else:
            raise APIError(
                message=f"API error: {error_message}",
                status_code=status_code,
                response=error_data,
            )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST, DELETE, ...)
            endpoint: API endpoint path
            params: Query parameters
            json_data: JSON request body

        Returns:
            Response JSON data

        Raises:
            NetworkError: For network-related errors
            Various APIError subclasses: For API errors
        """
        url = self._build_url(endpoint)

        await self._rate_limit_wait()

        token = await self.token_provider()
        headers = {"Authorization": f"Bearer {token}"}

        if should_log_payloads(logger, self.log_payloads) and json_data is not None:
            logger.debug(
                "api_request_payload",
                method=method,
                url=url,
                payload=truncate_payload(sanitize_payload(json_data), self.max_payload_size),
            )

        start_time = time.monotonic()

        try:
            response = await self.client.request(
                method=method, url=url, params=params, json=json_data, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.error("timeout_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("network_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        log_api_request(
            logger,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

        if should_log_payloads(logger, self.log_payloads) and response.text:
            logger.debug(
                "api_response_payload",
                method=method,
                url=url,
                status_code=response.status_code,
                payload=response.text[: self.max_payload_size],
            )

        if response.status_code >= 400:
            self._handle_error_response(response)

        return response.json() if response.text else {}

    async def request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a request, retrying transient failures with backoff.

        Only used for calls that are safe to repeat.
        """
        retrying = retry_with_backoff(
            max_attempts=self.retry_attempts,
            min_wait=self.retry_backoff_min,
            max_wait=self.retry_backoff_max,
        )(self.request)
        return await retrying(method, endpoint, params=params, json_data=json_data)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.info("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


def static_token(token: str) -> TokenProvider:
    """Build a token provider that always returns the same token.

    Used for the local emulators, which accept the literal token ``owner``.
    """

    async def provider() -> str:
        return token

    return provider

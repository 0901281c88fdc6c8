"""HTTP transport for the telemetry endpoints.

Wraps a shared httpx client: attaches the bearer token, turns every failure
into an ApiError, and runs idempotent requests (GET, HEAD) through the
RetryPolicy. Non-idempotent requests get exactly one attempt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from libs.common.logging.http_client import get_traced_client
from libs.telemetry.exceptions import ApiError
from libs.telemetry.retry import RetryPolicy

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = {"GET", "HEAD"}

JSON_ACCEPT = "application/json"
TEXT_ACCEPT = "text/plain"

TokenProvider = Callable[[], str | None]

_M = TypeVar("_M", bound=BaseModel)


def error_from_response(response: httpx.Response, endpoint: str) -> ApiError:
    """Build an ApiError for a non-2xx response.

    ``error`` and ``message`` are taken from a JSON body of the form
    ``{"error": ..., "message": ...}`` when the server sent one.
    """
    status = response.status_code
    error = "API Error"
    message = f"Request failed with status code {status}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if isinstance(body.get("error"), str) and body["error"]:
            error = body["error"]
        if isinstance(body.get("message"), str) and body["message"]:
            message = body["message"]
    return ApiError(
        message,
        error=error,
        code="http_error",
        status_code=status,
        endpoint=endpoint,
    )


def normalize_error(exc: httpx.HTTPError, endpoint: str) -> ApiError:
    """Map an httpx exception onto ApiError."""
    if isinstance(exc, httpx.HTTPStatusError):
        return error_from_response(exc.response, endpoint)

    message = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.TimeoutException):
        return ApiError(
            message, error="Timeout", code="timeout", endpoint=endpoint, is_network_error=True
        )
    if isinstance(exc, httpx.ConnectError):
        return ApiError(
            message,
            error="Connection Error",
            code="connect_error",
            endpoint=endpoint,
            is_network_error=True,
        )
    if isinstance(exc, httpx.RemoteProtocolError):
        return ApiError(
            message,
            error="Connection Aborted",
            code="connection_aborted",
            endpoint=endpoint,
            is_network_error=True,
        )
    if isinstance(exc, httpx.NetworkError):
        return ApiError(
            message,
            error="Network Error",
            code="network_error",
            endpoint=endpoint,
            is_network_error=True,
        )
    return ApiError(message, error="Request Error", code="request_error", endpoint=endpoint)


class Transport:
    """Async HTTP transport bound to one base URL.

    Args:
        base_url: Root URL the endpoint paths are resolved against
        retry_policy: Policy applied to idempotent requests
        timeout_seconds: Per-request timeout
        token_provider: Called before each request; a non-empty return value
            is sent as ``Authorization: Bearer <token>``
        client: Pre-built httpx client (tests, custom pools). Created lazily
            when omitted.
    """

    def __init__(
        self,
        base_url: str,
        *,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 10.0,
        token_provider: TokenProvider | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout_seconds
        self._token_provider = token_provider
        # Shared client for connection reuse (created lazily)
        self._client = client

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = get_traced_client(
                base_url=self.base_url,
                timeout=self.timeout,
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        if self._token_provider is None:
            return {}
        token = self._token_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _send_once(
        self, method: str, path: str, headers: dict[str, str] | None
    ) -> httpx.Response:
        request_headers = {**self._auth_headers(), **(headers or {})}
        start = time.perf_counter()
        try:
            client = await self._get_client()
            response = await client.request(method, path, headers=request_headers)
        except httpx.HTTPError as exc:
            raise normalize_error(exc, path) from exc

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "%s %s -> %d (%.1fms)",
            method,
            path,
            response.status_code,
            elapsed_ms,
            extra={"status_code": response.status_code, "elapsed_ms": round(elapsed_ms, 1)},
        )
        if not response.is_success:
            raise error_from_response(response, path)
        return response

    async def request(
        self, method: str, path: str, *, headers: dict[str, str] | None = None
    ) -> httpx.Response:
        """Send a request, retrying transient failures for idempotent methods.

        Raises:
            ApiError: On any transport failure or non-2xx status
        """
        method = method.upper()
        if method not in IDEMPOTENT_METHODS:
            return await self._send_once(method, path, headers)
        return await self.retry_policy.execute(
            lambda: self._send_once(method, path, headers),
            description=f"{method} {path}",
        )

    async def get(self, path: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        return await self.request("GET", path, headers=headers)

    async def get_json(self, path: str) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            ApiError: On request failure, or ``code="invalid_payload"`` when
                the body is not JSON
        """
        response = await self.get(path, headers={"Accept": JSON_ACCEPT})
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid JSON from {path}: {exc}",
                error="Invalid Response",
                code="invalid_payload",
                status_code=response.status_code,
                endpoint=path,
            ) from exc

    async def get_text(self, path: str) -> str:
        """GET ``path`` asking for the plain-text representation."""
        response = await self.get(path, headers={"Accept": TEXT_ACCEPT})
        return response.text

    async def get_model(self, path: str, model: type[_M]) -> _M:
        """GET ``path`` and validate the JSON body as ``model``.

        Raises:
            ApiError: On request failure, or ``code="invalid_payload"`` when
                the body does not match ``model``
        """
        payload = await self.get_json(path)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ApiError(
                f"Unexpected {model.__name__} payload from {path}: "
                f"{exc.error_count()} validation error(s)",
                error="Invalid Response",
                code="invalid_payload",
                endpoint=path,
            ) from exc

    async def close(self) -> None:
        """Close the shared HTTP client to release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

"""httpx client that forwards the current trace ID.

Example:
    >>> from libs.common.logging import LogContext
    >>> async with get_traced_client(base_url="http://svc/api") as client:
    ...     with LogContext("sweep-7"):
    ...         await client.get("/health")  # sends X-Trace-ID: sweep-7
"""

from typing import Any, Optional

import httpx

from libs.common.logging.context import TRACE_ID_HEADER, get_trace_id

USER_AGENT = "resilient-telemetry-client"


class TracedHTTPXClient(httpx.AsyncClient):
    """AsyncClient adding ``X-Trace-ID`` to every request when a trace ID is set.

    An explicit ``X-Trace-ID`` passed by the caller is left untouched.
    """

    async def request(
        self,
        method: str,
        url: httpx.URL | str,
        **kwargs: Any,
    ) -> httpx.Response:
        trace_id = get_trace_id()
        if trace_id:
            headers = httpx.Headers(kwargs.get("headers"))
            headers.setdefault(TRACE_ID_HEADER, trace_id)
            kwargs["headers"] = headers

        return await super().request(method, url, **kwargs)


def get_traced_client(
    base_url: Optional[str] = None,
    timeout: float = 10.0,
    headers: Optional[dict[str, str]] = None,
    **kwargs: Any,
) -> TracedHTTPXClient:
    """Create a TracedHTTPXClient identifying itself with ``USER_AGENT``.

    Args:
        base_url: Base URL prepended to relative request paths
        timeout: Per-request timeout in seconds
        headers: Default headers, merged over the User-Agent default
        **kwargs: Passed through to httpx.AsyncClient
    """
    client_kwargs: dict[str, Any] = {
        "timeout": timeout,
        "headers": {"User-Agent": USER_AGENT, **(headers or {})},
        **kwargs,
    }
    if base_url is not None:
        client_kwargs["base_url"] = base_url

    return TracedHTTPXClient(**client_kwargs)

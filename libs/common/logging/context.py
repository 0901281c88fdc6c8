"""Trace ID context for correlating client logs with upstream requests.

A trace ID set here is attached to every log record (see TraceIDFilter) and
sent as the X-Trace-ID header by TracedHTTPXClient, so one health sweep can be
followed from the caller's logs into the remote service's logs.

asyncio copies the current context into every task it creates, so the four
concurrent sub-fetches of an aggregated report share the caller's trace ID.

Example:
    >>> from libs.common.logging.context import LogContext, get_trace_id
    >>> with LogContext("sweep-42"):
    ...     get_trace_id()
    'sweep-42'
"""

import contextvars
import uuid
from types import TracebackType

_trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

TRACE_ID_HEADER = "X-Trace-ID"


def generate_trace_id() -> str:
    return uuid.uuid4().hex


def get_trace_id() -> str | None:
    return _trace_id_var.get()


def set_trace_id(trace_id: str) -> contextvars.Token[str | None]:
    """Set the trace ID for the current context.

    Returns:
        Token that restores the previous value via ``_trace_id_var.reset``

    Raises:
        ValueError: If trace_id is empty
    """
    if not trace_id:
        raise ValueError("Trace ID cannot be empty")
    return _trace_id_var.set(trace_id)


def clear_trace_id() -> None:
    _trace_id_var.set(None)


def get_or_create_trace_id() -> str:
    """Return the current trace ID, generating and storing one if unset."""
    trace_id = get_trace_id()
    if trace_id is None:
        trace_id = generate_trace_id()
        set_trace_id(trace_id)
    return trace_id


class LogContext:
    """Scope a trace ID to a ``with`` block.

    The value in effect before the block is restored on exit, including
    "no trace ID". Blocks nest.

    Args:
        trace_id: Trace ID for the block. A new one is generated when None.
    """

    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or generate_trace_id()
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> str:
        self._token = set_trace_id(self.trace_id)
        return self.trace_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _trace_id_var.reset(self._token)
            self._token = None

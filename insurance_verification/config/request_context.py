"""Per-request correlation IDs shared by logging, audit entries and responses."""
import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable, Optional

from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


async def correlation_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """
    Bind the caller's X-Request-ID (or a fresh UUID) for the request.

    The ID is visible to every log line and audit entry written while the
    request runs, and is echoed back on the response.
    """
    correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    token = correlation_id_var.set(correlation_id)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)
    response.headers[REQUEST_ID_HEADER] = correlation_id
    return response

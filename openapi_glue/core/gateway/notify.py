"""
Failure notification for the access control gate.

The gate awaits ``notify(request, context, message)`` when a protected route is
called without an authorization header. Callers plug in their own sink (queue,
audit log, alerting); the default only logs.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.requests import Request

from openapi_glue.core.gateway.request_response import get_client_ip

_log = logging.getLogger(__name__)

# (request, context, message); errors raised by a sink are logged by the gate
NotifySink = Callable[[Request, Any, str], Awaitable[None]]


async def log_failure(request: Request, context: Any, message: str) -> None:
    """Default sink: one warning per event with method, path and client IP."""
    _log.warning(
        "%s (%s %s from %s)",
        message,
        request.method,
        request.url.path,
        get_client_ip(request),
        extra={"context": context},
    )

"""
Gateway request/response helpers: client IP, request body, response envelopes.

- get_client_ip: socket peer, or rightmost X-Forwarded-For when trusted.
- read_body: JSON or form body; None when there is no body.
- auth_error: { Status, Description } envelope used for 401/440.
- render_result: turn a handler's return value into a Response.
"""

import json
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from openapi_glue.core.errors import RequestValidationFailure

# Non-standard status used for expired tokens
HTTP_440_LOGIN_TIMEOUT = 440


def get_client_ip(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Client IP: X-Forwarded-For (rightmost) when trusted, else request.client.host."""
    if trust_forwarded_for:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            return xff.split(",")[-1].strip()
    return getattr(getattr(request, "client", None), "host", None) or "0.0.0.0"


async def read_body(request: Request) -> Any:
    """
    Read the request body for validation.

    - application/json (and +json): parsed JSON; malformed JSON -> RequestValidationFailure.
    - application/x-www-form-urlencoded, multipart/form-data: dict of fields.
    - Empty body or other content types: None (raw bytes stay on the request).
    """
    raw = await request.body()
    if not raw:
        return None
    ct = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    if ct == "application/json" or ct.endswith("+json"):
        try:
            return json.loads(raw)
        except ValueError as e:
            raise RequestValidationFailure(f"body: invalid JSON ({e})") from e
    if ct in ("application/x-www-form-urlencoded", "multipart/form-data"):
        form = await request.form()
        return dict(form)
    return None


def auth_error(status_code: int, message: str) -> JSONResponse:
    """Auth failure envelope: { Status: <code>, Description: <message> }."""
    return JSONResponse(
        status_code=status_code,
        content={"Status": status_code, "Description": str(message)},
    )


def error_detail(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(detail)})


def render_result(result: Any, response: Response) -> Response:
    """
    Handler return value -> Response.

    A Response is returned untouched. Anything else is JSON-encoded with the
    status code and headers the handler set on ``response``.
    """
    if isinstance(result, Response):
        return result
    status_code = response.status_code or 200
    if result is None and status_code in (204, 304):
        out: Response = Response(status_code=status_code)
    else:
        out = JSONResponse(status_code=status_code, content=jsonable_encoder(result))
    for name, value in response.headers.items():
        if name.lower() in ("content-length", "content-type"):
            continue
        out.headers.append(name, value)
    return out

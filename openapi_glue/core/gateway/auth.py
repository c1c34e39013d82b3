"""
Gateway access control: bearer JWT (RS256) + optional IpList claim.

Flow per request: auth required? -> authorization header -> verify token -> claims.
Returns AuthSuccess or AuthFailure; nothing is raised to the caller. The
assembler turns AuthFailure into a 440 (expired) or 401 response.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError, PyJWTError
from starlette.requests import Request

from openapi_glue.core.gateway.firewall import ip_in_allowed_ranges
from openapi_glue.core.gateway.notify import NotifySink
from openapi_glue.core.gateway.request_response import (
    HTTP_440_LOGIN_TIMEOUT,
    get_client_ip,
)
from openapi_glue.core.security import ALGORITHM

_log = logging.getLogger(__name__)

AUTH_TYPE_NONE = "none"
NOT_PROVIDED = "not provided"


class AuthFailureKind(str, Enum):
    MISSING_AUTH_HEADER = "MissingAuthHeader"
    TOKEN_INVALID = "TokenInvalid"
    TOKEN_EXPIRED = "TokenExpired"
    IP_NOT_ALLOWED = "IpNotAllowed"


@dataclass(frozen=True)
class AuthContext:
    roles: list[Any] = field(default_factory=list)
    entity_id: Any = NOT_PROVIDED
    entity_type: Any = NOT_PROVIDED
    auth_types: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuthSuccess:
    # None when the route does not require auth
    context: AuthContext | None = None


@dataclass(frozen=True)
class AuthFailure:
    kind: AuthFailureKind
    message: str

    @property
    def status_code(self) -> int:
        if self.kind is AuthFailureKind.TOKEN_EXPIRED:
            return HTTP_440_LOGIN_TIMEOUT
        return 401


AuthResult = AuthSuccess | AuthFailure


def requires_auth(auth_types: Sequence[str], check_token: bool) -> bool:
    """Gate runs only if enabled and the route declares an auth type other than "none"."""
    if not check_token or not auth_types:
        return False
    return not all(str(t).strip().lower() == AUTH_TYPE_NONE for t in auth_types)


def extract_bearer_token(header_value: str) -> str | None:
    """Second whitespace-delimited segment of the header ("Bearer <token>")."""
    parts = (header_value or "").split()
    if len(parts) < 2:
        return None
    return parts[1]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list | tuple | set):
        return list(value)
    return [value]


def _decode(token: str, public_key: str | bytes) -> dict[str, Any]:
    return jwt.decode(
        token,
        public_key,
        algorithms=[ALGORITHM],
        options={"verify_exp": True, "verify_aud": False},
    )


async def verify_token(
    token: str,
    public_key: str | bytes | None,
    *,
    operation_id: str,
    timeout: float | None = 5.0,
) -> dict[str, Any] | AuthFailure:
    """
    Verify signature and expiry of a bearer token.

    Returns the payload, or AuthFailure(TOKEN_EXPIRED) for an expired token and
    AuthFailure(TOKEN_INVALID) for anything else (bad signature, malformed token,
    no key configured or an unusable key, verification exceeding ``timeout`` seconds).
    """
    if not public_key:
        return AuthFailure(
            AuthFailureKind.TOKEN_INVALID,
            f"No public key configured to verify token for {operation_id}",
        )
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_decode, token, public_key), timeout
        )
    except ExpiredSignatureError as e:
        return AuthFailure(
            AuthFailureKind.TOKEN_EXPIRED, f"Token expired for {operation_id}: {e}"
        )
    except InvalidTokenError as e:
        return AuthFailure(
            AuthFailureKind.TOKEN_INVALID, f"{type(e).__name__} {e} for {operation_id}"
        )
    except PyJWTError as e:
        # unusable key material (InvalidKeyError)
        _log.error("Cannot verify token for %s: %s", operation_id, e)
        return AuthFailure(
            AuthFailureKind.TOKEN_INVALID,
            f"Token could not be verified for {operation_id}",
        )
    except asyncio.TimeoutError:
        return AuthFailure(
            AuthFailureKind.TOKEN_INVALID,
            f"Token verification timed out for {operation_id}",
        )


def check_claims(
    payload: dict[str, Any],
    client_ip: str,
    *,
    operation_id: str,
    auth_types: Sequence[str],
) -> AuthResult:
    """IpList range check, then build AuthContext from Role / EntityId / EntityType."""
    ip_list = _as_list(payload.get("IpList"))
    if ip_list and not ip_in_allowed_ranges(client_ip, ip_list):
        return AuthFailure(
            AuthFailureKind.IP_NOT_ALLOWED,
            f"IP address is out of the range permitted for {operation_id}",
        )
    return AuthSuccess(
        AuthContext(
            roles=_as_list(payload.get("Role")),
            entity_id=payload.get("EntityId") or NOT_PROVIDED,
            entity_type=payload.get("EntityType") or NOT_PROVIDED,
            auth_types=list(auth_types),
        )
    )


async def check_access(
    request: Request,
    *,
    operation_id: str,
    auth_types: Sequence[str],
    check_token: bool,
    public_key: str | bytes | None,
    notify: NotifySink | None = None,
    timeout: float | None = 5.0,
    trust_forwarded_for: bool = False,
) -> AuthResult:
    """
    Run the gate for one request.

    - Not required (disabled, no x-AuthType, or only "none") -> AuthSuccess(None).
    - No authorization header -> notify(request, None, message) is awaited (its errors are logged), then MISSING_AUTH_HEADER.
    - Token missing from the header, bad or expired -> TOKEN_INVALID / TOKEN_EXPIRED.
    - IpList claim not matching the client IP -> IP_NOT_ALLOWED.
    """
    if not requires_auth(auth_types, check_token):
        return AuthSuccess()

    header = request.headers.get("authorization")
    if header is None:
        message = f"Missing authorization header for {operation_id}"
        if notify is not None:
            try:
                await notify(request, None, message)
            except Exception:
                _log.exception("Failure notification failed for %s", operation_id)
        return AuthFailure(AuthFailureKind.MISSING_AUTH_HEADER, message)

    token = extract_bearer_token(header)
    if not token:
        return AuthFailure(
            AuthFailureKind.TOKEN_INVALID,
            f"Malformed authorization header for {operation_id}",
        )

    verified = await verify_token(
        token, public_key, operation_id=operation_id, timeout=timeout
    )
    if isinstance(verified, AuthFailure):
        return verified

    client_ip = get_client_ip(request, trust_forwarded_for=trust_forwarded_for)
    result = check_claims(
        verified, client_ip, operation_id=operation_id, auth_types=auth_types
    )
    if isinstance(result, AuthSuccess) and result.context is not None:
        _log.debug(
            "Token accepted for %s (EntityType=%s)",
            operation_id,
            result.context.entity_type,
        )
    return result

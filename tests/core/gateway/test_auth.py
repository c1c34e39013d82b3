"""Unit tests for the access control gate: requires_auth, verify_token, check_access."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, Mock, patch

import pytest

from openapi_glue.core.gateway import auth
from openapi_glue.core.gateway.auth import (
    AuthContext,
    AuthFailure,
    AuthFailureKind,
    AuthSuccess,
    check_access,
    extract_bearer_token,
    requires_auth,
    verify_token,
)
from openapi_glue.core.security import generate_key_pair
from tests.utils.tokens import make_token


def _mock_request(authorization: str | None = None, ip: str = "10.1.2.3") -> Mock:
    m = Mock()
    m.headers = {}
    if authorization is not None:
        m.headers["authorization"] = authorization
    m.client = Mock(host=ip)
    return m


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


async def _check(request: Mock, public_key: bytes, **kwargs: Any) -> Any:
    params: dict[str, Any] = {
        "operation_id": "getSecret",
        "auth_types": ["Bearer"],
        "check_token": True,
        "public_key": public_key,
    }
    params.update(kwargs)
    return await check_access(request, **params)


@pytest.mark.parametrize(
    "auth_types,check_token,expected",
    [
        (["Bearer"], True, True),
        (["Bearer"], False, False),
        ([], True, False),
        (["None"], True, False),
        (["none", "NONE"], True, False),
        (["None", "Bearer"], True, True),
    ],
)
def test_requires_auth(auth_types: list[str], check_token: bool, expected: bool) -> None:
    assert requires_auth(auth_types, check_token) is expected


def test_extract_bearer_token() -> None:
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
    assert extract_bearer_token("Bearer   abc") == "abc"
    assert extract_bearer_token("abc") is None
    assert extract_bearer_token("") is None


def test_failure_status_codes() -> None:
    assert AuthFailure(AuthFailureKind.TOKEN_EXPIRED, "x").status_code == 440
    for kind in (
        AuthFailureKind.MISSING_AUTH_HEADER,
        AuthFailureKind.TOKEN_INVALID,
        AuthFailureKind.IP_NOT_ALLOWED,
    ):
        assert AuthFailure(kind, "x").status_code == 401


def test_not_required_skips_everything(public_key: bytes) -> None:
    notify = AsyncMock()
    out = _run(_check(_mock_request(), public_key, auth_types=["None"], notify=notify))
    assert out == AuthSuccess()
    notify.assert_not_awaited()


def test_disabled_gate_skips(public_key: bytes) -> None:
    out = _run(_check(_mock_request(), public_key, check_token=False))
    assert isinstance(out, AuthSuccess) and out.context is None


def test_missing_header_notifies_then_fails(public_key: bytes) -> None:
    request = _mock_request()
    notify = AsyncMock()
    out = _run(_check(request, public_key, notify=notify))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.MISSING_AUTH_HEADER
    assert out.message == "Missing authorization header for getSecret"
    notify.assert_awaited_once_with(request, None, out.message)


def test_failing_notify_sink_still_fails_closed(
    public_key: bytes, caplog: pytest.LogCaptureFixture
) -> None:
    notify = AsyncMock(side_effect=RuntimeError("mq down"))
    out = _run(_check(_mock_request(), public_key, notify=notify))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.MISSING_AUTH_HEADER
    assert out.status_code == 401
    notify.assert_awaited_once()
    assert "Failure notification failed for getSecret" in caplog.text


def test_header_without_token(public_key: bytes) -> None:
    out = _run(_check(_mock_request("Bearer"), public_key))
    assert isinstance(out, AuthFailure) and out.kind is AuthFailureKind.TOKEN_INVALID


def test_valid_token(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key, Role=["admin"], EntityId=7, EntityType="user")
    out = _run(_check(_mock_request(f"Bearer {token}"), public_key))
    assert out == AuthSuccess(
        AuthContext(roles=["admin"], entity_id=7, entity_type="user", auth_types=["Bearer"])
    )


def test_valid_token_defaults(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key, Role="reader")
    out = _run(_check(_mock_request(f"Bearer {token}"), public_key))
    assert isinstance(out, AuthSuccess) and out.context is not None
    assert out.context.roles == ["reader"]
    assert out.context.entity_id == "not provided"
    assert out.context.entity_type == "not provided"


def test_expired_token(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key, seconds=-60, Role=["admin"])
    out = _run(_check(_mock_request(f"Bearer {token}"), public_key))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.TOKEN_EXPIRED
    assert out.status_code == 440
    assert "expired" in out.message.split()
    assert "getSecret" in out.message


def test_token_signed_with_other_key(public_key: bytes) -> None:
    other_private, _ = generate_key_pair()
    token = make_token(other_private, Role=["admin"])
    out = _run(_check(_mock_request(f"Bearer {token}"), public_key))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.TOKEN_INVALID
    assert out.message.endswith("for getSecret")


def test_malformed_token(public_key: bytes) -> None:
    out = _run(_check(_mock_request("Bearer not-a-jwt"), public_key))
    assert isinstance(out, AuthFailure) and out.kind is AuthFailureKind.TOKEN_INVALID


def test_no_public_key(private_key: bytes) -> None:
    token = make_token(private_key)
    out = _run(_check(_mock_request(f"Bearer {token}"), None))  # type: ignore[arg-type]
    assert isinstance(out, AuthFailure) and out.kind is AuthFailureKind.TOKEN_INVALID


def test_unusable_public_key(private_key: bytes) -> None:
    token = make_token(private_key, Role=["admin"])
    out = _run(_check(_mock_request(f"Bearer {token}"), b"not a pem key"))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.TOKEN_INVALID
    assert out.message == "Token could not be verified for getSecret"


def test_hs256_token_rejected(public_key: bytes) -> None:
    """Only RS256 is accepted; a symmetric token never verifies."""
    import jwt

    token = jwt.encode({"Role": "admin"}, "secret", algorithm="HS256")
    out = _run(_check(_mock_request(f"Bearer {token}"), public_key))
    assert isinstance(out, AuthFailure) and out.kind is AuthFailureKind.TOKEN_INVALID


def test_ip_inside_allowed_range(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key, IpList=["192.168.0.0/16", "10.0.0.0/8"])
    out = _run(_check(_mock_request(f"Bearer {token}", ip="10.1.2.3"), public_key))
    assert isinstance(out, AuthSuccess)


def test_ip_outside_allowed_range(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key, IpList=["192.168.0.0/16"])
    out = _run(_check(_mock_request(f"Bearer {token}", ip="10.1.2.3"), public_key))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.IP_NOT_ALLOWED
    assert out.status_code == 401


def test_empty_ip_list_allows_any(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key, IpList=[])
    out = _run(_check(_mock_request(f"Bearer {token}", ip="203.0.113.9"), public_key))
    assert isinstance(out, AuthSuccess)


def test_verify_timeout_is_invalid(private_key: bytes, public_key: bytes) -> None:
    token = make_token(private_key)

    def _slow(*args: Any) -> dict[str, Any]:
        import time

        time.sleep(0.5)
        return {}

    with patch.object(auth, "_decode", _slow):
        out = _run(verify_token(token, public_key, operation_id="op", timeout=0.05))
    assert isinstance(out, AuthFailure)
    assert out.kind is AuthFailureKind.TOKEN_INVALID
    assert "timed out" in out.message

from datetime import timedelta
from typing import Any

from openapi_glue.core.security import create_access_token


def make_token(private_key: bytes, seconds: int = 3600, **claims: Any) -> str:
    return create_access_token(private_key, timedelta(seconds=seconds), **claims)


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

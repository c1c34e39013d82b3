from collections.abc import Callable
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from openapi_glue.core.config import GlueConfig
from openapi_glue.core.gateway import register_routes
from openapi_glue.core.security import generate_key_pair
from openapi_glue.main import install_exception_handlers
from tests.utils.routes import route_table
from tests.utils.service import build_service


@pytest.fixture(scope="session")
def key_pair() -> tuple[bytes, bytes]:
    return generate_key_pair()


@pytest.fixture(scope="session")
def private_key(key_pair: tuple[bytes, bytes]) -> bytes:
    return key_pair[0]


@pytest.fixture(scope="session")
def public_key(key_pair: tuple[bytes, bytes]) -> bytes:
    return key_pair[1]


@pytest.fixture
def make_client(public_key: bytes) -> Callable[..., TestClient]:
    """Build a fresh app from the test route table; keyword args override GlueConfig fields."""

    def _make(**overrides: Any) -> TestClient:
        values: dict[str, Any] = {
            "specification": route_table(),
            "service": build_service(),
            "public_key": public_key,
            "check_token": True,
        }
        values.update(overrides)
        app = FastAPI()
        install_exception_handlers(app)
        register_routes(app, GlueConfig(**values))
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()

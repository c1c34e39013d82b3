"""Bind a parsed OpenAPI route table to service handlers on a FastAPI app."""

from openapi_glue.core.config import GlueConfig
from openapi_glue.core.errors import (
    ConfigError,
    GlueError,
    RequestValidationFailure,
    ResolutionGap,
    ResponseValidationFailure,
)
from openapi_glue.core.gateway import (
    AuthContext,
    GlueAssembler,
    MeterCounter,
    MetricsSink,
    RouteSpec,
    RouteTable,
    register_routes,
)

__all__ = [
    "AuthContext",
    "ConfigError",
    "GlueAssembler",
    "GlueConfig",
    "GlueError",
    "MeterCounter",
    "MetricsSink",
    "RequestValidationFailure",
    "ResolutionGap",
    "ResponseValidationFailure",
    "RouteSpec",
    "RouteTable",
    "register_routes",
]

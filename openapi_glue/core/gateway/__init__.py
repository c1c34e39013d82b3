"""
Gateway: route table, resolver, access gate, validation, assembler.
"""

from openapi_glue.core.gateway.assembler import GlueAssembler, register_routes
from openapi_glue.core.gateway.auth import (
    AuthContext,
    AuthFailure,
    AuthFailureKind,
    AuthSuccess,
    check_access,
)
from openapi_glue.core.gateway.firewall import ip_in_allowed_ranges
from openapi_glue.core.gateway.metrics import Counter, MeterCounter, MetricsSink
from openapi_glue.core.gateway.resolver import (
    Resolution,
    ServiceRegistry,
    load_service,
    resolve,
)
from openapi_glue.core.gateway.route_table import RouteSpec, RouteTable, load_route_table
from openapi_glue.core.gateway.schema import strip_response_formats
from openapi_glue.core.gateway.validation import validate_request, validate_response

__all__ = [
    "AuthContext",
    "AuthFailure",
    "AuthFailureKind",
    "AuthSuccess",
    "Counter",
    "GlueAssembler",
    "MeterCounter",
    "MetricsSink",
    "Resolution",
    "RouteSpec",
    "RouteTable",
    "ServiceRegistry",
    "check_access",
    "ip_in_allowed_ranges",
    "load_route_table",
    "load_service",
    "register_routes",
    "resolve",
    "strip_response_formats",
    "validate_request",
    "validate_response",
]

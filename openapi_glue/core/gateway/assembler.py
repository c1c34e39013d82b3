"""
Route assembler: bind the parsed route table to the service and register it.

Per route, in table order:
normalize response schema -> resolve handler (or stub) -> pre-validation hook
(metrics, controller name, access gate) -> add_api_route under the table prefix.

Per request the generated endpoint runs:
pre-validation hook -> request validation -> handler -> response rendering/validation.

Only ConfigError (bad service, bad route table) stops registration; an operation
without implementation gets a stub that raises ResolutionGap when called.
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool

from openapi_glue.core.config import GlueConfig
from openapi_glue.core.errors import ConfigError, ResolutionGap
from openapi_glue.core.gateway.auth import AuthFailure, check_access
from openapi_glue.core.gateway.notify import log_failure
from openapi_glue.core.gateway.request_response import auth_error, render_result
from openapi_glue.core.gateway.resolver import (
    Resolution,
    ServiceRegistry,
    load_service,
    resolve,
    split_namespace,
)
from openapi_glue.core.gateway.route_table import (
    Handler,
    PreValidationHook,
    RouteSpec,
    RouteTable,
    load_route_table,
)
from openapi_glue.core.gateway.schema import strip_response_formats
from openapi_glue.core.gateway.validation import validate_request, validate_response

_log = logging.getLogger(__name__)


def _bind_handler(fn: Callable[..., Any]) -> Handler:
    """Call the service callable with (request, response); sync callables run in the threadpool."""

    async def handler(request: Request, response: Response) -> Any:
        if inspect.iscoroutinefunction(fn):
            return await fn(request, response)
        result = await run_in_threadpool(fn, request, response)
        if inspect.isawaitable(result):
            result = await result
        return result

    return handler


def _stub_handler(operation_id: str) -> Handler:
    async def not_implemented(request: Request, response: Response) -> Any:
        raise ResolutionGap(operation_id)

    return not_implemented


class GlueAssembler:
    """
    Loads the route table and the service once, then binds and registers routes.

    Raises ConfigError from __init__ when either source is unusable.
    """

    def __init__(self, config: GlueConfig) -> None:
        self.config = config
        self.table: RouteTable = load_route_table(config.specification)
        self.registry: ServiceRegistry = load_service(config.service)
        self.notify = config.notify or log_failure

    @property
    def prefix(self) -> str:
        return self.table.prefix or ""

    def bind(self, route: RouteSpec) -> RouteSpec:
        """Return a copy of route with normalized response schema, handler and hook filled in."""
        response_schema = route.response_schema
        if response_schema:
            response_schema = strip_response_formats(
                response_schema, self.config.unsupported_formats
            )

        resolution = resolve(self.registry, route, self.table.prefix)
        if resolution is not None:
            _log.debug(
                "service has %s (%s) for %s",
                resolution.key,
                resolution.strategy,
                route.operation_id,
            )
            handler = _bind_handler(resolution.handler)
        else:
            _log.error("Operation %s not implemented", route.operation_id)
            handler = _stub_handler(route.operation_id)

        return replace(
            route,
            response_schema=response_schema,
            handler=handler,
            pre_validation=self._pre_validation(route, resolution),
        )

    def _pre_validation(
        self, route: RouteSpec, resolution: Resolution | None
    ) -> PreValidationHook:
        config = self.config
        controller_name = resolution.key if resolution else route.operation_id
        namespace, method = split_namespace(route.url, self.table.prefix)
        auth_types = route.auth_types
        notify = self.notify

        async def pre_validation(request: Request) -> Response | None:
            """Returns a 401/440 response to finish the request, or None to continue."""
            if config.metrics is not None:
                config.metrics.mark_total(route.operation_id, namespace + method)
            request.state.controller_name = controller_name
            request.state.route_spec = route
            request.state.auth_types = auth_types

            result = await check_access(
                request,
                operation_id=route.operation_id,
                auth_types=auth_types,
                check_token=config.check_token,
                public_key=config.public_key,
                notify=notify,
                timeout=config.token_verify_timeout,
                trust_forwarded_for=config.trust_forwarded_for,
            )
            if isinstance(result, AuthFailure):
                _log.warning(
                    "Access denied (%s) for %s: %s",
                    result.kind.value,
                    route.operation_id,
                    result.message,
                )
                return auth_error(result.status_code, result.message)
            request.state.auth = result.context
            return None

        return pre_validation

    def _endpoint(self, route: RouteSpec) -> Callable[..., Any]:
        validate_responses = self.config.validate_responses
        hook = route.pre_validation
        handler = route.handler
        if hook is None or handler is None:
            raise ConfigError(f"Route {route.operation_id} must be bound before registration")

        async def endpoint(request: Request, response: Response) -> Response:
            denied = await hook(request)
            if denied is not None:
                return denied
            request.state.validated = await validate_request(
                request, route.request_schema
            )
            result = await handler(request, response)
            out = render_result(result, response)
            if validate_responses and not isinstance(result, Response):
                validate_response(
                    route.response_schema,
                    out.status_code,
                    jsonable_encoder(result),
                    operation_id=route.operation_id,
                )
            return out

        endpoint.__name__ = route.operation_id
        return endpoint

    def build(self) -> list[RouteSpec]:
        """Bind every route in table order."""
        return [self.bind(route) for route in self.table]

    def register(self, target: FastAPI | APIRouter) -> list[RouteSpec]:
        """Register all bound routes on target under the table prefix. Returns the bound routes."""
        routes = self.build()
        router = APIRouter(prefix=self.prefix)
        for route in routes:
            router.add_api_route(
                route.url,
                self._endpoint(route),
                methods=[route.method],
                name=route.operation_id,
                operation_id=route.operation_id,
                openapi_extra=route.extensions or None,
            )
        target.include_router(router)
        _log.info(
            "Registered %d routes (prefix=%r, check_token=%s)",
            len(routes),
            self.prefix,
            self.config.check_token,
        )
        return routes


def register_routes(target: FastAPI | APIRouter, config: GlueConfig) -> list[RouteSpec]:
    """Load, bind and register the route table described by config on target."""
    return GlueAssembler(config).register(target)

"""
Service resolver: operation -> handler callable.

Lookup order (first match wins):
1. Direct key: service[operationId].
2. Namespaced: URL /{Namespace}/{Method}/... -> service[namespace.lower()][Namespace + Method].

Nothing found -> None; the assembler installs a stub handler. The resolver never raises.
"""

import importlib
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Protocol

from openapi_glue.core.errors import ConfigError
from openapi_glue.core.gateway.route_table import RouteSpec

_log = logging.getLogger(__name__)

INVALID_SERVICE = "'service' parameter must refer to an object"


class ServiceRegistry:
    """Read-only view over the caller's service: a mapping or an object with attributes."""

    __slots__ = ("_service",)

    def __init__(self, service: Any) -> None:
        if service is None or isinstance(service, str | bytes | int | float | bool):
            raise ConfigError(INVALID_SERVICE)
        self._service = service

    @property
    def service(self) -> Any:
        return self._service

    def get(self, key: str) -> Any:
        return _lookup(self._service, key)


def _lookup(container: Any, key: str) -> Any:
    if not key:
        return None
    if isinstance(container, Mapping):
        return container.get(key)
    if key.startswith("_"):
        return None
    return getattr(container, key, None)


def load_service(source: Any) -> ServiceRegistry:
    """
    Resolve the service provider once, before any route is resolved.

    - "package.module" or "package.module:attr": imported (attr defaults to the module).
    - callable (factory / class): called without arguments.
    - anything else: used as the service object.
    """
    if isinstance(source, ServiceRegistry):
        return source
    if isinstance(source, str):
        module_name, _, attr = source.partition(":")
        try:
            module: ModuleType = importlib.import_module(module_name)
            service = getattr(module, attr) if attr else module
        except (ImportError, AttributeError) as e:
            raise ConfigError(f"failed to load {source}") from e
    elif callable(source) and not isinstance(source, Mapping | ModuleType):
        service = source()
    else:
        service = source
    return ServiceRegistry(service)


@dataclass(frozen=True)
class Resolution:
    """A resolved handler and the key it was found under (the controller name)."""

    key: str
    handler: Callable[..., Any]
    strategy: str


def split_namespace(url: str, prefix: str | None = None) -> tuple[str, str]:
    """
    First and second URL segments after the optional prefix.

    "/Widget/List/{id}" -> ("Widget", "List"); missing segments are "".
    """
    path = url or ""
    if prefix and path.startswith(prefix.rstrip("/") + "/"):
        path = path[len(prefix.rstrip("/")):]
    parts = path.split("/")
    namespace = parts[1] if len(parts) > 1 else ""
    method = parts[2] if len(parts) > 2 else ""
    return namespace, method


class LookupStrategy(Protocol):
    name: str

    def find(
        self, registry: ServiceRegistry, route: RouteSpec, prefix: str | None
    ) -> Resolution | None: ...


class DirectKeyLookup:
    name = "direct"

    def find(
        self, registry: ServiceRegistry, route: RouteSpec, prefix: str | None
    ) -> Resolution | None:
        fn = registry.get(route.operation_id)
        if callable(fn):
            return Resolution(route.operation_id, fn, self.name)
        return None


class NamespacedLookup:
    name = "namespaced"

    def find(
        self, registry: ServiceRegistry, route: RouteSpec, prefix: str | None
    ) -> Resolution | None:
        namespace, method = split_namespace(route.url, prefix)
        # {param} segments never name a handler group
        if not namespace or namespace.startswith("{"):
            return None
        group = registry.get(namespace.lower())
        if group is None:
            return None
        key = namespace + method
        fn = _lookup(group, key)
        if callable(fn):
            return Resolution(key, fn, self.name)
        return None


DEFAULT_STRATEGIES: tuple[LookupStrategy, ...] = (DirectKeyLookup(), NamespacedLookup())


def resolve(
    registry: ServiceRegistry,
    route: RouteSpec,
    prefix: str | None = None,
    strategies: tuple[LookupStrategy, ...] = DEFAULT_STRATEGIES,
) -> Resolution | None:
    """Resolve route to a handler; None when no strategy matches."""
    for strategy in strategies:
        try:
            found = strategy.find(registry, route, prefix)
        except Exception:
            # A misbehaving service (e.g. raising __getattr__) counts as no match
            _log.exception(
                "Lookup %s failed for %s", strategy.name, route.operation_id
            )
            continue
        if found is not None:
            return found
    return None

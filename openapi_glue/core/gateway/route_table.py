"""
Route table: RouteSpec / RouteTable and loading of the parser output.

The OpenAPI parser is not part of this package. It hands over one entry per
operation, either as RouteSpec objects or as plain dicts shaped like::

    {"prefix": "/v2",
     "routes": [{"operationId": "getWidget", "url": "/widget/{id}", "method": "GET",
                 "schema": {"params": {...}, "querystring": {...}, "headers": {...},
                            "body": {...}, "response": {"200": {...}}},
                 "openapiSource": {"x-AuthType": ["Bearer"], ...}}]}

snake_case keys (operation_id, request_schema, response_schema, openapi_source)
are accepted as well.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from openapi_glue.core.errors import ConfigError

_log = logging.getLogger(__name__)

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})
REQUEST_SECTIONS = ("params", "querystring", "headers", "body")

INVALID_TABLE = "'specification' parameter must contain a valid route table"

PreValidationHook = Callable[[Any], Awaitable[Any]]
Handler = Callable[[Any, Any], Awaitable[Any]]


@dataclass(frozen=True)
class RouteSpec:
    operation_id: str
    url: str
    method: str
    request_schema: Mapping[str, Any] | None = None
    response_schema: Mapping[str, Any] | None = None
    openapi_source: Mapping[str, Any] = field(default_factory=dict)
    pre_validation: PreValidationHook | None = None
    handler: Handler | None = None

    @property
    def auth_types(self) -> list[str]:
        """Declared x-AuthType values; a single string is treated as a one-item list."""
        raw = self.openapi_source.get("x-AuthType")
        if raw is None:
            return []
        if isinstance(raw, str):
            return [raw]
        return [str(x) for x in raw]

    @property
    def extensions(self) -> dict[str, Any]:
        """x- properties of the source operation."""
        return {k: v for k, v in self.openapi_source.items() if k.startswith("x-")}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RouteSpec:
        if not isinstance(data, Mapping):
            raise ConfigError(INVALID_TABLE)
        schema = data.get("schema") or {}
        if not isinstance(schema, Mapping):
            raise ConfigError(INVALID_TABLE)
        operation_id = data.get("operationId") or data.get("operation_id") or schema.get("operationId")
        url = data.get("url")
        method = str(data.get("method") or "").upper()
        if not isinstance(url, str) or not url.startswith("/") or method not in HTTP_METHODS:
            raise ConfigError(INVALID_TABLE)
        if not operation_id:
            # Operations without operationId still get a (stub) route
            operation_id = f"{method.lower()}{url}"

        request_schema = data.get("request_schema")
        if request_schema is None:
            request_schema = {k: schema[k] for k in REQUEST_SECTIONS if schema.get(k)} or None
        response_schema = data.get("response_schema", schema.get("response"))
        source = data.get("openapi_source", data.get("openapiSource")) or {}
        return cls(
            operation_id=str(operation_id),
            url=url,
            method=method,
            request_schema=request_schema,
            response_schema=response_schema,
            openapi_source=dict(source),
        )


@dataclass(frozen=True)
class RouteTable:
    routes: tuple[RouteSpec, ...]
    prefix: str | None = None

    def __iter__(self):
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | Sequence[Any]) -> RouteTable:
        if isinstance(data, Mapping):
            routes = data.get("routes")
            prefix = data.get("prefix") or None
        else:
            routes, prefix = data, None
        if not isinstance(routes, Sequence) or isinstance(routes, str | bytes):
            raise ConfigError(INVALID_TABLE)
        if prefix is not None and not isinstance(prefix, str):
            raise ConfigError(INVALID_TABLE)
        specs = tuple(r if isinstance(r, RouteSpec) else RouteSpec.from_dict(r) for r in routes)
        _warn_duplicates(specs)
        if prefix:
            # "v2" and "/v2/" both mount under "/v2"
            prefix = "/" + prefix.strip("/") if prefix.strip("/") else None
        return cls(routes=specs, prefix=prefix)


def _warn_duplicates(routes: Sequence[RouteSpec]) -> None:
    seen: set[str] = set()
    for r in routes:
        if r.operation_id in seen:
            _log.warning("Duplicate operationId %s in route table", r.operation_id)
        seen.add(r.operation_id)


def _read_file(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to load {path}") from e
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(INVALID_TABLE) from e


def load_route_table(source: Any) -> RouteTable:
    """
    Load the parsed route table once, before registration.

    - RouteTable: returned as is.
    - str / Path: JSON or YAML file (by suffix; anything but .yaml/.yml is read as JSON).
    - callable: called without arguments, result loaded again.
    - mapping with "routes" (and optional "prefix"), or a list of routes.

    Raises ConfigError for anything else or for malformed routes.
    """
    if isinstance(source, RouteTable):
        return source
    if isinstance(source, str | Path):
        source = _read_file(Path(source))
    elif callable(source):
        source = source()
        if isinstance(source, RouteTable):
            return source
    if not isinstance(source, Mapping | list | tuple):
        raise ConfigError(INVALID_TABLE)
    table = RouteTable.from_dict(source)
    _log.debug("Loaded route table: %d routes, prefix=%r", len(table), table.prefix)
    return table

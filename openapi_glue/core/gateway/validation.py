"""
Request/response validation against the route's JSON schemas.

Checking is done by ``jsonschema`` (draft 4 rules, which OpenAPI 3.0 schemas
follow) extended with the ``nullable`` keyword and a format checker that knows
the OpenAPI ``int32`` / ``int64`` formats.

Request side (after the gate): before checking, a preparation pass coerces the
string inputs of path params, query string and headers to the declared types,
fills in defaults and removes undeclared properties where
``additionalProperties`` is false. Response side: the handler's body is
checked, without preparation, against the schema of the returned status code
(or "default").
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft4Validator, FormatChecker, ValidationError, validators
from starlette.requests import Request

from openapi_glue.core.errors import (
    RequestValidationFailure,
    ResponseValidationFailure,
)
from openapi_glue.core.gateway.request_response import read_body

INT32_RANGE = (-(2**31), 2**31 - 1)
INT64_RANGE = (-(2**63), 2**63 - 1)


class _Invalid(ValueError):
    pass


# ---------------------------------------------------------------------------
# Validator: draft 4 + nullable + OpenAPI integer formats
# ---------------------------------------------------------------------------


def _in_range(instance: Any, bounds: tuple[int, int]) -> bool:
    if not isinstance(instance, int) or isinstance(instance, bool):
        return True
    low, high = bounds
    return low <= instance <= high


FORMAT_CHECKER = FormatChecker()


@FORMAT_CHECKER.checks("int32")
def _is_int32(instance: Any) -> bool:
    return _in_range(instance, INT32_RANGE)


@FORMAT_CHECKER.checks("int64")
def _is_int64(instance: Any) -> bool:
    return _in_range(instance, INT64_RANGE)


_draft4_type = Draft4Validator.VALIDATORS["type"]


def _nullable_type(
    validator: Any, types: Any, instance: Any, schema: Mapping[str, Any]
) -> Iterator[ValidationError]:
    if instance is None and schema.get("nullable") is True:
        return
    yield from _draft4_type(validator, types, instance, schema)


OpenAPISchemaValidator = validators.extend(
    Draft4Validator, validators={"type": _nullable_type}
)


def _format_path(prefix: str, error: ValidationError) -> str:
    path = prefix
    for part in error.absolute_path:
        if isinstance(part, int):
            path = f"{path}[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def _messages(prefix: str, error: ValidationError) -> list[str]:
    path = _format_path(prefix, error)
    if error.validator == "required" and isinstance(error.instance, Mapping):
        # one error per missing name; the path is the parent object's
        return [
            f"{path}.{name}: is required" if path else f"{name}: is required"
            for name in error.validator_value
            if name not in error.instance
        ]
    return [f"{path}: {error.message}" if path else error.message]


def check(schema: Mapping[str, Any], value: Any, *, path: str = "") -> list[str]:
    """Check value against schema; returns one message per problem."""
    validator = OpenAPISchemaValidator(schema, format_checker=FORMAT_CHECKER)
    out: dict[str, None] = {}
    for error in validator.iter_errors(value):
        for message in _messages(path, error):
            out.setdefault(message)
    return list(out)


# ---------------------------------------------------------------------------
# Preparation (string inputs from path / query / headers, loose JSON bodies)
# ---------------------------------------------------------------------------


def _coerce_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise _Invalid("expected integer, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise _Invalid(f"expected integer, got {value}")
        return int(value)
    s = str(value).strip()
    try:
        return int(s)
    except ValueError:
        pass
    try:
        x = float(s)
    except ValueError as e:
        raise _Invalid(f"expected integer, got {s!r}") from e
    if not x.is_integer():
        raise _Invalid(f"expected integer, got {s!r}")
    return int(x)


def _coerce_number(value: Any) -> int | float:
    if isinstance(value, bool):
        raise _Invalid("expected number, got boolean")
    if isinstance(value, int | float):
        return value
    s = str(value).strip()
    try:
        x = float(s)
    except ValueError as e:
        raise _Invalid(f"expected number, got {s!r}") from e
    return int(x) if x.is_integer() and "." not in s and "e" not in s.lower() else x


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float) and value in (0, 1):
        return bool(value)
    s = str(value).strip().lower()
    if s == "true":
        return True
    if s == "false":
        return False
    raise _Invalid(f"expected boolean, got {value!r}")


def _coerce_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    raise _Invalid(f"expected string, got {type(value).__name__}")


def _coerce_null(value: Any) -> None:
    if value is None or value == "":
        return None
    raise _Invalid(f"expected null, got {value!r}")


_COERCERS = {
    "integer": _coerce_integer,
    "number": _coerce_number,
    "boolean": _coerce_boolean,
    "string": _coerce_string,
    "null": _coerce_null,
}


def _matches_type(value: Any, type_name: str) -> bool:
    if type_name == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if type_name == "number":
        return isinstance(value, int | float) and not isinstance(value, bool)
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "array":
        return isinstance(value, list)
    if type_name == "object":
        return isinstance(value, dict)
    if type_name == "null":
        return value is None
    return True


def _types_of(schema: Mapping[str, Any]) -> list[str]:
    t = schema.get("type")
    types = [t] if isinstance(t, str) else list(t or [])
    if types and schema.get("nullable") and "null" not in types:
        types.append("null")
    return types



def _coerce(value: Any, types: list[str]) -> Any:
    for t in types:
        fn = _COERCERS.get(t)
        if fn is None:
            if t == "array" and not isinstance(value, dict):
                return [value]
            continue
        try:
            return fn(value)
        except _Invalid:
            continue
    # left as is; the validator reports the type mismatch
    return value


@dataclass(frozen=True)
class _Options:
    coerce: bool
    defaults: bool
    remove_additional: bool


def _prepare(schema: Any, value: Any, opts: _Options) -> Any:
    if not isinstance(schema, Mapping) or not schema:
        return value

    for sub in schema.get("allOf") or []:
        value = _prepare(sub, value, opts)

    types = _types_of(schema)
    if opts.coerce and types and not any(_matches_type(value, t) for t in types):
        value = _coerce(value, types)

    if isinstance(value, list):
        items = schema.get("items")
        if isinstance(items, Mapping):
            value = [_prepare(items, v, opts) for v in value]
    elif isinstance(value, dict):
        value = _prepare_object(schema, value, opts)
    return value


def _prepare_object(
    schema: Mapping[str, Any], value: dict[str, Any], opts: _Options
) -> dict[str, Any]:
    props: Mapping[str, Any] = schema.get("properties") or {}
    additional = schema.get("additionalProperties", True)
    out = dict(value)

    if opts.defaults:
        for name, sub in props.items():
            if name not in out and isinstance(sub, Mapping) and "default" in sub:
                out[name] = sub["default"]

    for name in list(out):
        if name in props:
            out[name] = _prepare(props[name], out[name], opts)
        elif additional is False:
            if opts.remove_additional:
                del out[name]
        elif isinstance(additional, Mapping):
            out[name] = _prepare(additional, out[name], opts)
    return out


def validate(
    schema: Any,
    value: Any,
    *,
    path: str = "",
    coerce: bool = False,
    defaults: bool = False,
    remove_additional: bool = False,
) -> tuple[Any, list[str]]:
    """Prepare then check one value against a schema. Returns (value, errors)."""
    if not isinstance(schema, Mapping) or not schema:
        return value, []
    opts = _Options(coerce=coerce, defaults=defaults, remove_additional=remove_additional)
    out = _prepare(schema, value, opts)
    return out, check(schema, out, path=path)


# ---------------------------------------------------------------------------
# Request / response entry points
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidatedRequest:
    params: dict[str, Any]
    query: dict[str, Any]
    headers: dict[str, Any]
    body: Any


def _query_values(request: Request, schema: Mapping[str, Any] | None) -> dict[str, Any]:
    """Query params as a dict; array-typed properties get every repeated value."""
    props = (schema or {}).get("properties") or {}
    out: dict[str, Any] = {}
    for key in request.query_params.keys():
        prop = props.get(key) or {}
        if "array" in _types_of(prop):
            values = request.query_params.getlist(key)
            # ?ids=1,2,3 form
            if len(values) == 1 and "," in values[0]:
                values = values[0].split(",")
            out[key] = values
        else:
            out[key] = request.query_params.get(key)
    return out


def _header_values(request: Request, schema: Mapping[str, Any] | None) -> dict[str, Any]:
    """Headers declared in the schema, matched case-insensitively, keyed as declared."""
    props = (schema or {}).get("properties") or {}
    out: dict[str, Any] = {}
    for name in props:
        v = request.headers.get(name)
        if v is not None:
            out[name] = v
    return out


async def validate_request(
    request: Request, request_schema: Mapping[str, Any] | None
) -> ValidatedRequest:
    """
    Coerce and check path params, query string, headers and body.

    Raises RequestValidationFailure listing every problem found.
    """
    schema = request_schema or {}
    errors: list[str] = []

    def _section(name: str, raw: Any) -> Any:
        sub = schema.get(name)
        if not sub:
            return raw
        value, errs = validate(
            sub, raw, path=name, coerce=True, defaults=True, remove_additional=True
        )
        errors.extend(errs)
        return value

    params = _section("params", dict(request.path_params))
    query = _section("querystring", _query_values(request, schema.get("querystring")))
    headers = _section("headers", _header_values(request, schema.get("headers")))

    body = await read_body(request)
    body_schema = schema.get("body")
    if body_schema:
        if body is not None:
            body = _section("body", body)
        elif request.method not in ("GET", "HEAD", "DELETE", "OPTIONS"):
            errors.append("body: is required")

    if errors:
        raise RequestValidationFailure("; ".join(errors))
    return ValidatedRequest(params=params, query=query, headers=headers, body=body)


def response_schema_for(
    response_schema: Mapping[str, Any] | None, status_code: int
) -> Mapping[str, Any] | None:
    """Schema for a status code: exact ("200"/200), then "2XX" range, then "default"."""
    if not response_schema:
        return None
    for key in (str(status_code), status_code, f"{str(status_code)[0]}XX", "default"):
        found = response_schema.get(key)  # type: ignore[call-overload]
        if found is not None:
            return found
    return None


def validate_response(
    response_schema: Mapping[str, Any] | None,
    status_code: int,
    body: Any,
    *,
    operation_id: str,
) -> None:
    """Raise ResponseValidationFailure when body does not match the status code's schema."""
    schema = response_schema_for(response_schema, status_code)
    if not schema:
        return
    errors = check(schema, body, path="response")
    if errors:
        raise ResponseValidationFailure(
            f"Invalid response for {operation_id} ({status_code}): " + "; ".join(errors)
        )

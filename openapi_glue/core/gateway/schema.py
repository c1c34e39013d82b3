"""
Response schema normalization.

Response bodies are checked by a validator that does not know the OpenAPI
integer formats, so ``format: int32`` / ``format: int64`` are dropped from
response schemas before they are attached to a route. Request schemas keep them.
"""

from collections.abc import Iterable
from typing import Any

UNSUPPORTED_FORMATS: frozenset[str] = frozenset({"int32", "int64"})


def strip_response_formats(
    schema: Any,
    unsupported: Iterable[str] = UNSUPPORTED_FORMATS,
) -> Any:
    """
    Return a copy of ``schema`` with unsupported ``format`` values removed.

    Every mapping in the tree is visited, the root included. The input is not
    modified. Schemas are expected to be acyclic JSON-schema trees; a node seen
    twice (shared $ref target or a cycle) is copied once and reused.
    """
    drop = frozenset(unsupported)
    memo: dict[int, Any] = {}

    def _walk(node: Any) -> Any:
        if not isinstance(node, dict | list):
            return node
        seen = memo.get(id(node))
        if seen is not None:
            return seen
        if isinstance(node, list):
            out_list: list[Any] = []
            memo[id(node)] = out_list
            out_list.extend(_walk(x) for x in node)
            return out_list
        out: dict[str, Any] = {}
        memo[id(node)] = out
        for k, v in node.items():
            if k == "format" and isinstance(v, str) and v in drop:
                continue
            out[k] = _walk(v)
        return out

    return _walk(schema)


def has_unsupported_format(
    schema: Any, unsupported: Iterable[str] = UNSUPPORTED_FORMATS
) -> bool:
    """True if any mapping in the tree still carries an unsupported format."""
    drop = frozenset(unsupported)
    stack = [schema]
    seen: set[int] = set()
    while stack:
        node = stack.pop()
        if not isinstance(node, dict | list) or id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, dict):
            if node.get("format") in drop:
                return True
            stack.extend(node.values())
        else:
            stack.extend(node)
    return False

"""Convert pydantic input contracts into MCP ``inputSchema`` objects."""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel

type JSONSchema = dict[str, Any]

_REF_PREFIX = "#/$defs/"
_SCHEMA_LIST_KEYS = ("anyOf", "oneOf", "allOf", "prefixItems")
_SCHEMA_VALUE_KEYS = ("items", "additionalProperties", "not", "contains")


def empty_object_schema() -> JSONSchema:
    return {"type": "object", "properties": {}}


def input_schema_for(contract: type[BaseModel] | None) -> JSONSchema:
    """Render ``contract`` as a self-contained object schema.

    All ``$ref`` pointers are inlined, pydantic's generated titles are
    dropped, and nullable optional properties are collapsed to their
    non-null type. Anything that does not resolve to an object schema
    becomes an empty object schema.
    """
    if contract is None:
        return empty_object_schema()

    raw = contract.model_json_schema()
    definitions = raw.pop("$defs", {})
    schema = _inline(raw, definitions, frozenset())
    if not isinstance(schema, dict) or schema.get("type") != "object":
        return empty_object_schema()
    schema.setdefault("properties", {})
    return schema


def _inline(node: Any, definitions: dict[str, Any], resolving: frozenset[str]) -> Any:
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith(_REF_PREFIX):
        name = ref[len(_REF_PREFIX) :]
        if name in resolving or name not in definitions:
            return {"type": "object"}
        siblings = {key: value for key, value in node.items() if key != "$ref"}
        target = copy.deepcopy(definitions[name])
        merged = {**target, **siblings}
        return _inline(merged, definitions, resolving | {name})

    result: dict[str, Any] = {}
    for key, value in node.items():
        if key == "$defs":
            continue
        if key == "title" and isinstance(value, str):
            continue
        if key == "properties" and isinstance(value, dict):
            required = set(node.get("required", []))
            result[key] = {
                prop: _collapse_nullable(
                    _inline(prop_schema, definitions, resolving),
                    required=prop in required,
                )
                for prop, prop_schema in value.items()
            }
        elif key in _SCHEMA_LIST_KEYS and isinstance(value, list):
            result[key] = [_inline(item, definitions, resolving) for item in value]
        elif key in _SCHEMA_VALUE_KEYS:
            result[key] = _inline(value, definitions, resolving)
        else:
            result[key] = value
    return result


def _collapse_nullable(schema: Any, *, required: bool) -> Any:
    if required or not isinstance(schema, dict):
        return schema
    variants = schema.get("anyOf")
    if not isinstance(variants, list) or len(variants) != 2:
        return schema
    non_null = [variant for variant in variants if variant != {"type": "null"}]
    if len(non_null) != 1 or not isinstance(non_null[0], dict):
        return schema
    collapsed = {key: value for key, value in schema.items() if key != "anyOf"}
    if collapsed.get("default", ...) is None:
        del collapsed["default"]
    return {**non_null[0], **collapsed}

"""
JSON-Schema helpers used by the compiler.

Schemas are plain dicts in OpenAPI 3.0 flavour: ``nullable`` marks optional
values and input objects are referenced as ``#/definitions/<Name>``.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, Optional

DEFINITIONS_PREFIX = "#/definitions/"
ARRAY_PATH = "[]"

TYPE_OBJECT = "object"
TYPE_ARRAY = "array"
TYPE_STRING = "string"
TYPE_INTEGER = "integer"
TYPE_NUMBER = "number"
TYPE_BOOLEAN = "boolean"

SCALAR_BOOLEAN = "Boolean"
SCALAR_INT = "Int"
SCALAR_FLOAT = "Float"
SCALAR_STRING = "String"
SCALAR_ID = "ID"
SCALAR_JSON = "JSON"
SCALAR_UNKNOWN = "Unknown"
SCALAR_BYTES = "Bytes"
SCALAR_DATE = "Date"
SCALAR_DATETIME = "DateTime"
SCALAR_UUID = "UUID"
SCALAR_BIGINT = "BigInt"
SCALAR_DECIMAL = "Decimal"
SCALAR_GEOMETRY = "Geometry"
SCALAR_BINARY = "Binary"

BASE_SCALARS = (SCALAR_BOOLEAN, SCALAR_INT, SCALAR_FLOAT, SCALAR_STRING, SCALAR_ID)

_SCALAR_SCHEMAS: Dict[str, Dict[str, Any]] = {
    SCALAR_BOOLEAN: {"type": TYPE_BOOLEAN},
    SCALAR_INT: {"type": TYPE_INTEGER},
    SCALAR_FLOAT: {"type": TYPE_NUMBER, "format": "double"},
    SCALAR_STRING: {"type": TYPE_STRING},
    SCALAR_ID: {"type": TYPE_STRING},
    SCALAR_JSON: {},
    SCALAR_UNKNOWN: {},
    SCALAR_BYTES: {"type": TYPE_STRING, "format": "byte"},
    SCALAR_DATE: {"type": TYPE_STRING, "format": "date"},
    SCALAR_DATETIME: {"type": TYPE_STRING, "format": "date-time"},
    SCALAR_UUID: {"type": TYPE_STRING, "format": "uuid"},
    SCALAR_BIGINT: {"type": TYPE_STRING, "format": "bigint"},
    SCALAR_DECIMAL: {"type": TYPE_STRING, "format": "decimal"},
    SCALAR_GEOMETRY: {"type": TYPE_STRING, "format": "geometry"},
}

# Formats that describe a value kind rather than a restriction
_FILTERED_FORMATS = ("double",)


def scalar_names() -> list[str]:
    return list(_SCALAR_SCHEMAS)


def scalar_schema(name: str, format_filter: bool = False) -> Optional[Dict[str, Any]]:
    """
    Fresh schema for a known scalar.

    Args:
        name: Scalar name, e.g. ``DateTime``
        format_filter: Drop value-kind formats such as ``double``
    """
    schema = _SCALAR_SCHEMAS.get(name)
    if schema is None:
        return None
    result = copy.deepcopy(schema)
    if format_filter and result.get("format") in _FILTERED_FORMATS:
        result.pop("format")
    return result


def is_json_scalar(name: str) -> bool:
    return name in (SCALAR_JSON, SCALAR_UNKNOWN)


def object_schema() -> Dict[str, Any]:
    return {"type": TYPE_OBJECT, "properties": {}}


def array_schema(items: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": TYPE_ARRAY, "items": items}


def ref_schema(name: str) -> Dict[str, Any]:
    return {"$ref": DEFINITIONS_PREFIX + name}


def ref_name(schema: Dict[str, Any]) -> str:
    ref = schema.get("$ref", "")
    return ref[len(DEFINITIONS_PREFIX):] if ref.startswith(DEFINITIONS_PREFIX) else ref


def replace_schema(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    """Replace the content of ``target`` in place, keeping references to it valid."""
    snapshot = dict(source)
    target.clear()
    target.update(snapshot)


def add_required(schema: Dict[str, Any], name: str) -> None:
    required = schema.setdefault("required", [])
    if name not in required:
        required.append(name)


def innermost_type(schema: Optional[Dict[str, Any]]) -> str:
    """Type of the innermost array item, or of the schema itself."""
    while schema and schema.get("type") == TYPE_ARRAY and schema.get("items"):
        schema = schema["items"]
    return (schema or {}).get("type", "")


def kebab_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


def collect_refs(schema: Any, found: Optional[set[str]] = None) -> set[str]:
    """Names of every definition referenced inside ``schema``."""
    found = set() if found is None else found
    if isinstance(schema, dict):
        if "$ref" in schema:
            found.add(ref_name(schema))
        for value in schema.values():
            collect_refs(value, found)
    elif isinstance(schema, list):
        for value in schema:
            collect_refs(value, found)
    return found


def search_ref_definitions(definitions: Dict[str, Dict[str, Any]], *names: str) -> Dict[str, Dict[str, Any]]:
    """Transitive closure of ``names`` over ``definitions``."""
    result: Dict[str, Dict[str, Any]] = {}
    pending = list(names)
    while pending:
        name = pending.pop()
        if name in result or name not in definitions:
            continue
        result[name] = definitions[name]
        pending.extend(collect_refs(definitions[name]) - set(result))
    return result

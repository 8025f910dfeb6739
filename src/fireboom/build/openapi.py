"""
GraphQL SDL from uploaded OpenAPI and AsyncAPI documents.

REST datasources become one root field per path and method: ``GET`` under
``Query``, every other method under ``Mutation``. Component schemas become
object types; request bodies and anything without a named schema fall back to
the ``JSON`` scalar. AsyncAPI channels with a subscribe operation become
``Subscription`` fields returning ``JSON``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

import yaml

JSON_SCALAR = "JSON"

_SCALAR_TYPES = {
    "string": "String",
    "integer": "Int",
    "number": "Float",
    "boolean": "Boolean",
}
_QUERY_METHODS = ("get",)
_MUTATION_METHODS = ("post", "put", "patch", "delete")
_NAME_INVALID = re.compile(r"[^_0-9A-Za-z]+")


class SpecVersionError(ValueError):
    """Raised for documents that are neither OpenAPI 2/3 nor AsyncAPI 2."""


def load_document(content: str) -> Dict[str, Any]:
    """Load a JSON or YAML document."""
    data = yaml.safe_load(content)
    if not isinstance(data, dict):
        raise SpecVersionError("document root must be an object")
    return data


def graphql_name(value: str) -> str:
    name = _NAME_INVALID.sub("_", value).strip("_")
    if not name:
        return "_"
    return f"_{name}" if name[0].isdigit() else name


def _camel(*parts: str) -> str:
    words = [w for part in parts for w in _NAME_INVALID.split(part) if w]
    if not words:
        return "_"
    head, *tail = words
    return graphql_name(head[:1].lower() + head[1:] + "".join(w[:1].upper() + w[1:] for w in tail))


class _OpenApiConverter:
    def __init__(self, document: Dict[str, Any]):
        self.document = document
        version = str(document.get("openapi") or document.get("swagger") or "")
        if not version.startswith(("2", "3")):
            raise SpecVersionError(f"unsupported openapi version [{version}]")
        self.v2 = version.startswith("2")
        components = document.get("definitions") if self.v2 else (document.get("components") or {}).get("schemas")
        self.schemas: Dict[str, Any] = components or {}
        self.types: Dict[str, str] = {}
        self.json_used = False

    def ref_type(self, ref: str) -> str:
        name = graphql_name(ref.rsplit("/", 1)[-1])
        if name not in self.types:
            self.types[name] = ""
            self.types[name] = self.object_type(name, self.schemas.get(ref.rsplit("/", 1)[-1]) or {})
        return name

    def object_type(self, name: str, schema: Dict[str, Any]) -> str:
        properties = schema.get("properties") or {}
        if not properties:
            return ""
        required = set(schema.get("required") or [])
        lines = []
        for prop, prop_schema in properties.items():
            field_type = self.field_type(prop_schema or {})
            if prop in required:
                field_type += "!"
            lines.append(f"  {graphql_name(prop)}: {field_type}")
        return f"type {name} {{\n" + "\n".join(lines) + "\n}"

    def field_type(self, schema: Dict[str, Any]) -> str:
        ref = schema.get("$ref")
        if ref:
            name = self.ref_type(ref)
            if self.types.get(name):
                return name
            self.json_used = True
            return JSON_SCALAR
        kind = schema.get("type")
        if kind == "array":
            return f"[{self.field_type(schema.get('items') or {})}]"
        scalar = _SCALAR_TYPES.get(kind)
        if scalar:
            return scalar
        self.json_used = True
        return JSON_SCALAR

    def response_type(self, operation: Dict[str, Any]) -> str:
        responses = operation.get("responses") or {}
        for status in ("200", "201", "default"):
            response = responses.get(status) or responses.get(int(status) if status.isdigit() else status)
            if not response:
                continue
            if self.v2:
                schema = response.get("schema")
            else:
                content = response.get("content") or {}
                media = content.get("application/json") or next(iter(content.values()), None) or {}
                schema = media.get("schema")
            if schema:
                return self.field_type(schema)
        self.json_used = True
        return JSON_SCALAR

    def arguments(self, operation: Dict[str, Any], shared: list) -> list[str]:
        arguments = []
        for parameter in [*shared, *(operation.get("parameters") or [])]:
            if "$ref" in parameter:
                continue
            location = parameter.get("in")
            if location == "body":
                self.json_used = True
                arguments.append(f"input: {JSON_SCALAR}")
                continue
            schema = parameter.get("schema") if not self.v2 else parameter
            arg_type = self.field_type(schema or {})
            if parameter.get("required"):
                arg_type += "!"
            arguments.append(f"{graphql_name(parameter.get('name', ''))}: {arg_type}")
        if not self.v2 and operation.get("requestBody"):
            self.json_used = True
            required = "!" if operation["requestBody"].get("required") else ""
            arguments.append(f"input: {JSON_SCALAR}{required}")
        return arguments

    def convert(self) -> str:
        roots: Dict[str, list[str]] = {"Query": [], "Mutation": []}
        for path, item in (self.document.get("paths") or {}).items():
            if not isinstance(item, dict):
                continue
            shared = item.get("parameters") or []
            for method in (*_QUERY_METHODS, *_MUTATION_METHODS):
                operation = item.get(method)
                if not isinstance(operation, dict):
                    continue
                name = graphql_name(operation.get("operationId") or _camel(method, path))
                arguments = self.arguments(operation, shared)
                signature = f"({', '.join(arguments)})" if arguments else ""
                root = "Query" if method in _QUERY_METHODS else "Mutation"
                roots[root].append(f"  {name}{signature}: {self.response_type(operation)}")

        blocks = [f"type {root} {{\n" + "\n".join(fields) + "\n}" for root, fields in roots.items() if fields]
        blocks.extend(definition for definition in self.types.values() if definition)
        if self.json_used:
            blocks.append(f"scalar {JSON_SCALAR}")
        return "\n\n".join(blocks) + "\n"


def openapi_to_sdl(content: str) -> str:
    """
    Convert an OpenAPI 2 or 3 document (JSON or YAML) to SDL.

    Raises:
        SpecVersionError: Not an OpenAPI document
    """
    return _OpenApiConverter(load_document(content)).convert()


def asyncapi_to_sdl(content: str) -> str:
    """
    Convert the subscribe channels of an AsyncAPI 2 document to SDL.

    Raises:
        SpecVersionError: Not an AsyncAPI 2 document
    """
    document = load_document(content)
    version = str(document.get("asyncapi") or "")
    if not version.startswith("2"):
        raise SpecVersionError(f"unsupported asyncapi version [{version}]")

    fields = []
    for channel, item in (document.get("channels") or {}).items():
        operation: Optional[Dict[str, Any]] = (item or {}).get("subscribe")
        if not operation:
            continue
        name = graphql_name(operation.get("operationId") or _camel("on", channel))
        fields.append(f"  {name}: {JSON_SCALAR}")
    if not fields:
        return ""
    return "type Subscription {\n" + "\n".join(fields) + f"\n}}\n\nscalar {JSON_SCALAR}\n"

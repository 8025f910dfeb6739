"""OpenAPI document of the served operations, written to ``exported/generated/swagger.json``."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable

from ..compiler import EngineOperation
from ..compiler.schema import DEFINITIONS_PREFIX
from ..core.consts import FB_VERSION

OPERATIONS_PREFIX = "/operations"
COMPONENTS_PREFIX = "#/components/schemas/"


def _parameters(schema: Dict[str, Any]) -> list[Dict[str, Any]]:
    required = set(schema.get("required") or [])
    return [
        {"name": name, "in": "query", "required": name in required, "schema": prop}
        for name, prop in (schema.get("properties") or {}).items()
    ]


def build_swagger(operations: Iterable[EngineOperation], definitions: Dict[str, Any], title: str = "fireboom") -> Dict[str, Any]:
    """
    One path per non internal operation.

    Queries and subscriptions are GET with query parameters; mutations are
    POST with a JSON body.
    """
    paths: Dict[str, Any] = {}
    for operation in sorted(operations, key=lambda o: o.path):
        if operation.internal:
            continue
        response = {
            "200": {
                "description": "Success",
                "content": {"application/json": {"schema": operation.response_schema}},
            }
        }
        item: Dict[str, Any] = {"operationId": operation.name, "tags": [operation.path.split("/", 1)[0]], "responses": response}
        if operation.operation_type == "MUTATION":
            item["requestBody"] = {"content": {"application/json": {"schema": operation.variables_schema}}}
            method = "post"
        else:
            item["parameters"] = _parameters(operation.variables_schema)
            method = "get"
        paths[f"{OPERATIONS_PREFIX}/{operation.path}"] = {method: item}

    document = {
        "openapi": "3.0.1",
        "info": {"title": title, "version": FB_VERSION},
        "paths": paths,
        "components": {"schemas": {name: schema for name, schema in sorted(definitions.items())}},
    }
    # Compiled schemas reference JSON schema definitions
    return json.loads(json.dumps(document).replace(DEFINITIONS_PREFIX, COMPONENTS_PREFIX))

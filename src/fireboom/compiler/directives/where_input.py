"""
``@whereInput``: a filter fixed at build time and merged into a
``*WhereInput`` variable at request time.

Every step of the filter is checked against the input definitions of the
type system, e.g. ``{filter: {field: "name", scalar: {type: contains}}}``
requires ``name`` on the where input and ``contains`` on the filter type of
``name``.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from ..descriptor import RelationFilter, ScalarFilter, WhereInput, WhereInputConfiguration, WhereInputFilter
from ..resolver import VariableResolver
from ..schema import ref_name
from .base import DirectiveError, VariableDirective, enum_sdl, to_bool

WHERE_INPUT_TYPE = "WhereInput"
FILTER_TYPE = "WhereInputFilter"
SCALAR_FILTER_TYPE = "WhereInputScalarFilter"
RELATION_FILTER_TYPE = "WhereInputRelationFilter"
SCALAR_FILTER_ENUM = "WhereInputFilterType"
RELATION_FILTER_ENUM = "WhereInputRelationFilterType"

SCALAR_FILTERS = ("equals", "in", "notIn", "lt", "lte", "gt", "gte", "contains", "startsWith", "endsWith")
RELATION_FILTERS = ("is", "isNot", "some", "every", "none")

EXPECTED_WHERE_INPUT_FORMAT = "expected [*WhereInput], but found [%s] on path [%s]"
MISSING_DEFINITION_FORMAT = "not found argument definition [%s]"
MISSING_FIELD_FORMAT = "not found field [%s] argument definition [%s]"

Schema = Dict[str, Any]


class WhereInputDirective(VariableDirective):
    name = "whereInput"
    arguments = f"not: {WHERE_INPUT_TYPE}, filter: {FILTER_TYPE}"

    def definitions(self) -> str:
        return "\n\n".join(
            (
                f"input {WHERE_INPUT_TYPE} {{\n  not: {WHERE_INPUT_TYPE}\n  filter: {FILTER_TYPE}\n}}",
                f"input {FILTER_TYPE} {{\n  field: String!\n  scalar: {SCALAR_FILTER_TYPE}\n"
                f"  relation: {RELATION_FILTER_TYPE}\n}}",
                f"input {SCALAR_FILTER_TYPE} {{\n  type: {SCALAR_FILTER_ENUM}!\n  insensitive: Boolean\n}}",
                f"input {RELATION_FILTER_TYPE} {{\n  type: {RELATION_FILTER_ENUM}!\n  where: {WHERE_INPUT_TYPE}!\n}}",
                enum_sdl(SCALAR_FILTER_ENUM, SCALAR_FILTERS),
                enum_sdl(RELATION_FILTER_ENUM, RELATION_FILTERS),
            )
        )

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        schema = resolver.schema or {}
        if schema.get("items"):
            schema = schema["items"]
        definition_name = ref_name(schema)
        if not definition_name.endswith(WHERE_INPUT_TYPE):
            raise DirectiveError(EXPECTED_WHERE_INPUT_FORMAT, definition_name, ".".join(resolver.path))

        walker = _FilterWalker(resolver.argument_definitions)
        where = WhereInput()
        if "not" in resolver.arguments:
            where.not_ = walker.where_input(_load(resolver.arguments["not"]), schema)
        elif "filter" in resolver.arguments:
            where.filter = walker.filter(_load(resolver.arguments["filter"]), schema)
        else:
            return False, False

        resolver.operation.variables_configuration.where_inputs.append(
            WhereInputConfiguration(variable_path_components=list(resolver.path), where_input=where)
        )
        return False, True


def _load(value: str) -> Dict[str, Any]:
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise DirectiveError("invalid where input [%s]: %s", value, e.msg)
    return data if isinstance(data, dict) else {}


class _FilterWalker:
    def __init__(self, definitions: Dict[str, Schema]):
        self.definitions = definitions

    def field_schema(self, schema: Schema, field: str) -> Schema:
        definition_name = ref_name(schema)
        definition = self.definitions.get(definition_name)
        if definition is None:
            raise DirectiveError(MISSING_DEFINITION_FORMAT, definition_name)
        field_schema = (definition.get("properties") or {}).get(field)
        if not field_schema:
            raise DirectiveError(MISSING_FIELD_FORMAT, field, definition_name)
        return field_schema

    def where_input(self, data: Dict[str, Any], schema: Schema) -> WhereInput:
        where = WhereInput()
        if isinstance(data.get("not"), dict):
            where.not_ = self.where_input(data["not"], schema)
        if isinstance(data.get("filter"), dict):
            where.filter = self.filter(data["filter"], schema)
        return where

    def filter(self, data: Dict[str, Any], schema: Schema) -> WhereInputFilter:
        result = WhereInputFilter()
        if "field" in data:
            result.field = str(data["field"])
            schema = self.field_schema(schema, result.field)
        if isinstance(data.get("scalar"), dict):
            scalar = data["scalar"]
            result.scalar = ScalarFilter(type=str(scalar.get("type", "")))
            if "type" in scalar:
                self.field_schema(schema, result.scalar.type)
            if "insensitive" in scalar:
                result.scalar.insensitive = to_bool(str(scalar["insensitive"]))
        if isinstance(data.get("relation"), dict):
            relation = data["relation"]
            result.relation = RelationFilter(type=str(relation.get("type", "")))
            relation_schema = schema
            if "type" in relation:
                relation_schema = self.field_schema(schema, result.relation.type)
            if isinstance(relation.get("where"), dict):
                result.relation.where = self.where_input(relation["where"], relation_schema)
        return result

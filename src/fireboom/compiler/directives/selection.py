"""Directives placed on selected fields."""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from ..descriptor import PostResolveGetTransformation, PostResolveTransformation
from ..resolver import VARIABLE_PREFIX, SelectionResolver
from ..schema import (
    ARRAY_PATH,
    SCALAR_JSON,
    TYPE_ARRAY,
    TYPE_BOOLEAN,
    TYPE_INTEGER,
    TYPE_NUMBER,
    TYPE_OBJECT,
    TYPE_STRING,
    array_schema,
    replace_schema,
    scalar_names,
    scalar_schema,
)
from .base import (
    ARGUMENT_MUST_SUPPLY_ONE_OF_FORMAT,
    ARGUMENT_REQUIRED_FORMAT,
    ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT,
    DirectiveError,
    SelectionDirective,
    enum_sdl,
)
from .dateformat import DATE_FORMAT_ARGUMENTS, DATE_FORMAT_DEFINITIONS, date_format_value

EXPORT_REQUIRED_FORMAT = 'expected variable [%s] with directive @internal for @export(as: "%s") on path [%s]'
INTERNAL_DIRECTIVE = "internal"


def _join_path(path: list[str]) -> str:
    return ".".join(path)


class Export(SelectionDirective):
    """Export the field value into an ``@internal`` variable."""

    name = "export"
    arguments = "as: String!"
    argument = "as"

    def resolve(self, resolver: SelectionResolver) -> None:
        value = resolver.arguments.get(self.argument)
        if value is None:
            raise DirectiveError(ARGUMENT_REQUIRED_FORMAT, self.argument)
        if not resolver.variable_has_directive(value, INTERNAL_DIRECTIVE):
            raise DirectiveError(EXPORT_REQUIRED_FORMAT, value, value, _join_path(resolver.path))
        self.mark(resolver, value)

    def mark(self, resolver: SelectionResolver, value: str) -> None:
        resolver.variable_exported[value] = True


class ExportMatch(Export):
    name = "exportMatch"
    arguments = "for: String!"
    argument = "for"

    def mark(self, resolver: SelectionResolver, value: str) -> None:
        return None


TRANSFORM_INVALID_PATH_FORMAT = "invalid path [%s] @transform"
TRANSFORM_EXPECT_TYPE_FORMAT = "argument [%s] just allow apply on [%s] result"
TRANSFORM_MATH_EXPECT_NUMBER_FORMAT = "invalid [%s] array, expected number array for math [%s]"
TRANSFORM_MATHS = ("MAX", "MIN", "AVG", "SUM", "COUNT", "FIRST", "LAST")
TRANSFORM_NUMBER_MATHS = ("MAX", "MIN", "AVG", "SUM")
NUMBER_TYPES = (TYPE_NUMBER, TYPE_INTEGER)


class Transform(SelectionDirective):
    """
    Project the field onto a nested path and optionally reduce an array.

    ``from`` starts at the field path and follows ``get``; every array
    crossed adds a ``[]`` segment. When the projection crosses an array and
    ends on a non-array value, the result becomes an array and an extra
    transformation flattens the inner path first.
    """

    name = "transform"
    arguments = "get: String, math: TransformMath"

    def definitions(self) -> str:
        return enum_sdl("TransformMath", TRANSFORM_MATHS)

    def resolve(self, resolver: SelectionResolver) -> None:
        get_value = resolver.arguments.get("get")
        math_value = resolver.arguments.get("math")
        if get_value is None and math_value is None:
            raise DirectiveError(ARGUMENT_REQUIRED_FORMAT, "get or math")

        from_path = list(resolver.path)
        to_path = list(resolver.path)
        segments = [item for item in (get_value or "").split(".") if item and item != ARRAY_PATH]

        schema = resolver.schema or {}
        index = 0
        array_visited = False
        while index < len(segments) and schema:
            kind = schema.get("type")
            if kind == TYPE_OBJECT:
                next_schema = (schema.get("properties") or {}).get(segments[index])
                if next_schema is None:
                    break
                index += 1
                schema = next_schema
                from_path.append(segments[index - 1])
            elif kind == TYPE_ARRAY:
                if not schema.get("items"):
                    break
                array_visited = True
                schema = schema["items"]
                if index > 0 or from_path[-1] != ARRAY_PATH:
                    from_path.append(ARRAY_PATH)
            else:
                break
        if index != len(segments):
            raise DirectiveError(TRANSFORM_INVALID_PATH_FORMAT, _join_path(segments[: index + 1]))

        schema = copy.deepcopy(schema)
        end_with_array = bool(resolver.path) and resolver.path[-1] == ARRAY_PATH
        math = None
        if math_value is not None:
            if not array_visited and not end_with_array and schema.get("type") != TYPE_ARRAY:
                raise DirectiveError(TRANSFORM_EXPECT_TYPE_FORMAT, "math", TYPE_ARRAY)
            if math_value not in TRANSFORM_MATHS:
                raise DirectiveError(ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT, math_value, "math")
            if schema.get("type") == TYPE_ARRAY:
                schema = schema.get("items") or {}
            if math_value in TRANSFORM_NUMBER_MATHS and schema.get("type") not in NUMBER_TYPES:
                raise DirectiveError(TRANSFORM_MATH_EXPECT_NUMBER_FORMAT, schema.get("type", ""), math_value)
            math = math_value

        transformations = resolver.operation.post_resolve_transformations
        if schema.get("type") == TYPE_ARRAY:
            if end_with_array:
                from_path.append(ARRAY_PATH)
        elif array_visited and math is None:
            schema = array_schema(schema)
            if not end_with_array:
                array_index = len(from_path) - 1 - from_path[::-1].index(ARRAY_PATH)
                transformations.append(
                    PostResolveTransformation(
                        depth=len(from_path),
                        get=PostResolveGetTransformation(from_=list(from_path), to=from_path[: array_index + 1]),
                    )
                )
                from_path = from_path[:array_index]

        transformations.append(
            PostResolveTransformation(
                depth=len(from_path),
                get=PostResolveGetTransformation(from_=from_path, to=to_path),
                math=math,
            )
        )
        if resolver.schema is not None:
            nullable = resolver.schema.get("nullable")
            replace_schema(resolver.schema, schema)
            if nullable:
                resolver.schema["nullable"] = True


FORMAT_DATETIME_SCALARS = ("date", "date-time")
FORMAT_DATETIME_NOT_SUPPORTED_FORMAT = "expected scalar %s, but found [%s:%s]"


class FormatDateTime(SelectionDirective):
    name = "formatDateTime"
    arguments = DATE_FORMAT_ARGUMENTS

    def definitions(self) -> str:
        return DATE_FORMAT_DEFINITIONS

    def resolve(self, resolver: SelectionResolver) -> None:
        schema = resolver.schema or {}
        if schema.get("format") not in FORMAT_DATETIME_SCALARS:
            raise DirectiveError(
                FORMAT_DATETIME_NOT_SUPPORTED_FORMAT,
                list(FORMAT_DATETIME_SCALARS),
                schema.get("type", ""),
                schema.get("format", ""),
            )
        resolver.operation.post_resolve_transformations.append(
            PostResolveTransformation(
                depth=len(resolver.path),
                get=PostResolveGetTransformation(
                    from_=list(resolver.path),
                    to=list(resolver.path),
                    date_time_format=date_format_value(resolver.arguments),
                ),
            )
        )


CUSTOMIZED_TYPES = (*scalar_names(), "Array")


class CustomizedField(SelectionDirective):
    """
    Declare the type of a field the type system does not know, e.g. the
    members of a raw JSON result.
    """

    name = "customizedField"
    arguments = (
        "type: CustomizedFieldType!, desc: String, items: CustomizedFieldType, additional: CustomizedFieldType"
    )
    customized = True

    def definitions(self) -> str:
        return enum_sdl("CustomizedFieldType", CUSTOMIZED_TYPES)

    def resolve(self, resolver: SelectionResolver) -> None:
        value_type = resolver.arguments.get("type")
        if value_type is None:
            raise DirectiveError(ARGUMENT_REQUIRED_FORMAT, "type")

        additional = resolver.arguments.get("additional")
        additional_ok = additional is not None and value_type == SCALAR_JSON
        if additional_ok:
            value_type = additional

        is_array = value_type == "Array"
        items = resolver.arguments.get("items")
        items_ok = items is not None and is_array
        if items_ok:
            value_type = items

        schema: Optional[Dict[str, Any]] = resolver.schema
        if (not is_array or items_ok) and schema is None:
            schema = scalar_schema(value_type)
            if schema is None:
                raise DirectiveError(ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT, value_type, "type")
        if schema is not None and "desc" in resolver.arguments:
            schema = {**schema, "description": resolver.arguments["desc"]}
        if is_array and schema is not None and schema.get("type") != TYPE_ARRAY:
            schema = array_schema(schema)
        if additional_ok and schema is not None:
            schema = {"type": TYPE_OBJECT, "additionalProperties": schema}
        resolver.schema = schema


class AsyncResolve(SelectionDirective):
    name = "asyncResolve"

    def resolve(self, resolver: SelectionResolver) -> None:
        if (resolver.schema or {}).get("type") != TYPE_ARRAY:
            raise DirectiveError("@%s directive only support on array type", self.name)


class Include(SelectionDirective):
    """``@include``/``@skip`` extended with a rule expression."""

    name = "include"
    arguments = "if: Boolean, ifRule: String"

    def resolve(self, resolver: SelectionResolver) -> None:
        if_value = resolver.arguments.get("if")
        if_rule = resolver.arguments.get("ifRule")
        if if_value is None and if_rule is None:
            raise DirectiveError(ARGUMENT_MUST_SUPPLY_ONE_OF_FORMAT, "if,ifRule")

        if resolver.schema is not None:
            resolver.schema["nullable"] = True
        if if_value is not None:
            self._add_variable_schema(resolver, if_value, TYPE_BOOLEAN)
        if if_rule is not None:
            self._add_variable_schema(resolver, if_rule, TYPE_STRING)
            resolver.operation.rule_expression_existed = True

    @staticmethod
    def _add_variable_schema(resolver: SelectionResolver, value: str, kind: str) -> None:
        if not value.startswith(VARIABLE_PREFIX):
            return
        name = value[len(VARIABLE_PREFIX):]
        if resolver.variable_definition(name) is None:
            raise DirectiveError("variable [%s] not found", name)
        resolver.variable_schemas[name] = {"type": kind}


class Skip(Include):
    name = "skip"


class SkipVariable(Include):
    name = "skipVariable"
    arguments = "variables: [String!]!, ifRule: String!"


class FirstRawResult(SelectionDirective):
    """Marker read by the engine; nothing to compile."""

    name = "firstRawResult"

    def resolve(self, resolver: SelectionResolver) -> None:
        return None

"""
Directive base classes and argument decoding.

A directive declares its SDL (``directive @name(...) on ...``), the extra type
definitions it needs, and a resolve function for one location kind.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence

from graphql.language import (
    ArgumentNode,
    BooleanValueNode,
    EnumValueNode,
    ListValueNode,
    NullValueNode,
    ObjectValueNode,
    StringValueNode,
    ValueNode,
    VariableNode,
)

from ..resolver import VARIABLE_PREFIX, OperationResolver, SelectionResolver, VariableResolver

ARGUMENT_REQUIRED_FORMAT = "argument [%s] required"
ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT = "value [%s] in argument [%s] not supported"
ARGUMENT_MUST_SUPPLY_ONE_OF_FORMAT = "must supply one of arguments [%s]"

COMMON_ARG_NAME = "name"

LOCATION_OPERATIONS = ("QUERY", "MUTATION", "SUBSCRIPTION")
LOCATION_FIELD = ("FIELD",)
LOCATION_VARIABLE = ("VARIABLE_DEFINITION",)


class DirectiveError(Exception):
    """Raised by a resolve function; the compiler records it against the operation."""

    def __init__(self, template: str, *args: Any):
        super().__init__(template % args if args else template)


class CustomDirective:
    """
    One named directive.

    Subclasses set ``name``, ``locations`` and ``arguments`` (the SDL argument
    list without parentheses) and may override ``definitions``.
    """

    name: str = ""
    description: str = ""
    locations: Sequence[str] = ()
    arguments: str = ""

    def directive_sdl(self) -> str:
        args = f"({self.arguments})" if self.arguments else ""
        description = f'"""{self.description}"""\n' if self.description else ""
        return f"{description}directive @{self.name}{args} on {' | '.join(self.locations)}"

    def definitions(self) -> str:
        """Extra SDL type definitions required by the arguments."""
        return ""


class OperationDirective(CustomDirective):
    locations = LOCATION_OPERATIONS

    def resolve(self, resolver: OperationResolver) -> None:
        raise NotImplementedError


class SelectionDirective(CustomDirective):
    locations = LOCATION_FIELD
    # Builds the schema of a selection missing from the type system
    customized = False

    def resolve(self, resolver: SelectionResolver) -> None:
        raise NotImplementedError


class VariableDirective(CustomDirective):
    locations = LOCATION_VARIABLE
    # Variable is dropped from the engine input and supplied by hooks
    removed = False

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        """
        Returns:
            Tuple of (remove_from_input, skip). ``skip`` hides the variable from
            callers; ``remove_from_input`` also drops it from the internal schema.
        """
        raise NotImplementedError


def resolve_arguments(arguments: Optional[Sequence[ArgumentNode]]) -> Dict[str, str]:
    """Directive arguments as strings, lists and objects in JSON notation."""
    result: Dict[str, str] = {}
    for item in arguments or ():
        if item.value is None:
            continue
        result[item.name.value] = argument_value_string(item.value, False)
    return result


def argument_value_string(value: Optional[ValueNode], quote: bool) -> str:
    if value is None:
        return ""
    if isinstance(value, VariableNode):
        return VARIABLE_PREFIX + value.name.value
    if isinstance(value, (StringValueNode, EnumValueNode)):
        return json.dumps(value.value, ensure_ascii=False) if quote else value.value
    if isinstance(value, ListValueNode):
        return "[" + ",".join(argument_value_string(v, True) for v in value.values) + "]"
    if isinstance(value, ObjectValueNode):
        items = (f"{json.dumps(f.name.value)}:{argument_value_string(f.value, True)}" for f in value.fields)
        return "{" + ",".join(items) + "}"
    if isinstance(value, BooleanValueNode):
        return "true" if value.value else "false"
    if isinstance(value, NullValueNode):
        return "null"
    return value.value


def to_int(value: Optional[str]) -> int:
    try:
        return int(float(value)) if value else 0
    except ValueError:
        return 0


def to_float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def to_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true")


def json_list(value: str) -> list[Any]:
    try:
        result = json.loads(value)
    except json.JSONDecodeError as e:
        raise DirectiveError("invalid list [%s]: %s", value, e.msg)
    if not isinstance(result, list):
        raise DirectiveError("expected list, but found [%s]", value)
    return result


def enum_sdl(name: str, values: Sequence[str]) -> str:
    return f"enum {name} {{\n" + "\n".join(f"  {v}" for v in values) + "\n}"

"""
Directives placed on variable definitions.

Most of them inject a value at request time, which hides the variable from
callers (``skip``) while keeping it in the internal schema.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict

from ..descriptor import (
    ClaimConfig,
    CustomClaim,
    DateOffset,
    InjectVariableKind,
    OperationAuthenticationConfig,
    VariableInjectionConfiguration,
)
from ..resolver import VariableResolver
from ..rule import RuleSyntaxError, parse_rule
from ..schema import TYPE_ARRAY, TYPE_BOOLEAN, TYPE_INTEGER, TYPE_NUMBER, TYPE_STRING, innermost_type
from .base import (
    ARGUMENT_REQUIRED_FORMAT,
    ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT,
    COMMON_ARG_NAME,
    DirectiveError,
    VariableDirective,
    enum_sdl,
    json_list,
    to_bool,
    to_float,
    to_int,
)
from .dateformat import DATE_FORMAT_ARGUMENTS, DATE_FORMAT_DEFINITIONS, DATE_FORMATS, ISO8601, date_format_value


def _inject(resolver: VariableResolver, kind: InjectVariableKind, **values: Any) -> None:
    resolver.operation.variables_configuration.inject_variables.append(
        VariableInjectionConfiguration(variable_path_components=list(resolver.path), variable_kind=kind, **values)
    )


def _required_argument(resolver: VariableResolver, name: str) -> str:
    value = resolver.arguments.get(name)
    if value is None:
        raise DirectiveError(ARGUMENT_REQUIRED_FORMAT, name)
    return value


CLAIM_ENUM = "Claim"
CLAIM_CUSTOM = "CUSTOM"
CLAIM_TYPES = (
    "ISSUER",
    "PROVIDER",
    "SUBJECT",
    "USERID",
    "NAME",
    "GIVEN_NAME",
    "FAMILY_NAME",
    "MIDDLE_NAME",
    "NICKNAME",
    "PREFERRED_USERNAME",
    "PROFILE",
    "PICTURE",
    "WEBSITE",
    "EMAIL",
    "EMAIL_VERIFIED",
    "GENDER",
    "BIRTH_DATE",
    "ZONE_INFO",
    "LOCALE",
    "LOCATION",
    "ROLES",
    CLAIM_CUSTOM,
)
CUSTOM_CLAIM_TYPES = {
    TYPE_INTEGER: "INT",
    TYPE_NUMBER: "FLOAT",
    TYPE_ARRAY: "ARRAY",
    TYPE_STRING: "STRING",
    TYPE_BOOLEAN: "BOOLEAN",
}
ARG_CUSTOM_JSON_PATH = "customJsonPath"


class FromClaim(VariableDirective):
    """Fill the variable from a claim of the authenticated user."""

    name = "fromClaim"
    arguments = f"{COMMON_ARG_NAME}: {CLAIM_ENUM}! = USERID, {ARG_CUSTOM_JSON_PATH}: [String]"

    def definitions(self) -> str:
        return enum_sdl(CLAIM_ENUM, CLAIM_TYPES)

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        value = _required_argument(resolver, COMMON_ARG_NAME)
        if value not in CLAIM_TYPES:
            raise DirectiveError(ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT, value, COMMON_ARG_NAME)

        claim = ClaimConfig(claim_type=value, variable_path_components=list(resolver.path))
        resolver.operation.authorization_config.claims.append(claim)
        resolver.operation.authentication_config = OperationAuthenticationConfig(auth_required=True)
        if value != CLAIM_CUSTOM:
            return False, True

        json_path = _required_argument(resolver, ARG_CUSTOM_JSON_PATH)
        custom_name = resolver.variable_name
        schema_type = (resolver.schema or {}).get("type", "")
        custom_type = CUSTOM_CLAIM_TYPES.get(schema_type)
        if custom_type is None:
            raise DirectiveError("customClaim [%s] not support inject type %s", custom_name, schema_type)
        claim.custom = CustomClaim(
            name=custom_name,
            json_path_components=[str(item) for item in json_list(json_path)],
            type=custom_type,
            required=resolver.required,
        )
        return False, True


class FromHeader(VariableDirective):
    name = "fromHeader"
    arguments = f"{COMMON_ARG_NAME}: String!"

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        value = _required_argument(resolver, COMMON_ARG_NAME)
        _inject(resolver, InjectVariableKind.FROM_HEADER, from_header_name=value)
        return False, True


class Internal(VariableDirective):
    """Variable is filled by ``@export`` and never supplied by callers."""

    name = "internal"

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        return resolver.variable_name in resolver.variable_exported, True


class HookVariable(VariableDirective):
    name = "hookVariable"
    removed = True

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        return False, False


DATE_OFFSET_TYPE = "DateOffset"
DATE_OFFSET_UNIT_ENUM = "DateOffsetUnit"
DATE_OFFSET_UNITS = ("YEAR", "MONTH", "DAY", "HOUR", "MINUTE", "SECOND")
ARG_OFFSET = "offset"


class InjectCurrentDateTime(VariableDirective):
    name = "injectCurrentDateTime"
    arguments = f"{DATE_FORMAT_ARGUMENTS}, {ARG_OFFSET}: {DATE_OFFSET_TYPE}"

    def definitions(self) -> str:
        offset = (
            f"input {DATE_OFFSET_TYPE} {{\n"
            "  previous: Boolean\n"
            "  value: Int!\n"
            f"  unit: {DATE_OFFSET_UNIT_ENUM}!\n"
            "}"
        )
        return "\n\n".join((DATE_FORMAT_DEFINITIONS, offset, enum_sdl(DATE_OFFSET_UNIT_ENUM, DATE_OFFSET_UNITS)))

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        date_format = date_format_value(resolver.arguments) or DATE_FORMATS[ISO8601]
        date_offset = None
        if ARG_OFFSET in resolver.arguments:
            try:
                offset: Dict[str, Any] = json.loads(resolver.arguments[ARG_OFFSET])
            except json.JSONDecodeError as e:
                raise DirectiveError("invalid offset [%s]: %s", resolver.arguments[ARG_OFFSET], e.msg)
            unit = offset.get("unit", "")
            if unit not in DATE_OFFSET_UNITS:
                raise DirectiveError(ARGUMENT_VALUE_NOT_SUPPORTED_FORMAT, unit, ARG_OFFSET)
            date_offset = DateOffset(
                previous=bool(offset.get("previous", False)),
                value=int(offset.get("value") or 0),
                unit=unit,
            )
        _inject(resolver, InjectVariableKind.DATE_TIME, date_format=date_format, date_offset=date_offset)
        return False, True


class InjectEnvironmentVariable(VariableDirective):
    name = "injectEnvironmentVariable"
    arguments = f"{COMMON_ARG_NAME}: String!"

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        value = _required_argument(resolver, COMMON_ARG_NAME)
        _inject(
            resolver,
            InjectVariableKind.ENVIRONMENT_VARIABLE,
            environment_variable_name=value,
            value_type_name=innermost_type(resolver.schema),
        )
        return False, True


class InjectGeneratedUUID(VariableDirective):
    name = "injectGeneratedUUID"

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        _inject(resolver, InjectVariableKind.UUID, value_type_name=(resolver.schema or {}).get("type", ""))
        return False, True


ARG_EXPRESSION = "expression"
DEFAULT_RULE_EXPRESSION = "arguments.name + environments.name + headers.name + user.name"


class InjectRuleValue(VariableDirective):
    """
    Compute the variable from a rule expression over ``arguments``,
    ``environments``, ``headers`` and ``user``. The variable is removed from
    both input schemas.
    """

    name = "injectRuleValue"
    arguments = f'{ARG_EXPRESSION}: String! = "{DEFAULT_RULE_EXPRESSION}"'

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        value = _required_argument(resolver, ARG_EXPRESSION)
        try:
            expression = parse_rule(value)
        except RuleSyntaxError as e:
            raise DirectiveError("%s", str(e))
        _inject(
            resolver,
            InjectVariableKind.RULE_EXPRESSION,
            value_type_name=innermost_type(resolver.schema),
            rule_expression=expression.source,
        )
        resolver.operation.rule_expression_existed = True
        return True, True


COMMON_PATTERN_ENUM = "COMMON_REGEX_PATTERN"
COMMON_PATTERNS = {
    "EMAIL": (
        r"(?:[a-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[a-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
        r'|"(?:[\x01-\x08\x0b\x0c\x0e-\x1f\x21\x23-\x5b\x5d-\x7f]|\\[\x01-\x09\x0b\x0c\x0e-\x7f])*")'
        r"@(?:(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+[a-z0-9](?:[a-z0-9-]*[a-z0-9])?"
        r"|\[(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?"
        r"|[a-z0-9-]*[a-z0-9]:(?:[\x01-\x08\x0b\x0c\x0e-\x1f\x21-\x5a\x53-\x7f]|\\[\x01-\x09\x0b\x0c\x0e-\x7f])+)\])"
    ),
    "DOMAIN": r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$",
    "URL": r"^(https?|ftp)://[^\s/$.?#].[^\s]*$",
}


def _same(value: str) -> str:
    return value


def _common_pattern(value: str) -> str:
    return COMMON_PATTERNS.get(value, "")


# Argument name -> (SDL type, schema keyword, value conversion)
_JSON_SCHEMA_ARGUMENTS: Dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "title": ("String", "title", _same),
    "description": ("String", "description", _same),
    "multipleOf": ("Float", "multipleOf", to_float),
    "maximum": ("Float", "maximum", to_float),
    "exclusiveMaximum": ("Boolean", "exclusiveMaximum", to_bool),
    "minimum": ("Float", "minimum", to_float),
    "exclusiveMinimum": ("Boolean", "exclusiveMinimum", to_bool),
    "maxLength": ("Int", "maxLength", to_int),
    "minLength": ("Int", "minLength", to_int),
    "maxItems": ("Int", "maxItems", to_int),
    "minItems": ("Int", "minItems", to_int),
    "uniqueItems": ("Boolean", "uniqueItems", to_bool),
    "pattern": ("String", "pattern", _same),
    "commonPattern": (COMMON_PATTERN_ENUM, "pattern", _common_pattern),
}


class JsonSchema(VariableDirective):
    """Add validation keywords to the variable schema."""

    name = "jsonSchema"
    arguments = ", ".join(f"{name}: {kind}" for name, (kind, _, _) in _JSON_SCHEMA_ARGUMENTS.items())

    def definitions(self) -> str:
        return enum_sdl(COMMON_PATTERN_ENUM, list(COMMON_PATTERNS))

    def resolve(self, resolver: VariableResolver) -> tuple[bool, bool]:
        if resolver.schema is None:
            return False, False
        for name, value in resolver.arguments.items():
            argument = _JSON_SCHEMA_ARGUMENTS.get(name)
            if argument is None:
                continue
            _, keyword, convert = argument
            resolver.schema[keyword] = convert(value)
        return False, False

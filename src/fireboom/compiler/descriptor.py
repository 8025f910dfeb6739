"""
Runtime descriptor of a compiled operation.

These models are what the engine consumes: they are written to
``fireboom.operations.json`` and embedded in ``fireboom.config.json``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class EngineKind(str, Enum):
    GRAPHQL = "GRAPHQL"
    FUNCTION = "FUNCTION"
    PROXY = "PROXY"


class InjectVariableKind(str, Enum):
    UUID = "UUID"
    ENVIRONMENT_VARIABLE = "ENVIRONMENT_VARIABLE"
    DATE_TIME = "DATE_TIME"
    RULE_EXPRESSION = "RULE_EXPRESSION"
    FROM_HEADER = "FROM_HEADER"


class OperationRoleConfig(WireModel):
    require_match_all: list[str] = []
    require_match_any: list[str] = []
    deny_match_all: list[str] = []
    deny_match_any: list[str] = []

    def roles(self) -> set[str]:
        return {*self.require_match_all, *self.require_match_any, *self.deny_match_all, *self.deny_match_any}


class CustomClaim(WireModel):
    name: str
    json_path_components: list[str] = []
    type: str = "STRING"
    required: bool = False


class ClaimConfig(WireModel):
    claim_type: str
    variable_path_components: list[str] = []
    custom: Optional[CustomClaim] = None


class OperationAuthorizationConfig(WireModel):
    claims: list[ClaimConfig] = []
    role_config: Optional[OperationRoleConfig] = None


class OperationAuthenticationConfig(WireModel):
    auth_required: bool = False


class DateOffset(WireModel):
    previous: bool = False
    value: int = 0
    unit: str = "DAY"


class VariableInjectionConfiguration(WireModel):
    variable_path_components: list[str]
    variable_kind: InjectVariableKind
    date_format: Optional[str] = None
    date_offset: Optional[DateOffset] = None
    environment_variable_name: Optional[str] = None
    value_type_name: Optional[str] = None
    rule_expression: Optional[str] = None
    from_header_name: Optional[str] = None


class ScalarFilter(WireModel):
    type: str
    insensitive: bool = False


class RelationFilter(WireModel):
    type: str
    where: Optional["WhereInput"] = None


class WhereInputFilter(WireModel):
    field: str = ""
    scalar: Optional[ScalarFilter] = None
    relation: Optional[RelationFilter] = None


class WhereInput(WireModel):
    not_: Optional["WhereInput"] = Field(default=None, alias="not")
    filter: Optional[WhereInputFilter] = None


class WhereInputConfiguration(WireModel):
    variable_path_components: list[str]
    where_input: WhereInput


class OperationVariablesConfiguration(WireModel):
    inject_variables: list[VariableInjectionConfiguration] = []
    where_inputs: list[WhereInputConfiguration] = []


class PostResolveGetTransformation(WireModel):
    from_: list[str] = Field(default_factory=list, alias="from")
    to: list[str] = []
    date_time_format: Optional[str] = None


class PostResolveTransformation(WireModel):
    kind: str = "GET"
    depth: int = 0
    get: PostResolveGetTransformation
    math: Optional[str] = None


class OperationTransaction(WireModel):
    max_wait_seconds: int = 0
    timeout_seconds: int = 0
    isolation_level: str = ""


class MultipartForm(WireModel):
    field_name: str
    is_array: bool = False


class EngineOperation(WireModel):
    """One operation as served by the engine."""

    name: str
    path: str
    content: str = ""
    operation_type: str = ""
    engine: EngineKind = EngineKind.GRAPHQL
    internal: bool = False
    invalid: bool = False
    authentication_config: Optional[OperationAuthenticationConfig] = None
    authorization_config: OperationAuthorizationConfig = Field(default_factory=OperationAuthorizationConfig)
    variables_configuration: OperationVariablesConfiguration = Field(default_factory=OperationVariablesConfiguration)
    post_resolve_transformations: list[PostResolveTransformation] = []
    transaction: Optional[OperationTransaction] = None
    disallow_parallel: bool = False
    rule_expression_existed: bool = False
    hook_variable_default_values: Dict[str, Any] = {}
    multipart_forms: list[MultipartForm] = []
    datasource_quotes: Dict[str, list[str]] = {}
    variables_schema: Dict[str, Any] = {}
    internal_variables_schema: Dict[str, Any] = {}
    response_schema: Dict[str, Any] = {}
    cache_config: Optional[Dict[str, Any]] = None
    live_query_config: Optional[Dict[str, Any]] = None
    rate_limit: Optional[Dict[str, Any]] = None
    semaphore: Optional[Dict[str, Any]] = None
    hooks_configuration: Optional[Dict[str, Any]] = None


RelationFilter.model_rebuild()
WhereInput.model_rebuild()
WhereInputFilter.model_rebuild()


def normalize_operation_name(path: str) -> str:
    """``users/list`` becomes ``Users__List``."""
    return "__".join(part[:1].upper() + part[1:] for part in path.split("/") if part)

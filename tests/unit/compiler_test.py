"""Tests for the directive GraphQL compiler."""

from __future__ import annotations

import pytest
from graphql import build_schema
from graphql.language import ArgumentNode, EnumValueNode, ListValueNode, NameNode

from fireboom.compiler import (
    DocumentError,
    OperationCompiler,
    RuleSyntaxError,
    default_registry,
    normalize_operation_name,
    operation_directive_names,
    parse_document,
    parse_rule,
    replace_operation_directive,
)

SDL = """
type Query {
  main_users(take: Int, where: UserWhereInput): [User!]!
  main_user(id: String!): User
}

type Mutation {
  main_createUser(name: String!): User
}

type User {
  id: String!
  name: String
  email: String
}

input UserWhereInput {
  name: String
}
"""

FIELD_DATASOURCES = {"main_users": "main", "main_user": "main", "main_createUser": "main"}


@pytest.fixture
def compiler() -> OperationCompiler:
    return OperationCompiler(build_schema(SDL), FIELD_DATASOURCES)


class TestNames:
    def test_normalize_operation_name(self) -> None:
        assert normalize_operation_name("users/list") == "Users__List"
        assert normalize_operation_name("a/b/getOne") == "A__B__GetOne"


class TestCompile:
    def test_query_with_variables(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/list", "query ($take: Int) { main_users(take: $take) { id name } }")

        assert result.valid, result.errors
        operation = result.operation
        assert operation.name == "Users__List"
        assert operation.operation_type == "QUERY"
        assert operation.datasource_quotes == {"main": ["users"]}
        assert result.selected_fields == ["main_users"]
        assert "query Users__List" in operation.content

        variables = operation.variables_schema
        assert variables["properties"]["take"] == {"type": "integer", "nullable": True}
        assert "required" not in variables

        users = operation.response_schema["properties"]["data"]["properties"]["main_users"]
        assert users["type"] == "array"
        assert set(users["items"]["properties"]) == {"id", "name"}
        assert users["items"]["required"] == ["id"]
        assert operation.response_schema["properties"]["data"]["required"] == ["main_users"]

    def test_input_object_definitions(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/find", "query ($where: UserWhereInput) { main_users(where: $where) { id } }")

        assert result.valid, result.errors
        assert result.variables_refs == ["UserWhereInput"]
        assert result.definitions["UserWhereInput"]["properties"]["name"]["type"] == "string"
        assert result.operation.variables_schema["properties"]["where"] == {"$ref": "#/definitions/UserWhereInput"}

    def test_fragments_are_expanded(self, compiler: OperationCompiler) -> None:
        result = compiler.compile(
            "users/list",
            "query { main_users { ...UserParts } }",
            fragments="fragment UserParts on User { id email }",
        )

        assert result.valid, result.errors
        users = result.operation.response_schema["properties"]["data"]["properties"]["main_users"]
        assert set(users["items"]["properties"]) == {"id", "email"}

    def test_from_claim_hides_variable(self, compiler: OperationCompiler) -> None:
        result = compiler.compile(
            "users/me",
            "query ($uid: String! @fromClaim(name: USERID)) { main_user(id: $uid) { id } }",
        )

        assert result.valid, result.errors
        operation = result.operation
        assert "uid" not in operation.variables_schema["properties"]
        assert operation.internal_variables_schema["required"] == ["uid"]
        claims = operation.authorization_config.claims
        assert [c.claim_type for c in claims] == ["USERID"]
        assert claims[0].variable_path_components == ["uid"]
        assert operation.authentication_config.auth_required is True

    def test_injected_uuid(self, compiler: OperationCompiler) -> None:
        result = compiler.compile(
            "users/create",
            "mutation ($name: String! @injectGeneratedUUID) { main_createUser(name: $name) { id } }",
        )

        assert result.valid, result.errors
        operation = result.operation
        assert operation.operation_type == "MUTATION"
        inject = operation.variables_configuration.inject_variables[0]
        assert inject.variable_kind.value == "UUID"
        assert inject.to_dict()["variablePathComponents"] == ["name"]

    def test_operation_directives(self, compiler: OperationCompiler) -> None:
        result = compiler.compile(
            "users/admin",
            "query @rbac(requireMatchAny: [admin]) @internalOperation { main_users { id } }",
        )

        assert result.valid, result.errors
        operation = result.operation
        assert operation.internal is True
        assert operation.authorization_config.role_config.require_match_any == ["admin"]
        assert operation.to_dict()["authorizationConfig"]["roleConfig"]["requireMatchAny"] == ["admin"]

    def test_transaction_on_mutation(self, compiler: OperationCompiler) -> None:
        result = compiler.compile(
            "users/create",
            'mutation @transaction(maxWaitSeconds: 3) { main_createUser(name: "a") { id } }',
        )

        assert result.valid, result.errors
        transaction = result.operation.transaction
        assert transaction.max_wait_seconds == 3
        assert transaction.timeout_seconds == 10
        assert transaction.isolation_level == "serializable"
        assert result.operation.disallow_parallel is True

    def test_transaction_not_allowed_on_query(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/list", "query @transaction { main_users { id } }")
        assert result.errors == ["not support directive [transaction] on [QUERY]"]

    def test_unknown_field(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/list", "query { nope { id } }")
        assert result.errors == ["not found selectionField named [nope] on path [data]"]
        assert result.operation.content == ""

    def test_useless_variable(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/list", "query ($x: Int) { main_users { id } }")
        assert result.errors == ["variable [x] useless, please make sure"]

    def test_missing_required_argument(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/one", "query { main_user { id } }")
        assert result.errors == ["argument [id] is required on path [data.main_user]"]

    def test_incompatible_variable(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/one", "query ($id: Int!) { main_user(id: $id) { id } }")
        assert result.errors[0].startswith("variable [id] must compatible with")

    def test_syntax_error(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/list", "query { main_users { id ")
        assert not result.valid

    def test_two_operations_rejected(self, compiler: OperationCompiler) -> None:
        result = compiler.compile("users/list", "query A { main_users { id } } query B { main_users { id } }")
        assert result.errors == ["amount of operation definition expected 1, but found [2]"]


class TestDocument:
    def test_unknown_fragment(self) -> None:
        with pytest.raises(DocumentError):
            parse_document("query { a { ...Missing } }")

    def test_fragment_cycle(self) -> None:
        text = "query { a { ...A } } fragment A on T { ...B } fragment B on T { ...A }"
        with pytest.raises(DocumentError):
            parse_document(text)

    def test_replace_operation_directive(self) -> None:
        text = "query @rbac(requireMatchAll: [user]) { a }"
        argument = ArgumentNode(
            name=NameNode(value="requireMatchAny"),
            value=ListValueNode(values=(EnumValueNode(value="admin"),)),
        )

        replaced = replace_operation_directive(text, "rbac", [argument])
        assert "@rbac(requireMatchAny: [admin])" in replaced
        assert "requireMatchAll" not in replaced
        assert operation_directive_names(replaced) == ["rbac"]

        assert operation_directive_names(replace_operation_directive(replaced, "rbac", None)) == []


class TestRules:
    def test_names_and_functions(self) -> None:
        expression = parse_rule("isEmpty(arguments.name) ? headers['x'] : user.name")
        assert expression.names() == {"arguments.name", "headers", "user.name"}
        assert expression.functions() == {"isEmpty"}
        assert "`x`" in expression.source

    def test_unknown_function(self) -> None:
        with pytest.raises(RuleSyntaxError):
            parse_rule("eval(arguments.name)")

    def test_empty(self) -> None:
        with pytest.raises(RuleSyntaxError):
            parse_rule("  ")


class TestRegistry:
    def test_sdl_lists_role_codes(self) -> None:
        registry = default_registry()
        registry.set_role_codes(["user", "admin", "user"])
        sdl = registry.sdl()

        assert "directive @rbac(" in sdl
        assert "enum WG_ROLE {\n  admin\n  user\n}" in sdl
        # the date format enum is shared by two directives but defined once
        assert sdl.count("enum EngineDateTimeFormat ") == 1

    def test_removed_variables(self) -> None:
        assert default_registry().removed() == ["hookVariable"]

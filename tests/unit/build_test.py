"""Tests for the type system merge and the engine configuration build."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from fireboom.build.swagger import build_swagger
from fireboom.build.typesystem import TypeSystemError, check_datasource, merge_type_system, prefix_datasource
from fireboom.compiler import EngineOperation
from fireboom.server import Context

USERS_SDL = """
type Query { findManyUser(where: UserWhereInput): [User] }
type User { id: Int name: String role: Role }
input UserWhereInput { id: Int }
enum Role { ADMIN USER }
scalar DateTime
"""

PING_SDL = """
type Query { hello: String }
type Mutation { ping(x: Int): Boolean }
scalar DateTime
"""


class TestPrefixDatasource:
    def test_types_and_root_fields_prefixed(self) -> None:
        source = prefix_datasource("db", USERS_SDL)

        assert source.root_field_names("query") == ["db_findManyUser"]
        field = source.root_fields["query"][0]
        assert field.type.type.name.value == "db_User"
        assert field.arguments[0].type.name.value == "db_UserWhereInput"
        assert source.child_nodes() == {"db_User": ["id", "name", "role"]}

        names = [d.name.value for d in source.definitions]
        assert names == ["db_User", "db_UserWhereInput", "db_Role", "DateTime"]

    def test_explicit_schema_block(self) -> None:
        source = prefix_datasource("api", "schema { query: Root } type Root { a: String }")
        assert source.root_field_names("query") == ["api_a"]
        assert source.definitions == []

    def test_syntax_error(self) -> None:
        with pytest.raises(TypeSystemError):
            prefix_datasource("db", "type Query {")

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(TypeSystemError):
            check_datasource(prefix_datasource("db", "type Query { a: Missing }"))


class TestMergeTypeSystem:
    def test_sources_merged(self) -> None:
        type_system = merge_type_system([prefix_datasource("db", USERS_SDL), prefix_datasource("svc", PING_SDL)])

        assert type_system.field_datasources == {
            "db_findManyUser": "db",
            "svc_hello": "svc",
            "svc_ping": "svc",
        }
        schema = type_system.schema
        assert set(schema.query_type.fields) == {"db_findManyUser", "svc_hello"}
        assert set(schema.mutation_type.fields) == {"svc_ping"}
        assert schema.get_type("db_Role") is not None
        assert type_system.sdl.count("scalar DateTime") == 1
        assert type_system.datasource("svc").name == "svc"

    def test_empty(self) -> None:
        type_system = merge_type_system([])
        assert type_system.schema is None
        assert type_system.sdl == ""


class TestSwagger:
    def test_paths_by_operation_type(self) -> None:
        operations = [
            EngineOperation(name="Users__List", path="users/list", operation_type="QUERY",
                            variables_schema={"type": "object", "properties": {"take": {"type": "integer"}}}),
            EngineOperation(name="Users__Create", path="users/create", operation_type="MUTATION"),
            EngineOperation(name="Users__Secret", path="users/secret", operation_type="QUERY", internal=True),
        ]
        document = build_swagger(operations, {"UserWhereInput": {"type": "object"}})

        assert set(document["paths"]) == {"/operations/users/list", "/operations/users/create"}
        listing = document["paths"]["/operations/users/list"]["get"]
        assert listing["parameters"] == [
            {"name": "take", "in": "query", "required": False, "schema": {"type": "integer"}}
        ]
        assert "post" in document["paths"]["/operations/users/create"]
        assert "UserWhereInput" in document["components"]["schemas"]


def generated(context: Context, name: str) -> dict:
    return json.loads(context.builder.generated_path(name).read_text(encoding="utf-8"))


class TestEngineBuilder:
    def test_full_build_writes_generated_files(self, context: Context) -> None:
        assert context.build() is True

        configuration = context.builder.configuration
        assert [o.path for o in configuration.operations] == ["users/list"]
        assert configuration.operations[0].datasource_quotes == {"main": ["users"]}

        datasource = configuration.datasource_configurations[0]
        assert datasource.id == "main"
        assert datasource.kind == "GRAPHQL"
        assert datasource.root_nodes[0].field_names == ["main_users", "main_user"]
        assert {f.field_name for f in configuration.field_configurations} == {
            "main_users",
            "main_user",
            "main_createUser",
        }

        config = generated(context, "fireboom.config")
        assert config["operations"][0]["path"] == "users/list"
        operations = generated(context, "fireboom.operations")
        assert operations["invalids"] == []
        assert "/operations/users/list" in generated(context, "swagger")["paths"]

        schema = (context.builder.generated_root / "fireboom.app.schema.graphql").read_text(encoding="utf-8")
        assert "main_users(take: Int): [main_User!]!" in schema
        assert "directive @fromClaim(" in schema

        cached = context.workdir / "exported/introspection/main.graphql"
        assert "type User" in cached.read_text(encoding="utf-8")

    def test_invalid_operations_listed_not_served(self, add_operation, make_context) -> None:
        add_operation("users/broken", "query { nope { id } }")
        context = make_context()
        context.init()
        context.build()

        assert [o.path for o in context.builder.configuration.operations] == ["users/list"]
        operations = generated(context, "fireboom.operations")
        assert operations["invalids"] == ["users/broken"]
        assert operations["errors"]["users/broken"] == ["not found selectionField named [nope] on path [data]"]
        assert context.models.operation.get("users/broken").invalid is True

    def test_disabled_datasource_skipped(self, workdir: Path, make_context) -> None:
        path = workdir / "store/datasource/main.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        path.write_text(json.dumps({**data, "enabled": False}), encoding="utf-8")
        context = make_context()
        context.init()

        assert context.build() is True
        assert context.builder.configuration.datasource_configurations == []
        assert context.builder.configuration.operations == []
        assert generated(context, "fireboom.operations")["invalids"] == ["users/list"]


class TestIncrementalBuild:
    def test_operation_text_update_patches_configuration(self, context: Context) -> None:
        context.restart()
        node = context.supervisor.node

        context.models.operation_texts.graphql.write(
            "users/list", "alice", "query { main_users { id } }"
        )

        operation = context.builder.configuration.operations[0]
        users = operation.response_schema["properties"]["data"]["properties"]["main_users"]
        assert set(users["items"]["properties"]) == {"id"}
        assert node.reloads == 1
        assert generated(context, "fireboom.config")["operations"][0]["responseSchema"] == operation.to_dict()["responseSchema"]

    def test_operation_delete_drops_entry(self, context: Context) -> None:
        context.restart()

        context.models.operation.delete("users/list", user="alice")

        assert context.builder.configuration.operations == []
        assert generated(context, "fireboom.config").get("operations", []) == []
        assert context.supervisor.node.reloads == 1

    def test_disabling_operation_removes_it(self, context: Context) -> None:
        context.restart()

        context.models.operation.update({"path": "users/list", "enabled": False}, user="alice")

        assert context.builder.configuration.operations == []
        assert generated(context, "fireboom.operations")["operations"][0]["path"] == "users/list"

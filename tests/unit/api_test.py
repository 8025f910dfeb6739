"""Tests for the HTTP surface: envelope, auth, model routes and engine routes."""

from __future__ import annotations

import io
import zipfile

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from fireboom.core.errcode import ErrCode
from fireboom.server import Context, create_app

USER = {"X-FB-User": "alice"}


@pytest.fixture
def client(context: Context) -> TestClient:
    return TestClient(create_app(context))


class TestEnvelope:
    def test_health_is_public(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_custom_error_envelope(self, client: TestClient) -> None:
        response = client.get("/role/nope")
        assert response.status_code == 400
        assert response.json() == {"mode": "role", "code": 10506, "message": "data [nope] not exist"}

    def test_locale_header(self, client: TestClient) -> None:
        response = client.get("/role/nope", headers={"X-FB-Locale": "zh-cn"})
        assert response.json()["message"] == "数据[nope]不存在"

    def test_bind_error(self, client: TestClient) -> None:
        response = client.put("/role", json=["not", "an", "object"])
        assert response.status_code == 400
        body = response.json()
        assert body["mode"] == "role"
        assert body["code"] == ErrCode.ParamBindError


class TestAuthentication:
    @pytest.fixture
    def secured(self, make_context) -> tuple[Context, TestClient]:
        context = make_context({"enable-auth": True})
        context.init()
        return context, TestClient(create_app(context))

    def test_missing_key_rejected(self, secured) -> None:
        _, client = secured
        response = client.get("/role")
        assert response.status_code == 401
        assert client.get("/health").status_code == 200

    def test_header_and_query_key(self, secured) -> None:
        context, client = secured
        assert client.get("/role", headers={"X-FB-Authentication": context.auth_key}).status_code == 200
        assert client.get("/role", params={"auth-key": context.auth_key}).status_code == 200
        assert client.get("/role", headers={"X-FB-Authentication": "wrong"}).status_code == 401

    def test_websocket_requires_key(self, secured) -> None:
        _, client = secured
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws") as websocket:
                websocket.receive_json()


class TestModelRoutes:
    def test_crud(self, client: TestClient) -> None:
        created = client.post("/role", json={"code": "admin", "remark": "root"}, headers=USER)
        assert created.status_code == 200
        assert created.json()["code"] == "admin"

        assert [item["code"] for item in client.get("/role").json()] == ["admin"]
        assert client.get("/role/admin").json()["remark"] == "root"

        duplicated = client.post("/role", json={"code": "admin"}, headers=USER)
        assert duplicated.json()["code"] == ErrCode.LoaderDataExistError

        updated = client.put("/role", json={"code": "admin", "remark": "changed"}, headers=USER)
        assert updated.json()["remark"] == "changed"

        assert client.delete("/role/admin", headers=USER).status_code == 200
        assert client.get("/role").json() == []

    def test_batch_and_tree(self, client: TestClient) -> None:
        response = client.post("/role/batch", json=[{"code": "a"}, {"code": "g/b"}], headers=USER)
        assert response.json() == [{"dataName": "a", "succeed": True}, {"dataName": "g/b", "succeed": True}]

        tree = client.get("/role/tree").json()
        assert [node["name"] for node in tree] == ["g", "a"]

        assert client.delete("/role/batch", params={"dataNames": "a,g/b"}, headers=USER).json() == ["a", "g/b"]

    def test_empty_batch_rejected(self, client: TestClient) -> None:
        response = client.post("/role/batch", json=[], headers=USER)
        assert response.json()["code"] == ErrCode.DataEmptyListError

    def test_single_model(self, client: TestClient) -> None:
        setting = client.get("/globalSetting").json()
        assert "nodeOptions" in setting

    def test_license_is_read_only(self, client: TestClient) -> None:
        bundled = client.get("/license").json()
        assert bundled["defaultLimits"]["operation"] == 888
        assert "operation" in bundled["wsPushRequired"]

        response = client.put("/license", json={"type": "enterprise"}, headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == ErrCode.LoaderEmbedNotAllowModifyErr
        assert client.get("/license").json()["type"] == "community"

    def test_export_then_import(self, context: Context, client: TestClient) -> None:
        client.post("/role", json={"code": "admin"}, headers=USER)

        exported = client.get("/role/export")
        assert exported.headers["content-type"] == "application/zip"
        names = zipfile.ZipFile(io.BytesIO(exported.content)).namelist()
        assert names == ["role/admin.json"]

        client.delete("/role/admin", headers=USER)
        result = client.post("/role/import", content=exported.content, headers=USER).json()
        assert result["imported"] == ["role/admin.json"]
        assert context.models.role.exists("admin")

    def test_operation_export_then_import(self, context: Context, client: TestClient) -> None:
        document = context.models.operation_texts.graphql.read("users/list")

        exported = client.get("/operation/export")
        names = sorted(zipfile.ZipFile(io.BytesIO(exported.content)).namelist())
        assert names == ["operation/users/list.graphql", "operation/users/list.json"]

        assert client.delete("/operation/users/list", headers=USER).status_code == 200
        assert not context.models.operation.exists("users/list")

        response = client.post("/operation/import", content=exported.content, headers=USER)
        assert response.status_code == 200
        assert sorted(response.json()["imported"]) == names
        assert context.models.operation.exists("users/list")
        assert context.models.operation_texts.graphql.read("users/list") == document

    def test_import_rejects_garbage(self, client: TestClient) -> None:
        response = client.post("/role/import", content=b"not a zip", headers=USER)
        assert response.json()["code"] == ErrCode.FileUnZipError


class TestOperationRoutes:
    def test_graphql_document(self, context: Context, client: TestClient) -> None:
        assert "main_users" in client.get("/operation/graphql/users/list").text

        client.post("/operation/graphql/users/list", content="query { main_users { id } }", headers=USER)
        assert context.models.operation_texts.graphql.read("users/list") == "query { main_users { id } }"

    def test_empty_document_rejected(self, client: TestClient) -> None:
        response = client.post("/operation/graphql/users/list", content=b"", headers=USER)
        assert response.json()["code"] == ErrCode.BodyParamEmptyError

    def test_bind_roles_and_delete_guard(self, context: Context, client: TestClient) -> None:
        context.models.role.insert_or_update({"code": "admin"})
        assert context.build() is True

        bound = client.post(
            "/operation/bindRoles",
            json={"rbacType": "requireMatchAll", "roleCodes": ["admin"], "operationPaths": ["users/list", "missing"]},
            headers=USER,
        )
        assert bound.json() == ["users/list"]
        document = context.models.operation_texts.graphql.read("users/list")
        assert "@rbac(requireMatchAll: [admin])" in document

        listed = client.get("/operation/listByRole", params={"roleCode": "admin"}).json()
        assert [item["path"] for item in listed] == ["users/list"]

        refused = client.delete("/role/admin", headers=USER)
        assert refused.json()["code"] == ErrCode.OperationRoleHasBindError
        assert context.models.role.exists("admin")

    def test_unknown_rbac_type(self, client: TestClient) -> None:
        response = client.post("/operation/bindRoles", json={"rbacType": "maybe", "roleCodes": []})
        assert response.json()["code"] == ErrCode.OperationRbacTypeError


class TestEngineRoutes:
    def test_restart_then_swagger(self, context: Context, client: TestClient) -> None:
        assert client.post("/engine/restart").json() == {"busy": False}
        assert context.supervisor.started is True

        swagger = client.get("/engine/swagger").json()
        assert "/operations/users/list" in swagger["paths"]

    def test_home_counts(self, client: TestClient) -> None:
        home = client.get("/home").json()
        assert home["counts"]["operation"] == 1
        assert home["operation"]["enabled"] == 1

    def test_env_update(self, context: Context, client: TestClient) -> None:
        assert client.put("/env", json={"CUSTOM_FLAG": "1"}).json() == {"CUSTOM_FLAG": "add"}
        assert client.get("/env").json()["CUSTOM_FLAG"] == "1"

    def test_upload_directories(self, client: TestClient) -> None:
        directories = client.get("/system/directories").json()
        assert directories["graphql"] == ["main.graphql"]
        assert directories["oas"] == []


class TestNotifierSocket:
    def test_pull_engine_state(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"channel": "engine", "event": "pull", "requestId": "1"})
            frame = websocket.receive_json()

        assert frame["channel"] == "engine"
        assert frame["requestId"] == "1"
        assert "fbVersion" in frame["data"]

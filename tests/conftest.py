"""Shared fixtures: a seeded working directory and a synchronous context."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import pytest

from fireboom.engine import StaticNode
from fireboom.server import Context

MAIN_SDL = """
type Query {
  users(take: Int): [User!]!
  user(id: String!): User
}

type Mutation {
  createUser(name: String!): User
}

type User {
  id: String!
  name: String
}
"""


def write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def write_operation(workdir: Path, path: str, content: str, enabled: bool = True) -> None:
    write_json(workdir / "store/operation" / f"{path}.json", {"path": path, "enabled": enabled})
    (workdir / "store/operation" / f"{path}.graphql").write_text(content, encoding="utf-8")


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Project with one uploaded GraphQL datasource and one operation."""
    upload = tmp_path / "upload/graphql/main.graphql"
    upload.parent.mkdir(parents=True)
    upload.write_text(MAIN_SDL, encoding="utf-8")
    write_json(
        tmp_path / "store/datasource/main.json",
        {"name": "main", "enabled": True, "kind": "GRAPHQL", "customGraphql": {"schemaFilepath": "main.graphql"}},
    )
    write_operation(tmp_path, "users/list", "query ($take: Int) { main_users(take: $take) { id name } }")
    return tmp_path


@pytest.fixture
def add_operation(workdir: Path):
    def add(path: str, content: str, enabled: bool = True) -> None:
        write_operation(workdir, path, content, enabled)
    return add


@pytest.fixture
def make_context(workdir: Path):
    """Build contexts whose restarts run inline on a StaticNode."""
    created: list[Context] = []

    def make(flags: Optional[dict] = None) -> Context:
        context = Context(
            workdir,
            {"build-only": True, **(flags or {})},
            runner=lambda fn: fn(),
            node_factory=StaticNode,
            console_logging=False,
        )
        created.append(context)
        return context

    yield make
    for context in created:
        context.close()


@pytest.fixture
def context(make_context) -> Context:
    context = make_context()
    context.init()
    return context

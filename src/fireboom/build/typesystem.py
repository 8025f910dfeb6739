"""
Merged type system of the enabled datasources.

Every datasource contributes a GraphQL SDL fragment. Its object, input, enum,
interface and union types are prefixed with ``<datasource>_`` and so are its
root fields; scalars keep their names and are shared. The root types of all
datasources are then merged into one ``Query``, ``Mutation`` and
``Subscription``.

Usage:
    sources = [prefix_datasource("db1", sdl)]
    type_system = merge_type_system(sources)
    type_system.field_datasources["db1_findManyUser"]  # "db1"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from graphql import GraphQLError, GraphQLSchema, build_ast_schema, parse, print_ast
from graphql.language import (
    DirectiveDefinitionNode,
    DocumentNode,
    EnumTypeDefinitionNode,
    FieldDefinitionNode,
    InputObjectTypeDefinitionNode,
    InterfaceTypeDefinitionNode,
    NamedTypeNode,
    NameNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    SchemaDefinitionNode,
    SchemaExtensionNode,
    TypeDefinitionNode,
    UnionTypeDefinitionNode,
    Visitor,
    visit,
)

from ..compiler.document import copy_node

ROOT_TYPE_NAMES = {"query": "Query", "mutation": "Mutation", "subscription": "Subscription"}

_PREFIXED_DEFINITIONS = (
    ObjectTypeDefinitionNode,
    InputObjectTypeDefinitionNode,
    EnumTypeDefinitionNode,
    InterfaceTypeDefinitionNode,
    UnionTypeDefinitionNode,
)


class TypeSystemError(Exception):
    """Raised when a datasource schema cannot be parsed or merged."""


@dataclass
class DatasourceSchema:
    """Prefixed schema fragment of one datasource."""
    name: str
    definitions: list = field(default_factory=list)
    # Operation kind (query, mutation, subscription) -> prefixed root fields
    root_fields: Dict[str, list[FieldDefinitionNode]] = field(default_factory=dict)

    def root_field_names(self, kind: str) -> list[str]:
        return [f.name.value for f in self.root_fields.get(kind, [])]

    def child_nodes(self) -> Dict[str, list[str]]:
        """Object type name -> field names, as the engine datasource config lists them."""
        return {
            d.name.value: [f.name.value for f in d.fields or ()]
            for d in self.definitions
            if isinstance(d, (ObjectTypeDefinitionNode, InterfaceTypeDefinitionNode))
        }


@dataclass
class TypeSystem:
    schema: Optional[GraphQLSchema] = None
    sdl: str = ""
    field_datasources: Dict[str, str] = field(default_factory=dict)
    datasources: list[DatasourceSchema] = field(default_factory=list)

    def datasource(self, name: str) -> Optional[DatasourceSchema]:
        return next((d for d in self.datasources if d.name == name), None)


class _PrefixVisitor(Visitor):
    def __init__(self, prefix: str, renames: Dict[str, str], root_names: Dict[str, str]):
        super().__init__()
        self.prefix = prefix
        self.renames = renames
        self.root_names = root_names

    def leave_named_type(self, node: NamedTypeNode, *_):
        renamed = self.renames.get(node.name.value)
        if renamed:
            return copy_node(node, name=NameNode(value=renamed))
        return None

    def _leave_definition(self, node: TypeDefinitionNode, *_):
        name = node.name.value
        if name in self.root_names:
            fields = tuple(
                copy_node(f, name=NameNode(value=f"{self.prefix}_{f.name.value}")) for f in node.fields or ()
            )
            return copy_node(node, fields=fields)
        renamed = self.renames.get(name)
        if renamed:
            return copy_node(node, name=NameNode(value=renamed))
        return None

    leave_object_type_definition = _leave_definition
    leave_object_type_extension = _leave_definition
    leave_input_object_type_definition = _leave_definition
    leave_enum_type_definition = _leave_definition
    leave_interface_type_definition = _leave_definition
    leave_union_type_definition = _leave_definition


def _root_type_names(document: DocumentNode) -> Dict[str, str]:
    """Root type name -> operation kind, honouring an explicit ``schema`` block."""
    for definition in document.definitions:
        if isinstance(definition, SchemaDefinitionNode):
            return {o.type.name.value: o.operation.value for o in definition.operation_types}
    return {name: kind for kind, name in ROOT_TYPE_NAMES.items()}


def prefix_datasource(name: str, sdl: str) -> DatasourceSchema:
    """
    Parse ``sdl`` and prefix its types and root fields with ``name``.

    Raises:
        TypeSystemError: Syntax error in the SDL
    """
    try:
        document = parse(sdl, no_location=True)
    except GraphQLError as e:
        raise TypeSystemError(f"datasource [{name}] schema invalid: {e.message}") from e

    root_names = _root_type_names(document)
    renames = {
        d.name.value: f"{name}_{d.name.value}"
        for d in document.definitions
        if isinstance(d, _PREFIXED_DEFINITIONS) and d.name.value not in root_names
    }
    prefixed: DocumentNode = visit(document, _PrefixVisitor(name, renames, root_names))

    source = DatasourceSchema(name=name)
    for definition in prefixed.definitions:
        if isinstance(definition, (SchemaDefinitionNode, SchemaExtensionNode)):
            continue
        if isinstance(definition, (ObjectTypeDefinitionNode, ObjectTypeExtensionNode)) and (
            definition.name.value in root_names
        ):
            kind = root_names[definition.name.value]
            source.root_fields.setdefault(kind, []).extend(definition.fields or ())
            continue
        source.definitions.append(definition)
    return source


def _document(sources: list[DatasourceSchema]) -> DocumentNode:
    definitions = []
    scalars: Dict[str, ScalarTypeDefinitionNode] = {}
    directives: Dict[str, DirectiveDefinitionNode] = {}
    root_fields: Dict[str, list[FieldDefinitionNode]] = {kind: [] for kind in ROOT_TYPE_NAMES}
    for source in sources:
        for definition in source.definitions:
            if isinstance(definition, ScalarTypeDefinitionNode):
                scalars.setdefault(definition.name.value, definition)
            elif isinstance(definition, DirectiveDefinitionNode):
                directives.setdefault(definition.name.value, definition)
            else:
                definitions.append(definition)
        for kind, fields in source.root_fields.items():
            root_fields[kind].extend(fields)

    roots = [
        ObjectTypeDefinitionNode(
            name=NameNode(value=ROOT_TYPE_NAMES[kind]),
            fields=tuple(fields),
            interfaces=(),
            directives=(),
        )
        for kind, fields in root_fields.items()
        if fields
    ]
    return DocumentNode(definitions=tuple([*roots, *definitions, *scalars.values(), *directives.values()]))


def check_datasource(source: DatasourceSchema) -> None:
    """
    Build the fragment of one datasource on its own.

    Raises:
        TypeSystemError: The fragment references unknown types or is malformed
    """
    try:
        build_ast_schema(_document([source]), assume_valid_sdl=True)
    except (GraphQLError, TypeError) as e:
        raise TypeSystemError(f"datasource [{source.name}] schema invalid: {e}") from e


def merge_type_system(sources: list[DatasourceSchema]) -> TypeSystem:
    """
    Merge the prefixed fragments into one schema.

    Raises:
        TypeSystemError: The fragments conflict with each other
    """
    type_system = TypeSystem(datasources=list(sources))
    if not sources:
        return type_system

    for source in sources:
        for fields in source.root_fields.values():
            for definition in fields:
                type_system.field_datasources[definition.name.value] = source.name

    document = _document(sources)
    try:
        type_system.schema = build_ast_schema(document, assume_valid_sdl=True)
    except (GraphQLError, TypeError) as e:
        raise TypeSystemError(f"merge datasource schemas failed: {e}") from e
    type_system.sdl = print_ast(document)
    return type_system

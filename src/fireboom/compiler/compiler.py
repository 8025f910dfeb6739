"""
Operation compiler.

Turns the GraphQL text of one operation into its engine descriptor, the
public and internal variables schemas and the response schema. Selections
are resolved first (they decide which variables are used and exported),
then variable definitions, then directives on the operation itself.

Errors never raise: they are collected on the result and the operation is
reported invalid.

Usage:
    compiler = OperationCompiler(type_system.schema, type_system.field_datasources)
    result = compiler.compile("users/list", text, fragments)
    if result.errors:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

from graphql import (
    GraphQLEnumType,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLNamedType,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    get_named_type,
    is_list_type,
    is_non_null_type,
    print_ast,
    value_from_ast_untyped,
)
from graphql.language import (
    ArgumentNode,
    DirectiveNode,
    FieldNode,
    InlineFragmentNode,
    ListTypeNode,
    ListValueNode,
    NameNode,
    NonNullTypeNode,
    NullValueNode,
    ObjectValueNode,
    OperationDefinitionNode,
    SelectionSetNode,
    TypeNode,
    ValueNode,
    VariableNode,
)
from graphql.pyutils import Undefined

from .descriptor import EngineKind, EngineOperation, MultipartForm, normalize_operation_name
from .directives import DirectiveError, DirectiveRegistry, default_registry, resolve_arguments
from .document import DocumentError, copy_node, parse_document, single_operation
from .resolver import OperationResolver, SelectionResolver, VariableResolver
from .schema import (
    ARRAY_PATH,
    BASE_SCALARS,
    SCALAR_BINARY,
    TYPE_OBJECT,
    TYPE_STRING,
    add_required,
    array_schema,
    is_json_scalar,
    kebab_case,
    object_schema,
    ref_schema,
    scalar_schema,
    search_ref_definitions,
)

RESPONSE_ROOT = "data"
QUERY_RAW_FIELD = "queryRaw"
WHERE_UNIQUE_INPUT_SUFFIX = "WhereUniqueInput"
COMPOUND_UNIQUE_INPUT_SUFFIX = "CompoundUniqueInput"
ENUM_DESCRIPTIONS_KEY = "x-enum-descriptions"

DIRECTIVE_RESOLVE_ERROR_FORMAT = "directive [%s] resolve error: %s"
DIRECTIVE_NOT_SUPPORTED_FORMAT = "not support directive [%s] on [%s]"
VARIABLE_TYPE_COMPATIBLE_FORMAT = "variable [%s] must compatible with %s"
VARIABLE_USELESS_FORMAT = "variable [%s] useless, please make sure"
ARGUMENT_DEFINITION_MISS_FORMAT = "not found argumentDefinition named [%s] on path [%s]"
ARGUMENT_REQUIRED_FORMAT = "argument [%s] is required on path [%s]"
ARGUMENT_REPEAT_FORMAT = "argument element [%s] is repeat on path [%s]"
ARGUMENT_AT_LEAST_ONE_FORMAT = "argument of [%s] at least one on path [%s]"
FIELD_DEFINITION_MISS_FORMAT = "not found fieldDefinition named [%s] on path [%s]"
FIELD_REPEAT_FORMAT = "field [%s] is repeat on path [%s]"
SELECTION_FIELD_MISS_FORMAT = "not found selectionField named [%s] on path [%s]"
NULL_NOT_ALLOWED_FORMAT = "definition for [null] expected nullable [%s] on path [%s]"
SELECTION_VARIABLE_MISS_FORMAT = "not found variable named [%s] for path [%s]"
FIELD_SUPPLY_FORMAT = "must supply [%s] on path [%s]"

LOCATION_FIELD = "FIELD"
LOCATION_VARIABLE = "VARIABLE_DEFINITION"

Schema = Dict[str, Any]
ObjectBuild = Callable[[Optional[GraphQLNamedType]], Schema]
FieldsType = (GraphQLObjectType, GraphQLInterfaceType)


@dataclass
class CompileResult:
    operation: EngineOperation
    errors: list[str] = field(default_factory=list)
    # Root fields of the merged type system referenced by the operation
    selected_fields: list[str] = field(default_factory=list)
    variables_refs: list[str] = field(default_factory=list)
    definitions: Dict[str, Schema] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors


class OperationCompiler:
    """
    Compiles operations against one merged type system.

    Args:
        schema: Merged schema of every enabled datasource, None when nothing is loaded
        field_datasources: Root field name -> datasource name
        registry: Directive registry, the default set when omitted
    """

    def __init__(
        self,
        schema: Optional[GraphQLSchema] = None,
        field_datasources: Optional[Dict[str, str]] = None,
        registry: Optional[DirectiveRegistry] = None,
    ):
        self.schema = schema
        self.field_datasources = field_datasources or {}
        self.registry = registry or default_registry()

    def compile(self, path: str, text: str, fragments: str = "", enabled: bool = True) -> CompileResult:
        operation = EngineOperation(name=normalize_operation_name(path), path=path, engine=EngineKind.GRAPHQL)
        result = CompileResult(operation=operation)
        try:
            document = parse_document(text, fragments)
            definition = single_operation(document)
        except DocumentError as e:
            result.errors.append(str(e))
            return result

        walk = _DocumentWalk(self, operation, definition)
        walk.run()
        result.errors = walk.errors
        result.selected_fields = walk.selected_fields
        result.variables_refs = walk.variables_refs
        if enabled:
            result.definitions = search_ref_definitions(walk.argument_definitions, *walk.variables_refs)
        if not walk.errors:
            operation.content = print_ast(walk.definition)
        return result


class _DocumentWalk:
    """State of a single compile."""

    def __init__(self, compiler: OperationCompiler, operation: EngineOperation, definition: OperationDefinitionNode):
        self.schema = compiler.schema
        self.field_datasources = compiler.field_datasources
        self.registry = compiler.registry
        self.operation = operation
        self.definition = definition
        self.errors: list[str] = []
        self.selected_fields: list[str] = []
        self.variables_refs: list[str] = []
        self.variable_schemas: Dict[str, Schema] = {}
        self.variable_exported: Dict[str, bool] = {}
        self.argument_definitions: Dict[str, Schema] = {}

    def report(self, template: str, *args: Any) -> None:
        self.errors.append(template % args)

    def report_path(self, template: str, name: str, path: Sequence[str]) -> None:
        self.report(template, name, ".".join(path))

    @property
    def errored(self) -> bool:
        return bool(self.errors)

    def run(self) -> None:
        kind = self.definition.operation.value
        self.operation.operation_type = kind.upper()
        self.definition = copy_node(self.definition, name=NameNode(value=self.operation.name))

        root_type = self._root_type(kind)
        response = self.resolve_selection_set(self.definition.selection_set, root_type, [RESPONSE_ROOT])
        self.operation.response_schema = {
            "type": TYPE_OBJECT,
            "properties": {RESPONSE_ROOT: response},
        }
        self.resolve_variable_definitions()
        self.resolve_operation_directives()

    def _root_type(self, kind: str) -> Optional[GraphQLObjectType]:
        if self.schema is None:
            return None
        return {
            "query": self.schema.query_type,
            "mutation": self.schema.mutation_type,
            "subscription": self.schema.subscription_type,
        }.get(kind)

    def _is_root(self, parent: Optional[GraphQLNamedType]) -> bool:
        return parent is not None and parent is self._root_type(self.definition.operation.value)

    # Selections

    def resolve_selection_set(
        self,
        selection_set: Optional[SelectionSetNode],
        parent: Optional[GraphQLNamedType],
        path: list[str],
        schema: Optional[Schema] = None,
    ) -> Schema:
        schema = schema if schema is not None else object_schema()
        if selection_set is None or self.errored:
            return schema

        fields = parent.fields if isinstance(parent, FieldsType) else {}
        seen: list[str] = []
        for selection in selection_set.selections:
            if isinstance(selection, InlineFragmentNode):
                fragment_parent = parent
                if selection.type_condition is not None and self.schema is not None:
                    fragment_parent = self.schema.get_type(selection.type_condition.name.value) or parent
                self.resolve_selection_set(selection.selection_set, fragment_parent, path, schema)
                continue
            if not isinstance(selection, FieldNode):
                continue

            name = selection.name.value
            key = selection.alias.value if selection.alias else name
            definition = fields.get(name)
            if definition is None:
                if not self.resolve_missing_field(selection, key, path, schema):
                    return schema
                continue

            if (
                not self._is_root(parent)
                and (definition.args or selection.selection_set is None)
                and name in seen
            ):
                self.report_path(FIELD_REPEAT_FORMAT, name, path)
                return schema
            seen.append(name)

            origin_name = name
            datasource = self.field_datasources.get(name) if self._is_root(parent) else None
            if datasource is not None:
                origin_name = name[len(datasource) + 1:] if name.startswith(datasource + "_") else name
                self.operation.datasource_quotes.setdefault(datasource, []).append(origin_name)
                self.selected_fields.append(name)

            item_path = _append_path(path, key, definition.type)

            def build_object(named: Optional[GraphQLNamedType], _selection=selection, _path=item_path, _origin=origin_name):
                result = self.resolve_selection_set(_selection.selection_set, named, _path)
                if named is not None and named.description:
                    result["description"] = named.description
                if _origin == QUERY_RAW_FIELD:
                    result = array_schema(result)
                return result

            item_schema = self.type_schema(
                definition.type,
                definition.description,
                build_object,
                path,
                has_sub_fields=selection.selection_set is not None,
            )
            self.resolve_selection_arguments(name, selection.arguments, definition.args, path)

            schema["properties"][key] = item_schema
            origin_nullable = bool(item_schema.get("nullable"))
            resolver = self._selection_resolver(item_path, item_schema)
            self.resolve_selection_directives(selection.directives, resolver)
            if resolver.schema is not None:
                schema["properties"][key] = resolver.schema
            resolved_nullable = bool((resolver.schema or {}).get("nullable"))
            if is_non_null_type(definition.type) and not (not origin_nullable and resolved_nullable):
                add_required(schema, key)
        return schema

    def resolve_missing_field(self, selection: FieldNode, key: str, path: list[str], schema: Schema) -> bool:
        """Fields unknown to the type system need a customized directive to give them a schema."""
        item_path = [*path, key]
        resolver = self._selection_resolver(item_path, None)
        customized_name = None
        for directive in selection.directives or ():
            resolve = self.registry.selection(directive.name.value)
            if resolve is None or not resolve.customized:
                continue
            customized_name = directive.name.value
            resolver.arguments = resolve_arguments(directive.arguments)
            try:
                resolve.resolve(resolver)
            except DirectiveError as e:
                self.report(DIRECTIVE_RESOLVE_ERROR_FORMAT, customized_name, e)
                return False
            break

        if resolver.schema is None:
            resolver.schema = {}
            self.resolve_selection_directives(selection.directives, resolver)
            self.report_path(SELECTION_FIELD_MISS_FORMAT, selection.name.value, path)
            return False

        schema["properties"][key] = resolver.schema
        self.resolve_selection_directives(selection.directives, resolver, skip=customized_name)
        schema["properties"][key] = resolver.schema
        return True

    def resolve_selection_directives(
        self,
        directives: Optional[Sequence[DirectiveNode]],
        resolver: SelectionResolver,
        skip: Optional[str] = None,
    ) -> None:
        if not directives or self.errored:
            return
        for directive in directives:
            name = directive.name.value
            if name == skip:
                continue
            resolve = self.registry.selection(name)
            if resolve is None:
                if not self.registry.is_base(name):
                    self.report(DIRECTIVE_NOT_SUPPORTED_FORMAT, name, LOCATION_FIELD)
                continue
            resolver.arguments = resolve_arguments(directive.arguments)
            try:
                resolve.resolve(resolver)
            except DirectiveError as e:
                self.report(DIRECTIVE_RESOLVE_ERROR_FORMAT, name, e)

    def _selection_resolver(self, path: list[str], schema: Optional[Schema]) -> SelectionResolver:
        return SelectionResolver(
            operation=self.operation,
            arguments={},
            path=path,
            schema=schema,
            variable_schemas=self.variable_schemas,
            variable_exported=self.variable_exported,
            definition=self.definition,
        )

    # Field arguments

    def resolve_selection_arguments(
        self,
        field_name: str,
        arguments: Optional[Sequence[ArgumentNode]],
        definitions: Dict[str, Any],
        path: list[str],
    ) -> None:
        if self.errored:
            return
        arg_path = [*path, field_name]
        touched: list[str] = []
        for argument in arguments or ():
            name = argument.name.value
            if name in touched:
                self.report_path(ARGUMENT_REPEAT_FORMAT, name, arg_path)
                return
            definition = definitions.get(name)
            if definition is None:
                self.report_path(ARGUMENT_DEFINITION_MISS_FORMAT, name, arg_path)
                return
            touched.append(name)
            self.check_argument_value(name, argument.value, definition.description, definition.type, arg_path)
            if self.errored:
                return

        for name, definition in definitions.items():
            if is_non_null_type(definition.type) and name not in touched:
                self.report_path(ARGUMENT_REQUIRED_FORMAT, name, arg_path)
                return

    def check_argument_value(
        self,
        name: str,
        value: Optional[ValueNode],
        description: Optional[str],
        arg_type: Any,
        path: list[str],
    ) -> None:
        is_variable = isinstance(value, VariableNode)
        arg_path = [*path, name]
        arg_schema = self.type_schema(
            arg_type,
            description,
            lambda named: self.argument_schema(is_variable, named, arg_path),
            path,
        )
        if value is None:
            return

        if is_variable:
            variable = value.name.value
            variable_definition = _variable_definition(self.definition, variable)
            if variable_definition is None:
                self.report(SELECTION_VARIABLE_MISS_FORMAT, variable, ".".join(arg_path))
                return
            if not _compatible_type(variable_definition.type, arg_type, variable_definition.default_value is not None):
                self.report(VARIABLE_TYPE_COMPATIBLE_FORMAT, variable, str(arg_type))
                return
            self.variable_schemas[variable] = arg_schema
            return

        named = get_named_type(arg_type)
        nullable = not is_non_null_type(arg_type)
        if isinstance(value, NullValueNode):
            if not nullable:
                self.report(NULL_NOT_ALLOWED_FORMAT, str(arg_type), ".".join(arg_path))
            return

        inner_type = arg_type.of_type if is_non_null_type(arg_type) else arg_type
        if isinstance(value, ListValueNode):
            if not is_list_type(inner_type):
                if isinstance(named, GraphQLInputObjectType):
                    self.report_path(FIELD_SUPPLY_FORMAT, f"{TYPE_OBJECT} of {named.name}", arg_path)
                return
            for index, child in enumerate(value.values):
                self.check_argument_value(f"[{index}]", child, description, inner_type.of_type, arg_path)
                if self.errored:
                    return
            return

        if not isinstance(named, GraphQLInputObjectType) or not isinstance(value, ObjectValueNode):
            return
        self.check_input_object(named, value, arg_path)

    def check_input_object(self, named: GraphQLInputObjectType, value: ObjectValueNode, path: list[str]) -> None:
        uniques: list[str] = []
        if named.name.endswith(WHERE_UNIQUE_INPUT_SUFFIX):
            for field_name, input_field in named.fields.items():
                field_type = get_named_type(input_field.type)
                if isinstance(field_type, GraphQLScalarType) or field_type.name.endswith(COMPOUND_UNIQUE_INPUT_SUFFIX):
                    uniques.append(field_name)

        touched: list[str] = []
        for child in value.fields:
            child_name = child.name.value
            if child_name in touched:
                self.report_path(ARGUMENT_REPEAT_FORMAT, child_name, path)
                return
            input_field = named.fields.get(child_name)
            if input_field is None:
                self.report_path(ARGUMENT_DEFINITION_MISS_FORMAT, child_name, path)
                return
            touched.append(child_name)
            self.check_argument_value(child_name, child.value, input_field.description, input_field.type, path)
            if self.errored:
                return

        if uniques and not any(name in touched for name in uniques):
            template = ARGUMENT_AT_LEAST_ONE_FORMAT if len(uniques) > 1 else ARGUMENT_REQUIRED_FORMAT
            self.report_path(template, ", ".join(uniques), path)
            return
        for field_name, input_field in named.fields.items():
            if is_non_null_type(input_field.type) and input_field.default_value is Undefined and field_name not in touched:
                self.report_path(ARGUMENT_REQUIRED_FORMAT, field_name, path)
                return

    def argument_schema(self, is_variable: bool, named: Optional[GraphQLNamedType], path: list[str]) -> Schema:
        """Input objects are shared as definitions and referenced by name."""
        if named is None:
            return {}
        if is_variable and named.name not in self.variables_refs:
            self.variables_refs.append(named.name)
        if named.name in self.argument_definitions or not isinstance(named, GraphQLInputObjectType):
            return ref_schema(named.name)

        definition = object_schema()
        if named.description:
            definition["description"] = named.description
        self.argument_definitions[named.name] = definition
        for field_name, input_field in named.fields.items():
            field_path = _append_path(path, field_name, input_field.type)
            definition["properties"][field_name] = self.type_schema(
                input_field.type,
                input_field.description,
                lambda child, _path=field_path: self.argument_schema(is_variable, child, _path),
                field_path,
            )
            if is_non_null_type(input_field.type):
                add_required(definition, field_name)
        return ref_schema(named.name)

    # Schemas

    def type_schema(
        self,
        field_type: Any,
        description: Optional[str],
        object_build: ObjectBuild,
        path: list[str],
        has_sub_fields: bool = False,
    ) -> Schema:
        non_null = is_non_null_type(field_type)
        inner = field_type.of_type if non_null else field_type
        if is_list_type(inner):
            schema = array_schema(self.type_schema(inner.of_type, None, object_build, path, has_sub_fields))
        else:
            schema = self.named_schema(inner, has_sub_fields, object_build, path)
        if "$ref" not in schema:
            if not non_null:
                schema["nullable"] = True
            if description:
                schema["description"] = description
        return schema

    def named_schema(self, named: GraphQLNamedType, has_sub_fields: bool, object_build: ObjectBuild, path: list[str]) -> Schema:
        name = named.name
        if isinstance(named, GraphQLScalarType):
            if has_sub_fields and is_json_scalar(name):
                return object_build(None)
            schema = scalar_schema(name, format_filter=name in BASE_SCALARS)
            if schema is None:
                schema = {"type": TYPE_STRING, "format": kebab_case(name)}
            return schema
        if isinstance(named, GraphQLEnumType):
            schema: Schema = {"type": TYPE_STRING, "title": name, "enum": list(named.values)}
            if named.description:
                schema["description"] = named.description
            descriptions = {key: value.description for key, value in named.values.items() if value.description}
            if descriptions:
                schema[ENUM_DESCRIPTIONS_KEY] = descriptions
            return schema
        if isinstance(named, (GraphQLObjectType, GraphQLInterfaceType, GraphQLInputObjectType)):
            return object_build(named)
        return {}

    def variable_type_schema(self, type_node: TypeNode, path: list[str]) -> Optional[Schema]:
        """Schema of a variable no field argument describes, e.g. one filled by hooks."""
        non_null = isinstance(type_node, NonNullTypeNode)
        inner = type_node.type if non_null else type_node
        if isinstance(inner, ListTypeNode):
            items = self.variable_type_schema(inner.type, path)
            if items is None:
                return None
            schema = array_schema(items)
        else:
            name = inner.name.value
            named = self.schema.get_type(name) if self.schema is not None else None
            if named is not None:
                schema = self.named_schema(named, False, lambda child: self.argument_schema(True, child, path), path)
            else:
                schema = scalar_schema(name, format_filter=name in BASE_SCALARS)
                if schema is None:
                    self.report_path(FIELD_DEFINITION_MISS_FORMAT, name, path)
                    return None
        if not non_null and "$ref" not in schema:
            schema["nullable"] = True
        return schema

    # Variables

    def resolve_variable_definitions(self) -> None:
        variables = object_schema()
        internal_variables = object_schema()
        self.operation.variables_schema = variables
        self.operation.internal_variables_schema = internal_variables
        definitions = self.definition.variable_definitions or ()
        if not definitions or self.errored:
            return

        removed = set(self.registry.removed())
        saved = []
        for item in definitions:
            name = item.variable.name.value
            item_path = [name]
            keep = True
            if name not in self.variable_schemas and any(d.name.value in removed for d in item.directives or ()):
                keep = False
                variable_schema = self.variable_type_schema(item.type, item_path)
                if variable_schema is not None:
                    self.variable_schemas[name] = variable_schema
                if item.default_value is not None:
                    self.operation.hook_variable_default_values[name] = value_from_ast_untyped(item.default_value)
            if keep:
                saved.append(item)

            item_schema = self.variable_schemas.get(name)
            if item_schema is None:
                self.report(VARIABLE_USELESS_FORMAT, name)
                return
            if item.default_value is not None and "$ref" not in item_schema:
                item_schema["default"] = value_from_ast_untyped(item.default_value)

            unable_input, skipped = self.resolve_variable_directives(item.directives, item_path, item_schema)
            if unable_input:
                continue

            if _type_node_name(item.type) == SCALAR_BINARY:
                self.operation.multipart_forms.append(
                    MultipartForm(field_name=name, is_array=_is_list_node(item.type))
                )
            required = isinstance(item.type, NonNullTypeNode)
            internal_variables["properties"][name] = item_schema
            if required:
                add_required(internal_variables, name)
            if skipped:
                continue
            variables["properties"][name] = item_schema
            if required:
                add_required(variables, name)

        self.definition = copy_node(self.definition, variable_definitions=tuple(saved))

    def resolve_variable_directives(
        self,
        directives: Optional[Sequence[DirectiveNode]],
        path: list[str],
        schema: Schema,
    ) -> tuple[bool, bool]:
        unable_input = skipped = False
        if not directives or self.errored:
            return unable_input, skipped
        for directive in directives:
            name = directive.name.value
            resolve = self.registry.variable(name)
            if resolve is None:
                if not self.registry.is_base(name):
                    self.report(DIRECTIVE_NOT_SUPPORTED_FORMAT, name, LOCATION_VARIABLE)
                continue
            resolver = VariableResolver(
                operation=self.operation,
                arguments=resolve_arguments(directive.arguments),
                path=path,
                schema=schema,
                variable_schemas=self.variable_schemas,
                variable_exported=self.variable_exported,
                definition=self.definition,
                argument_definitions=self.argument_definitions,
            )
            try:
                remove, skip = resolve.resolve(resolver)
            except DirectiveError as e:
                self.report(DIRECTIVE_RESOLVE_ERROR_FORMAT, name, e)
                continue
            unable_input = unable_input or remove
            skipped = skipped or skip
        return unable_input, skipped

    # Operation

    def resolve_operation_directives(self) -> None:
        if not self.definition.directives or self.errored:
            return
        location = self.definition.operation.value.upper()
        for directive in self.definition.directives:
            name = directive.name.value
            resolve = self.registry.operation(name)
            if resolve is None or location not in resolve.locations:
                if not self.registry.is_base(name):
                    self.report(DIRECTIVE_NOT_SUPPORTED_FORMAT, name, location)
                continue
            try:
                resolve.resolve(OperationResolver(self.operation, resolve_arguments(directive.arguments)))
            except DirectiveError as e:
                self.report(DIRECTIVE_RESOLVE_ERROR_FORMAT, name, e)


def _append_path(path: list[str], item: str, item_type: Any = None) -> list[str]:
    result = [*path, item]
    if item_type is not None:
        inner = item_type.of_type if is_non_null_type(item_type) else item_type
        if is_list_type(inner):
            result.append(ARRAY_PATH)
    return result


def _variable_definition(definition: OperationDefinitionNode, name: str):
    for item in definition.variable_definitions or ():
        if item.variable.name.value == name:
            return item
    return None


def _type_node_name(node: TypeNode) -> str:
    while isinstance(node, (NonNullTypeNode, ListTypeNode)):
        node = node.type
    return node.name.value


def _is_list_node(node: TypeNode) -> bool:
    if isinstance(node, NonNullTypeNode):
        node = node.type
    return isinstance(node, ListTypeNode)


def _compatible_type(node: TypeNode, arg_type: Any, has_default: bool) -> bool:
    """A variable of type ``node`` may be passed where ``arg_type`` is expected."""
    node_non_null = isinstance(node, NonNullTypeNode)
    inner_node = node.type if node_non_null else node
    if is_non_null_type(arg_type):
        if not (node_non_null or has_default):
            return False
        arg_type = arg_type.of_type

    if isinstance(inner_node, ListTypeNode):
        return is_list_type(arg_type) and _compatible_type(inner_node.type, arg_type.of_type, False)
    if is_list_type(arg_type):
        return False
    return inner_node.name.value == arg_type.name

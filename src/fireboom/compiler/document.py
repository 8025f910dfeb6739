"""
GraphQL operation documents: parsing, printing and fragment expansion.

Usage:
    document = parse_document(text, fragments)
    definition = single_operation(document)
    text = print_document(document)
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from graphql import GraphQLError, parse, print_ast
from graphql.language import (
    ArgumentNode,
    DirectiveNode,
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    NameNode,
    OperationDefinitionNode,
    SelectionSetNode,
)


class DocumentError(Exception):
    """Raised for syntax errors and malformed operation documents."""


def parse_document(text: str, fragments: str = "") -> DocumentNode:
    """
    Parse ``text`` with the shared fragments appended and expand every spread.

    Raises:
        DocumentError: Syntax error, unknown fragment or fragment cycle
    """
    source = f"{text}\n\n{fragments}" if fragments else text
    try:
        document = parse(source, no_location=True)
    except GraphQLError as e:
        raise DocumentError(e.message) from e
    return merge_fragments(document)


def print_document(document: DocumentNode) -> str:
    return print_ast(document)


def single_operation(document: DocumentNode) -> OperationDefinitionNode:
    operations = [d for d in document.definitions if isinstance(d, OperationDefinitionNode)]
    if len(operations) != 1:
        raise DocumentError(f"amount of operation definition expected 1, but found [{len(operations)}]")
    return operations[0]


def merge_fragments(document: DocumentNode) -> DocumentNode:
    """
    Expand named fragment spreads in place as inline fragments.

    Fragment definitions are dropped from the result. Fragments that are
    defined but never spread are ignored.
    """
    fragments: Dict[str, FragmentDefinitionNode] = {}
    for definition in document.definitions:
        if isinstance(definition, FragmentDefinitionNode):
            fragments[definition.name.value] = definition

    definitions = []
    for definition in document.definitions:
        if isinstance(definition, FragmentDefinitionNode):
            continue
        if isinstance(definition, OperationDefinitionNode):
            definition = copy_node(
                definition,
                selection_set=_expand_selection_set(definition.selection_set, fragments, ()),
            )
        definitions.append(definition)
    return DocumentNode(definitions=tuple(definitions))


def _expand_selection_set(
    selection_set: Optional[SelectionSetNode],
    fragments: Dict[str, FragmentDefinitionNode],
    visiting: Sequence[str],
) -> Optional[SelectionSetNode]:
    if selection_set is None:
        return None

    selections = []
    for selection in selection_set.selections:
        if isinstance(selection, FragmentSpreadNode):
            name = selection.name.value
            if name in visiting:
                raise DocumentError(f"fragment cycle detected: {' -> '.join((*visiting, name))}")
            fragment = fragments.get(name)
            if fragment is None:
                raise DocumentError(f"unknown fragment [{name}]")
            selections.append(
                InlineFragmentNode(
                    type_condition=fragment.type_condition,
                    directives=tuple(selection.directives or ()) + tuple(fragment.directives or ()),
                    selection_set=_expand_selection_set(fragment.selection_set, fragments, (*visiting, name)),
                )
            )
        elif isinstance(selection, InlineFragmentNode):
            selections.append(
                copy_node(
                    selection,
                    selection_set=_expand_selection_set(selection.selection_set, fragments, visiting),
                )
            )
        elif isinstance(selection, FieldNode):
            selections.append(
                copy_node(
                    selection,
                    selection_set=_expand_selection_set(selection.selection_set, fragments, visiting),
                )
            )
        else:
            selections.append(selection)
    return SelectionSetNode(selections=tuple(selections))


def copy_node(node, **changes):
    values = {key: getattr(node, key, None) for key in node.keys if key != "loc"}
    values.update(changes)
    return node.__class__(**values)


def replace_operation_directive(text: str, name: str, arguments: Optional[Sequence[ArgumentNode]]) -> str:
    """
    Rewrite the directive ``name`` on the operation definition of ``text``.

    Any existing occurrence is removed first; ``arguments=None`` only removes.
    Fragments in the text are kept as written.
    """
    try:
        document = parse(text, no_location=True)
    except GraphQLError as e:
        raise DocumentError(e.message) from e

    definitions = []
    for definition in document.definitions:
        if isinstance(definition, OperationDefinitionNode):
            directives = [d for d in definition.directives or () if d.name.value != name]
            if arguments is not None:
                directives.append(DirectiveNode(name=NameNode(value=name), arguments=tuple(arguments)))
            definition = copy_node(definition, directives=tuple(directives))
        definitions.append(definition)
    return print_ast(DocumentNode(definitions=tuple(definitions)))


def operation_directive_names(text: str) -> list[str]:
    document = parse(text, no_location=True)
    return [d.name.value for d in single_operation(document).directives or ()]

"""
Contexts handed to directive resolve functions.

OperationResolver  - the operation descriptor and parsed directive arguments
SelectionResolver  - adds the field path, its response schema and the
                     variable state shared across the document
VariableResolver   - adds the input object definitions referenced so far
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from graphql.language import NonNullTypeNode, OperationDefinitionNode, VariableDefinitionNode

from .descriptor import EngineOperation

VARIABLE_PREFIX = "$"


@dataclass
class OperationResolver:
    operation: EngineOperation
    arguments: Dict[str, str]


@dataclass
class SelectionResolver(OperationResolver):
    path: list[str] = field(default_factory=list)
    schema: Optional[Dict[str, Any]] = None
    variable_schemas: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    variable_exported: Dict[str, bool] = field(default_factory=dict)
    definition: Optional[OperationDefinitionNode] = None

    def variable_definition(self, name: str) -> Optional[VariableDefinitionNode]:
        if self.definition is None:
            return None
        for item in self.definition.variable_definitions or ():
            if item.variable.name.value == name:
                return item
        return None

    def variable_has_directive(self, name: str, directive: str) -> bool:
        item = self.variable_definition(name)
        return item is not None and any(d.name.value == directive for d in item.directives or ())


@dataclass
class VariableResolver(SelectionResolver):
    argument_definitions: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def variable_name(self) -> str:
        return self.path[0]

    @property
    def required(self) -> bool:
        item = self.variable_definition(self.variable_name)
        return item is not None and isinstance(item.type, NonNullTypeNode)

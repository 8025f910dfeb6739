"""
Directive registry.

Usage:
    registry = default_registry()
    registry.selection("transform")
    registry.sdl()  # directive and type definitions for the editor
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from .base import (
    CustomDirective,
    DirectiveError,
    OperationDirective,
    SelectionDirective,
    VariableDirective,
    resolve_arguments,
)
from .operation import DisallowParallel, InternalOperation, Rbac, Transaction
from .selection import (
    AsyncResolve,
    CustomizedField,
    Export,
    ExportMatch,
    FirstRawResult,
    FormatDateTime,
    Include,
    Skip,
    SkipVariable,
    Transform,
)
from .variable import (
    FromClaim,
    FromHeader,
    HookVariable,
    InjectCurrentDateTime,
    InjectEnvironmentVariable,
    InjectGeneratedUUID,
    InjectRuleValue,
    Internal,
    JsonSchema,
)
from .where_input import WhereInputDirective

# Directives of the GraphQL language itself, accepted and ignored
BASE_DIRECTIVES = ("removeNullVariables", "deprecated", "specifiedBy")


class DirectiveRegistry:
    def __init__(self):
        self._operation: Dict[str, OperationDirective] = {}
        self._selection: Dict[str, SelectionDirective] = {}
        self._variable: Dict[str, VariableDirective] = {}

    def register(self, directive: CustomDirective) -> None:
        if isinstance(directive, OperationDirective):
            self._operation[directive.name] = directive
        elif isinstance(directive, SelectionDirective):
            self._selection[directive.name] = directive
        elif isinstance(directive, VariableDirective):
            self._variable[directive.name] = directive
        else:
            raise TypeError(f"unsupported directive {directive!r}")

    def operation(self, name: str) -> Optional[OperationDirective]:
        return self._operation.get(name)

    def selection(self, name: str) -> Optional[SelectionDirective]:
        return self._selection.get(name)

    def variable(self, name: str) -> Optional[VariableDirective]:
        return self._variable.get(name)

    @staticmethod
    def is_base(name: str) -> bool:
        return name in BASE_DIRECTIVES

    def all(self) -> Iterable[CustomDirective]:
        yield from self._operation.values()
        yield from self._selection.values()
        yield from self._variable.values()

    def customized(self) -> Optional[SelectionDirective]:
        return next((d for d in self._selection.values() if d.customized), None)

    def removed(self) -> list[str]:
        return [name for name, d in self._variable.items() if d.removed]

    def disallow_parallel(self) -> list[str]:
        return [name for name, d in self._operation.items() if getattr(d, "disallow_parallel", False)]

    def sdl(self) -> str:
        """Every directive definition followed by the extra types, each type once."""
        parts = [d.directive_sdl() for d in self.all()]
        seen: set[str] = set()
        for directive in self.all():
            definitions = directive.definitions()
            if definitions and definitions not in seen:
                seen.add(definitions)
                parts.append(definitions)
        return _dedupe_definitions("\n\n".join(parts))

    def set_role_codes(self, codes: Iterable[str]) -> None:
        rbac = self._operation.get(Rbac.name)
        if isinstance(rbac, Rbac):
            rbac.role_codes = sorted(set(codes))


def _dedupe_definitions(sdl: str) -> str:
    """Drop repeated top level definitions shared by several directives."""
    blocks: list[str] = []
    names: set[str] = set()
    for block in sdl.split("\n\n"):
        header = block.strip().split("{", 1)[0].split("(", 1)[0].strip()
        key = header.splitlines()[-1] if header else block
        if key.startswith(("enum ", "input ")):
            if key in names:
                continue
            names.add(key)
        blocks.append(block)
    return "\n\n".join(blocks)


def default_registry() -> DirectiveRegistry:
    registry = DirectiveRegistry()
    for directive in (
        Rbac(),
        InternalOperation(),
        Transaction(),
        DisallowParallel(),
        Export(),
        ExportMatch(),
        Transform(),
        FormatDateTime(),
        CustomizedField(),
        AsyncResolve(),
        Include(),
        Skip(),
        SkipVariable(),
        FirstRawResult(),
        FromClaim(),
        FromHeader(),
        Internal(),
        HookVariable(),
        InjectCurrentDateTime(),
        InjectEnvironmentVariable(),
        InjectGeneratedUUID(),
        InjectRuleValue(),
        JsonSchema(),
        WhereInputDirective(),
    ):
        registry.register(directive)
    return registry


__all__ = [
    "BASE_DIRECTIVES",
    "CustomDirective",
    "DirectiveError",
    "DirectiveRegistry",
    "OperationDirective",
    "SelectionDirective",
    "VariableDirective",
    "default_registry",
    "resolve_arguments",
]

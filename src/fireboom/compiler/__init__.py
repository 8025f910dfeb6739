"""
Compiler module - GraphQL operations to engine descriptors.

Usage:
    from fireboom.compiler import OperationCompiler

    result = OperationCompiler(schema, field_datasources).compile("users/list", text)
    result.operation.to_dict()
"""

from __future__ import annotations

from .compiler import CompileResult, OperationCompiler
from .descriptor import EngineKind, EngineOperation, WireModel, normalize_operation_name
from .directives import DirectiveRegistry, default_registry
from .document import DocumentError, operation_directive_names, parse_document, print_document, replace_operation_directive
from .rule import RuleExpression, RuleSyntaxError, parse_rule

__all__ = [
    "CompileResult",
    "DirectiveRegistry",
    "DocumentError",
    "EngineKind",
    "EngineOperation",
    "OperationCompiler",
    "RuleExpression",
    "RuleSyntaxError",
    "WireModel",
    "default_registry",
    "normalize_operation_name",
    "operation_directive_names",
    "parse_document",
    "parse_rule",
    "print_document",
    "replace_operation_directive",
]

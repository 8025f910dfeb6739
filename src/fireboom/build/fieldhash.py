"""
Content hashes of root field resolver graphs.

The hash of a root field covers its arguments, its return type and every
type reachable from them. Two builds with equal hashes for all the fields an
operation selects compile that operation identically, so the previous result
can be reused.
"""

from __future__ import annotations

import hashlib
import threading
from typing import Dict, Iterable, Optional

from graphql import (
    GraphQLField,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLNamedType,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLUnionType,
    get_named_type,
    print_type,
)


class FieldHashSet:
    """
    Lazily computed hashes of the root fields of one schema.

    Usage:
        hashes = FieldHashSet(type_system.schema)
        hashes.operation_hash(["db1_findManyUser"])
    """

    def __init__(self, schema: Optional[GraphQLSchema]):
        self.schema = schema
        self._lock = threading.Lock()
        self._fields: Dict[str, str] = {}
        self._types: Dict[str, str] = {}

    def field_hash(self, name: str) -> str:
        with self._lock:
            cached = self._fields.get(name)
            if cached is not None:
                return cached
            definition = self._root_field(name)
            if definition is None:
                value = ""
            else:
                digest = hashlib.sha256(name.encode())
                for type_name in sorted(self._reachable(definition)):
                    digest.update(self._type_hash(type_name).encode())
                value = digest.hexdigest()
            self._fields[name] = value
            return value

    def operation_hash(self, field_names: Iterable[str]) -> str:
        digest = hashlib.sha256()
        for name in sorted(set(field_names)):
            digest.update(f"{name}:{self.field_hash(name)};".encode())
        return digest.hexdigest()

    def _root_field(self, name: str) -> Optional[GraphQLField]:
        if self.schema is None:
            return None
        for root in (self.schema.query_type, self.schema.mutation_type, self.schema.subscription_type):
            if root is not None and name in root.fields:
                return root.fields[name]
        return None

    def _type_hash(self, name: str) -> str:
        cached = self._types.get(name)
        if cached is None:
            named = self.schema.get_type(name)
            cached = hashlib.sha256(print_type(named).encode()).hexdigest() if named else ""
            self._types[name] = cached
        return cached

    def _reachable(self, definition: GraphQLField) -> set[str]:
        pending: list[GraphQLNamedType] = [get_named_type(definition.type)]
        pending.extend(get_named_type(arg.type) for arg in definition.args.values())
        seen: set[str] = set()
        while pending:
            named = pending.pop()
            if named.name in seen:
                continue
            seen.add(named.name)
            if isinstance(named, (GraphQLObjectType, GraphQLInterfaceType)):
                for child in named.fields.values():
                    pending.append(get_named_type(child.type))
                    pending.extend(get_named_type(arg.type) for arg in child.args.values())
            elif isinstance(named, GraphQLInputObjectType):
                pending.extend(get_named_type(child.type) for child in named.fields.values())
            elif isinstance(named, GraphQLUnionType):
                pending.extend(named.types)
        return seen

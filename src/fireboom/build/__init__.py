"""
Build module - datasource introspection, operation compiling and the engine configuration.

Usage:
    from fireboom.build import EngineBuilder

    builder = EngineBuilder(models, bus, environment.values)
    configuration = builder.build()
"""

from __future__ import annotations

from .builder import EngineBuilder, EngineConfiguration
from .fieldhash import FieldHashSet
from .introspect import CommandRunner, Introspector
from .openapi import SpecVersionError, asyncapi_to_sdl, openapi_to_sdl
from .operations import OperationsBuilder
from .typesystem import TypeSystem, TypeSystemError, merge_type_system, prefix_datasource

__all__ = [
    "CommandRunner",
    "EngineBuilder",
    "EngineConfiguration",
    "FieldHashSet",
    "Introspector",
    "OperationsBuilder",
    "SpecVersionError",
    "TypeSystem",
    "TypeSystemError",
    "asyncapi_to_sdl",
    "merge_type_system",
    "openapi_to_sdl",
    "prefix_datasource",
]

"""Shared pieces of the stored item types."""

from __future__ import annotations

import os
from enum import IntEnum
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..core.consts import SYSTEM_USER
from ..core.utils import format_time
from ..store import DataHook


class StoreItem(BaseModel):
    """Base of every JSON item kept by a model; unknown keys survive a round trip."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class TimestampedItem(StoreItem):
    create_time: str = ""
    update_time: str = ""
    delete_time: str = ""


class VariableKind(IntEnum):
    STATIC = 0
    ENV = 1
    PLACEHOLDER = 2


class ConfigurationVariable(StoreItem):
    """A value that is static, read from the environment, or filled in by the engine."""
    kind: VariableKind = VariableKind.STATIC
    static_variable_content: str = ""
    environment_variable_name: str = ""
    environment_variable_default_value: str = ""
    placeholder_variable_name: str = ""

    @classmethod
    def static(cls, value: str) -> "ConfigurationVariable":
        return cls(kind=VariableKind.STATIC, static_variable_content=value)

    def resolve(self, env: Optional[Mapping[str, str]] = None) -> str:
        if self.kind == VariableKind.ENV:
            source = os.environ if env is None else env
            return source.get(self.environment_variable_name) or self.environment_variable_default_value
        if self.kind == VariableKind.PLACEHOLDER:
            return self.placeholder_variable_name
        return self.static_variable_content


def variable_string(variable: Optional[ConfigurationVariable], env: Optional[Mapping[str, str]] = None) -> str:
    return variable.resolve(env) if variable is not None else ""


def not_deleted(item: Any) -> bool:
    return not getattr(item, "delete_time", "")


def logic_delete(item: Any) -> None:
    item.delete_time = format_time()


def stamp_insert(item: Any) -> None:
    item.create_time = format_time()


def stamp_update(_src: Any, dst: Any, user: str) -> None:
    if user != SYSTEM_USER:
        dst.update_time = format_time()


def timestamp_hook(
    after_insert: Optional[Callable[[Any, str], bool]] = None,
    **callbacks: Any,
) -> DataHook:
    """DataHook stamping create/update times, plus extra callbacks."""
    return DataHook(on_insert=stamp_insert, on_update=stamp_update, after_insert=after_insert, **callbacks)


def enabled_after_insert(item: Any, _user: str) -> bool:
    """Only enabled items trigger downstream work after insert."""
    return bool(getattr(item, "enabled", False))

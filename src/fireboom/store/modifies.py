"""
Structural diff between a stored item and an incremental update.

The update document is merged key by key into the stored JSON object:

- a key missing (or null) in the source and set in the update is an ``add``
- a key set in the source and null in the update is a ``remove``
- a changed value of the same JSON type is an ``overwrite``; objects are
  merged recursively and record their nested modifications in ``items``

Values of a different JSON type are left untouched.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

ADD = "add"
REMOVE = "remove"
OVERWRITE = "overwrite"

_MISSING = object()


def json_type(value: Any) -> str:
    if value is None or value is _MISSING:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return "unknown"


@dataclass
class DataModifyDetail:
    """One modified key."""
    name: str
    target: Any = None
    origin: Any = None
    items: Optional["DataModifies"] = None

    def to_dict(self) -> dict:
        result = {"name": self.name, "target": self.target, "origin": self.origin}
        if self.items:
            result["items"] = self.items.to_dict()
        return result


@dataclass
class DataModifies:
    """Modifications keyed by field name; nested objects keep their own DataModifies."""
    details: Dict[str, DataModifyDetail] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.details)

    def __contains__(self, key: str) -> bool:
        return key in self.details

    def __iter__(self) -> Iterator[str]:
        return iter(self.details)

    def __getitem__(self, key: str) -> DataModifyDetail:
        return self.details[key]

    def none_modified(self) -> bool:
        return not self.details

    def get_detail(self, path: str) -> Optional[DataModifyDetail]:
        """Return the modification at dotted ``path`` (for example ``customRest.baseUrl``)."""
        current: Optional[DataModifies] = self
        parts = path.split(".")
        for index, part in enumerate(parts):
            if current is None or part not in current.details:
                return None
            detail = current.details[part]
            if index == len(parts) - 1:
                return detail
            current = detail.items
        return None

    def flatten(self, prefix: str = "") -> Dict[str, str]:
        """Return ``{dotted path: modify name}`` for every modified leaf."""
        result: Dict[str, str] = {}
        for key, detail in self.details.items():
            path = f"{prefix}{key}"
            if detail.items:
                result.update(detail.items.flatten(f"{path}."))
            else:
                result[path] = detail.name
        return result

    def to_dict(self) -> dict:
        return {key: detail.to_dict() for key, detail in self.details.items()}


def merge_data(src: Dict[str, Any], modify: Dict[str, Any]) -> tuple[Dict[str, Any], DataModifies]:
    """
    Merge ``modify`` into a copy of ``src``.

    Returns:
        The merged document and the recorded modifications
    """
    result = copy.deepcopy(src)
    modifies = DataModifies()
    for key, modify_value in modify.items():
        src_value = src.get(key, _MISSING)
        if json_type(src_value) == "unknown":
            continue

        src_empty = src_value is _MISSING or src_value is None
        modify_null = modify_value is None
        if src_empty and modify_null:
            continue

        if src_empty:
            result[key] = copy.deepcopy(modify_value)
            modifies.details[key] = DataModifyDetail(ADD, target=modify_value)
            continue

        if modify_null:
            result.pop(key, None)
            modifies.details[key] = DataModifyDetail(REMOVE, origin=src_value)
            continue

        if json_type(src_value) != json_type(modify_value) or src_value == modify_value:
            continue

        if isinstance(src_value, dict):
            merged, nested = merge_data(src_value, modify_value)
            if nested.none_modified():
                continue
            result[key] = merged
            modifies.details[key] = DataModifyDetail(OVERWRITE, target=merged, origin=src_value, items=nested)
            continue

        result[key] = copy.deepcopy(modify_value)
        modifies.details[key] = DataModifyDetail(OVERWRITE, target=modify_value, origin=src_value)
    return result, modifies


def _is_empty(value: Any, force: bool) -> bool:
    kind = json_type(value)
    if kind == "null":
        return True
    if kind == "string":
        return value == ""
    if kind == "number":
        return force and value == 0
    if kind == "object":
        return value == {}
    if kind == "array":
        return value == []
    if kind == "boolean":
        return force and value is not True
    return True


def overwrite_if_empty(src: Dict[str, Any], defaults: Dict[str, Any], force: bool = False) -> tuple[Dict[str, Any], bool]:
    """
    Fill the empty keys of ``src`` from ``defaults``.

    Returns:
        The filled document and whether anything changed
    """
    result = copy.deepcopy(src)
    modified = False
    for key, default_value in defaults.items():
        if _is_empty(default_value, True):
            continue
        src_value = src.get(key)
        if isinstance(src_value, dict) and isinstance(default_value, dict):
            filled, nested_modified = overwrite_if_empty(src_value, default_value, force)
            if nested_modified:
                result[key] = filled
                modified = True
            continue
        if not _is_empty(src_value, force) or src_value == default_value:
            continue
        result[key] = copy.deepcopy(default_value)
        modified = True
    return result, modified

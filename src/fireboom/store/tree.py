"""Directory tree view over a multiple-item model."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict

MISSING = object()


@dataclass
class DataTree:
    name: str
    path: str
    is_dir: bool = False
    extension: str = ""
    items: list["DataTree"] = field(default_factory=list)
    extra: Any = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "path": self.path, "isDir": self.is_dir}
        if self.extension:
            result["extension"] = self.extension
        if self.items:
            result["items"] = [item.to_dict() for item in self.items]
        if self.extra is not None:
            result["extra"] = self.extra
        return result


def sort_trees(trees: list[DataTree]) -> None:
    """Directories first, then by name, on every level."""
    trees.sort(key=lambda t: (not t.is_dir, t.name))
    for tree in trees:
        sort_trees(tree.items)


def build_trees(root: Path, extension: str, lookup: Callable[[str], Any]) -> list[DataTree]:
    """
    Walk ``root`` and build the tree of data files.

    Args:
        root: Model root directory
        extension: Data file extension
        lookup: Returns the node extra for a data name, or ``MISSING`` when the data name
            is unknown

    Returns:
        Sorted top-level nodes
    """
    trees: list[DataTree] = []
    if not root.exists():
        return trees

    directories: Dict[str, DataTree] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        current_dir = Path(dirpath)
        parent_key = current_dir.relative_to(root).as_posix()
        siblings = directories[parent_key].items if parent_key in directories else trees

        for dirname in dirnames:
            rel = (current_dir / dirname).relative_to(root).as_posix()
            node = DataTree(name=dirname, path=rel, is_dir=True)
            directories[rel] = node
            siblings.append(node)

        for filename in filenames:
            if filename.startswith(".") or not filename.endswith(extension):
                continue
            rel = (current_dir / filename).relative_to(root).as_posix()
            data_name = rel[: -len(extension)]
            extra = lookup(data_name)
            if extra is MISSING:
                continue
            siblings.append(
                DataTree(
                    name=filename[: -len(extension)],
                    path=data_name,
                    extension=extension,
                    extra=extra,
                )
            )

    sort_trees(trees)
    return trees


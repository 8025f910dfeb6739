"""Shared GraphQL fragments, one ``store/fragment/<name>.graphql`` file each."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict

from ..core.consts import EXT_GRAPHQL, ROOT_STORE, STORE_FRAGMENT
from ..core.errcode import ErrCode, new_custom_error
from ..core.utils import remove_file, write_file

logger = logging.getLogger(__name__)


class FragmentStore:
    def __init__(self, workdir: str | Path):
        self.root = Path(workdir) / ROOT_STORE / STORE_FRAGMENT

    def path(self, name: str) -> Path:
        return self.root / f"{name}{EXT_GRAPHQL}"

    def names(self) -> list[str]:
        if not self.root.exists():
            return []
        names = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if filename.endswith(EXT_GRAPHQL) and not filename.startswith("."):
                    rel = (Path(dirpath) / filename).relative_to(self.root).as_posix()
                    names.append(rel[: -len(EXT_GRAPHQL)])
        return names

    def read(self, name: str) -> str:
        try:
            return self.path(name).read_text(encoding="utf-8")
        except OSError as e:
            raise new_custom_error(STORE_FRAGMENT, e, ErrCode.LoaderFileReadError, name)

    def read_all(self) -> Dict[str, str]:
        return {name: self.read(name) for name in self.names()}

    def write(self, name: str, content: str) -> None:
        write_file(self.path(name), content)
        logger.debug(f"Fragment {name} written")

    def remove(self, name: str) -> bool:
        return remove_file(self.path(name), stop_at=self.root)

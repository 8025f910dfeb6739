"""
Environment file handling.

A default environment is bundled with the package. The working directory
file ``.env`` (or ``.env.<active>``) overrides it key by key; with
``ignore-merge-environment`` only the working directory file applies.
Values are parsed and written with python-dotenv.
"""

from __future__ import annotations

import io
import logging
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values, set_key, unset_key

from ..core import consts
from ..core.utils import write_file
from ..store import EmbedTextRW, ModelText
from .registry import ConfigRegistry

logger = logging.getLogger(__name__)

DEFAULT_ENV_TEXT = """\
FB_API_PUBLIC_URL="http://localhost:9991"
FB_API_INTERNAL_URL="http://localhost:9991"
FB_API_LISTEN_HOST="localhost"
FB_API_LISTEN_PORT="9991"
FB_SERVER_URL="http://localhost:9992"
FB_SERVER_LISTEN_HOST="localhost"
FB_SERVER_LISTEN_PORT="9992"
FB_LOG_LEVEL="info"
FB_DATABASE_EXECUTE_TIMEOUT="30"
FB_DATABASE_CLOSE_TIMEOUT="5"
"""

MODIFY_ADD = "add"
MODIFY_OVERWRITE = "overwrite"
MODIFY_REMOVE = "remove"


def env_filename(active: str = "") -> str:
    return f"{consts.DEFAULT_ENV}.{active}" if active else consts.DEFAULT_ENV


class Environment:
    """
    Merged environment values backed by a dotenv file.

    Args:
        workdir: Directory holding the env file
        active: Profile suffix (``.env.<active>``)
        ignore_merge: Skip the bundled defaults
        registry: Config registry receiving every value
    """

    def __init__(
        self,
        workdir: str | Path,
        active: str = "",
        ignore_merge: bool = False,
        registry: Optional[ConfigRegistry] = None,
    ):
        self.path = Path(workdir) / env_filename(active)
        self.ignore_merge = ignore_merge
        self.registry = registry
        self.defaults = ModelText(
            "env", "", consts.DEFAULT_ENV, EmbedTextRW(consts.DEFAULT_ENV, DEFAULT_ENV_TEXT)
        ).bind(workdir)
        self._lock = threading.Lock()
        self._values: Dict[str, str] = {}

    def load(self) -> Dict[str, str]:
        """Read the env file, writing the defaults when it is missing."""
        defaults = self.defaults.read("")
        with self._lock:
            values: Dict[str, str] = {}
            if not self.ignore_merge:
                values.update(_parse(defaults))
            if self.path.exists():
                values.update(_parse(self.path.read_text(encoding="utf-8")))
            else:
                write_file(self.path, defaults)
                if self.ignore_merge:
                    values.update(_parse(defaults))
                logger.info(f"Created default environment file {self.path}")
            self._values = values
        self._publish(values)
        return dict(values)

    def get(self, key: str, default: str = "") -> str:
        with self._lock:
            return self._values.get(key, default)

    def values(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._values)

    def text(self) -> str:
        return self.path.read_text(encoding="utf-8") if self.path.exists() else ""

    def update(self, changes: Mapping[str, Optional[str]]) -> Dict[str, str]:
        """
        Apply ``changes`` to the env file.

        A ``None`` value removes the key. Unchanged keys are ignored.

        Returns:
            Mapping of key to modify kind (add, overwrite, remove)
        """
        modifies: Dict[str, str] = {}
        with self._lock:
            for key, value in changes.items():
                existed = key in self._values
                if value is None:
                    if not existed:
                        continue
                    unset_key(str(self.path), key)
                    self._values.pop(key)
                    modifies[key] = MODIFY_REMOVE
                    continue
                value = str(value)
                if existed and self._values[key] == value:
                    continue
                set_key(str(self.path), key, value, quote_mode="always")
                modifies[key] = MODIFY_OVERWRITE if existed else MODIFY_ADD
                self._values[key] = value
            values = dict(self._values)
        if modifies:
            logger.info(f"Environment updated: {modifies}")
            self._publish(values, removed=[k for k, v in modifies.items() if v == MODIFY_REMOVE])
        return modifies

    def _publish(self, values: Mapping[str, str], removed: Optional[list[str]] = None) -> None:
        if self.registry is None:
            return
        self.registry.merge(values)
        for key in removed or []:
            self.registry.delete(key)


def _parse(text: str) -> Dict[str, str]:
    return {k: v for k, v in dotenv_values(stream=io.StringIO(text)).items() if v is not None}

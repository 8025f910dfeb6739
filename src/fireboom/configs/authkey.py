"""Per-install authentication key stored in ``authentication.key``."""

from __future__ import annotations

import logging
import secrets
from pathlib import Path

from ..core import consts
from ..core.utils import write_file

logger = logging.getLogger(__name__)

KEY_LENGTH = 32


def key_path(workdir: str | Path) -> Path:
    return Path(workdir) / f"{consts.KEY_AUTHENTICATION}{consts.EXT_KEY}"


def generate_key() -> str:
    return secrets.token_hex(KEY_LENGTH // 2)


def load_or_create_key(workdir: str | Path, regenerate: bool = False) -> str:
    """Read the key from disk, creating or rotating it when needed."""
    path = key_path(workdir)
    if not regenerate and path.exists():
        key = path.read_text(encoding="utf-8").strip()
        if len(key) == KEY_LENGTH:
            return key
        logger.warning(f"Authentication key in {path} is malformed, regenerating")

    key = generate_key()
    write_file(path, key)
    logger.info(f"Authentication key written to {path}")
    return key

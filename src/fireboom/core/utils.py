"""
Helper utilities shared by the store, compiler and build packages.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def normalize_path(*elems: str) -> str:
    """Join path elements with forward slashes, dropping empty parts."""
    joined = "/".join(e.strip("/") if i else e.rstrip("/") for i, e in enumerate(elems) if e)
    return joined.replace("\\", "/")


def now_time() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def format_time(value: Optional[datetime] = None) -> str:
    """Format a timestamp the way items store createTime/updateTime."""
    return (value or now_time()).isoformat(timespec="milliseconds")


def strip_ansi(text: str) -> str:
    """Remove terminal color sequences."""
    return _ANSI_PATTERN.sub("", text)


def split_comma(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def json_dumps(data: Any, indent: Optional[int] = 2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False)


def read_file(path: str | Path) -> bytes:
    return Path(path).read_bytes()


def write_file(path: str | Path, content: bytes | str) -> None:
    """Atomically write ``content`` to ``path``, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(content)
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def remove_file(path: str | Path, stop_at: Optional[str | Path] = None) -> bool:
    """Remove a file and the empty parent directories left behind below ``stop_at``."""
    target = Path(path)
    if not target.exists():
        return False
    target.unlink()
    if stop_at is None:
        return True
    boundary = Path(stop_at).resolve()
    parent = target.parent.resolve()
    while parent != boundary and boundary in parent.parents and not any(parent.iterdir()):
        parent.rmdir()
        parent = parent.parent
    return True


def not_exist_file(path: str | Path) -> bool:
    return not Path(path).exists()


def dedupe(items: Iterable[str]) -> list[str]:
    """Drop duplicates while keeping the first occurrence order."""
    seen: set[str] = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def upper_first(value: str) -> str:
    return value[:1].upper() + value[1:] if value else value

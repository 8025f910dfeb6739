"""
Zip export and import of a multiple model with its companion texts.

Entry names are relative to the top-level directory of the model root, so an
operation exports as ``operation/users/list.json`` plus
``operation/users/list.graphql``.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from typing import Dict, Iterable, Optional

from ..core.errcode import CustomError, ErrCode, new_custom_error
from ..core.utils import write_file
from .model import Model

logger = logging.getLogger(__name__)


def export_archive(model: Model, data_names: Optional[Iterable[str]] = None) -> bytes:
    """
    Zip the data files of ``data_names`` (every item when empty) and their texts.

    Raises:
        CustomError: FileZipAmountZeroError when nothing matched
    """
    names = list(data_names or []) or model.data_names()
    buffer = io.BytesIO()
    amount = 0
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for data_name in names:
            item = model.get(data_name)
            archive.writestr(model.archive_name(model.get_path(data_name)), model.encode(item))
            amount += 1
            for text in _archived_texts(model):
                path = text.path(data_name)
                if path.is_file():
                    archive.write(path, model.archive_name(path))
                elif path.is_dir():
                    for child in sorted(p for p in path.rglob("*") if p.is_file()):
                        archive.write(child, model.archive_name(child))

    if amount == 0:
        raise new_custom_error(model.name, None, ErrCode.FileZipAmountZeroError)
    return buffer.getvalue()


def _archived_texts(model: Model) -> list:
    """Exportable texts stored beside the model files; hook sources live elsewhere."""
    return [
        text
        for text in model.text_items
        if text.exportable and (model.workdir / text.root).is_relative_to(model.archive_base)
    ]


def _allow_pattern(model: Model, root: str, extension: str) -> re.Pattern:
    rel_root = (model.workdir / root).relative_to(model.archive_base).as_posix()
    return re.compile(f"^{re.escape(rel_root)}/.*{re.escape(extension)}$")


def import_archive(model: Model, content: bytes, user: str) -> Dict[str, list[str]]:
    """
    Import a zip produced by ``export_archive``.

    Texts are written before data files so hooks see complete items. Existing
    files are never overwritten.

    Returns:
        ``{"imported": [...], "existed": [...], "ignored": [...]}`` entry names
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as e:
        raise new_custom_error(model.name, e, ErrCode.FileUnZipError)

    data_pattern = _allow_pattern(model, model.root, model.extension)
    text_patterns = [_allow_pattern(model, text.root, text.extension) for text in _archived_texts(model)]
    result: Dict[str, list[str]] = {"imported": [], "existed": [], "ignored": []}
    data_entries = []

    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            name = info.filename
            if ".." in name.split("/") or name.startswith("/"):
                result["ignored"].append(name)
                continue
            if data_pattern.match(name):
                data_entries.append((name, archive.read(info)))
                continue
            if not any(p.match(name) for p in text_patterns):
                result["ignored"].append(name)
                continue
            target = model.archive_base / name
            if target.exists():
                result["existed"].append(name)
                continue
            write_file(target, archive.read(info))
            result["imported"].append(name)

    items = []
    for name, raw in data_entries:
        try:
            payload = json.loads(raw)
            data_name = model.data_name_of(payload)
        except ValueError as e:
            logger.warning(f"Import entry {name} of {model.name} skipped: {e}")
            result["ignored"].append(name)
            continue
        if model.exists(data_name):
            result["existed"].append(name)
            continue
        items.append(payload)
        result["imported"].append(name)

    if items:
        try:
            results = model.insert_batch(items, user)
        except CustomError as e:
            logger.warning(f"Import of {model.name} failed: {e}")
            raise
        failed = {r["dataName"] for r in results if not r["succeed"]}
        if failed:
            logger.warning(f"Import of {model.name} partially failed: {sorted(failed)}")
    return result

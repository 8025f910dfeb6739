"""Client and server SDK generators."""

from __future__ import annotations

from enum import Enum

from ..core.consts import EXT_JSON, ROOT_STORE, STORE_SDK
from ..core.utils import normalize_path
from ..store import Model, MultipleDataRW
from .common import TimestampedItem, enabled_after_insert, logic_delete, not_deleted, timestamp_hook


class SdkType(str, Enum):
    CLIENT = "client"
    SERVER = "server"


class Sdk(TimestampedItem):
    name: str = ""
    enabled: bool = False
    type: SdkType = SdkType.CLIENT
    language: str = ""
    extension: str = ""
    git_url: str = ""
    git_branch: str = ""
    git_commit_hash: str = ""
    output_path: str = ""
    code_package: str = ""
    upper_first_basename: bool = False
    keywords: list[str] = []
    icon: str = ""
    title: str = ""
    author: str = ""
    version: str = ""
    description: str = ""


def build_sdk_model() -> Model[Sdk]:
    return Model(
        STORE_SDK,
        normalize_path(ROOT_STORE, STORE_SDK),
        EXT_JSON,
        MultipleDataRW("name", filter=not_deleted, logic_delete=logic_delete),
        Sdk,
        hook=timestamp_hook(after_insert=enabled_after_insert),
    )

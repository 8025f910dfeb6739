"""Roles referenced by ``@rbac`` directives."""

from __future__ import annotations

from ..core.consts import EXT_JSON, ROOT_STORE, STORE_ROLE
from ..core.utils import normalize_path
from ..store import Model, MultipleDataRW
from .common import TimestampedItem, logic_delete, not_deleted, timestamp_hook


class Role(TimestampedItem):
    code: str = ""
    remark: str = ""


def build_role_model() -> Model[Role]:
    return Model(
        STORE_ROLE,
        normalize_path(ROOT_STORE, STORE_ROLE),
        EXT_JSON,
        MultipleDataRW("code", filter=not_deleted, logic_delete=logic_delete),
        Role,
        hook=timestamp_hook(),
    )

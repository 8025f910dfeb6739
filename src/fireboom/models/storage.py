"""Object storage buckets, mapped one to one onto the engine's S3 upload configurations."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from ..core.consts import EXT_JSON, ROOT_STORE, STORE_STORAGE
from ..core.utils import normalize_path
from ..store import Model, MultipleDataRW
from .common import (
    ConfigurationVariable,
    StoreItem,
    TimestampedItem,
    enabled_after_insert,
    logic_delete,
    not_deleted,
    timestamp_hook,
)


class UploadProfile(StoreItem):
    max_allowed_upload_size_bytes: int = 0
    max_allowed_files: int = 0
    allowed_mime_types: list[str] = []
    allowed_file_extensions: list[str] = []
    metadata_json_schema: str = Field(default="", alias="metadataJSONSchema")
    pre_upload: bool = False
    post_upload: bool = False


class Storage(TimestampedItem):
    name: str = ""
    enabled: bool = False
    use_ssl: bool = Field(default=False, alias="useSSL")
    endpoint: Optional[ConfigurationVariable] = None
    access_key_id: Optional[ConfigurationVariable] = Field(default=None, alias="accessKeyID")
    secret_access_key: Optional[ConfigurationVariable] = None
    bucket_name: Optional[ConfigurationVariable] = None
    bucket_location: Optional[ConfigurationVariable] = None
    upload_profiles: Optional[Dict[str, UploadProfile]] = None

    def upload_configuration(self) -> Dict[str, Any]:
        """Engine S3 upload configuration entry."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        for key in ("enabled", "createTime", "updateTime", "deleteTime"):
            data.pop(key, None)
        return data


def build_storage_model() -> Model[Storage]:
    return Model(
        STORE_STORAGE,
        normalize_path(ROOT_STORE, STORE_STORAGE),
        EXT_JSON,
        MultipleDataRW("name", filter=not_deleted, logic_delete=logic_delete),
        Storage,
        hook=timestamp_hook(after_insert=enabled_after_insert),
    )


def storage_question_extra(model: Model[Storage]):
    def extra(data_name: str) -> Optional[Dict[str, Any]]:
        if not model.exists(data_name):
            return None
        return {"enabled": model.get(data_name).enabled}
    return extra

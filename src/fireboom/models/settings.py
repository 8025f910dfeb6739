"""
Global configuration files under ``store/config``.

global.setting.json    - node, server and CORS options of the engine
global.operation.json  - defaults applied to operations without customized config
jaeger.config.yml      - tracing options, kept in YAML
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field

from ..core.consts import (
    ENV_API_LISTEN_PORT,
    ENV_API_PUBLIC_URL,
    ENV_SERVER_URL,
    EXT_JSON,
    EXT_YAML,
    GLOBAL_OPERATION,
    GLOBAL_SETTING,
    JAEGER_CONFIG,
    ROOT_STORE,
    STORE_CONFIG,
)
from ..core.errcode import ErrCode, new_custom_error
from ..core.utils import normalize_path, write_file
from ..store import Model, SingleDataRW
from .common import ConfigurationVariable, StoreItem, VariableKind
from .operation import OperationAuthenticationConfig, OperationCacheConfig, OperationLiveQueryConfig

logger = logging.getLogger(__name__)


def _env_variable(name: str, default: str) -> Dict[str, Any]:
    return {
        "kind": VariableKind.ENV.value,
        "environmentVariableName": name,
        "environmentVariableDefaultValue": default,
    }


class ListenOptions(StoreItem):
    host: Optional[ConfigurationVariable] = None
    port: Optional[ConfigurationVariable] = None


class NodeOptions(StoreItem):
    node_url: Optional[ConfigurationVariable] = None
    public_node_url: Optional[ConfigurationVariable] = None
    listen: Optional[ListenOptions] = None
    default_request_timeout_seconds: int = 0


class ServerOptions(StoreItem):
    server_url: Optional[ConfigurationVariable] = None
    listen: Optional[ListenOptions] = None


class GlobalSetting(StoreItem):
    node_options: Optional[NodeOptions] = None
    server_options: Optional[ServerOptions] = None
    cors_configuration: Optional[Dict[str, Any]] = None
    appearance: Optional[Dict[str, Any]] = None
    allowed_host_names: list[ConfigurationVariable] = []
    authorized_redirect_uris: list[ConfigurationVariable] = []
    authorized_redirect_uri_regexes: list[ConfigurationVariable] = []
    allowed_report: bool = False
    enable_csrf_protect: bool = Field(default=False, alias="enableCSRFProtect")
    force_https_redirects: bool = False
    global_rate_limit: Optional[Dict[str, Any]] = None


DEFAULT_GLOBAL_SETTING: Dict[str, Any] = {
    "nodeOptions": {
        "nodeUrl": _env_variable(ENV_API_PUBLIC_URL, "http://localhost:9991"),
        "publicNodeUrl": _env_variable(ENV_API_PUBLIC_URL, "http://localhost:9991"),
        "listen": {
            "host": {"kind": 0, "staticVariableContent": "0.0.0.0"},
            "port": _env_variable(ENV_API_LISTEN_PORT, "9991"),
        },
        "defaultRequestTimeoutSeconds": 60,
    },
    "serverOptions": {
        "serverUrl": _env_variable(ENV_SERVER_URL, "http://localhost:9992"),
    },
    "corsConfiguration": {
        "allowedOrigins": [{"kind": 0, "staticVariableContent": "*"}],
        "allowedMethods": ["GET", "POST"],
        "allowedHeaders": ["*"],
        "allowCredentials": True,
        "maxAge": 120,
    },
    "appearance": {"language": "en"},
}


class GlobalOperation(StoreItem):
    cache_config: Optional[OperationCacheConfig] = None
    live_query_config: Optional[OperationLiveQueryConfig] = None
    authentication_configs: Dict[str, OperationAuthenticationConfig] = {}
    api_authentication_hooks: Dict[str, bool] = {}
    global_http_transport_hooks: Dict[str, bool] = {}


DEFAULT_GLOBAL_OPERATION: Dict[str, Any] = {
    "cacheConfig": {"enabled": False, "maxAge": 120, "public": True, "staleWhileRevalidate": 30},
    "liveQueryConfig": {"enabled": False, "pollingIntervalSeconds": 10},
    "authenticationConfigs": {
        "query": {"authRequired": False},
        "mutation": {"authRequired": False},
        "subscription": {"authRequired": False},
    },
    "apiAuthenticationHooks": {},
    "globalHttpTransportHooks": {},
}

# Part of the global operation defaults new operations inherit
OPERATION_MERGE_DEFAULTS = {
    "cacheConfig": DEFAULT_GLOBAL_OPERATION["cacheConfig"],
    "liveQueryConfig": DEFAULT_GLOBAL_OPERATION["liveQueryConfig"],
}


def build_global_setting_model() -> Model[GlobalSetting]:
    return Model(
        "globalSetting",
        normalize_path(ROOT_STORE, STORE_CONFIG),
        EXT_JSON,
        SingleDataRW(GLOBAL_SETTING, init_data=DEFAULT_GLOBAL_SETTING),
        GlobalSetting,
    )


def build_global_operation_model() -> Model[GlobalOperation]:
    return Model(
        "globalOperation",
        normalize_path(ROOT_STORE, STORE_CONFIG),
        EXT_JSON,
        SingleDataRW(GLOBAL_OPERATION, init_data=DEFAULT_GLOBAL_OPERATION),
        GlobalOperation,
    )


class JaegerConfig:
    """
    Tracing options stored as YAML.

    Usage:
        jaeger = JaegerConfig(workdir)
        jaeger.load()
        jaeger.save({"enabled": True, "endpoint": "http://localhost:14268/api/traces"})
    """

    DEFAULTS: Dict[str, Any] = {
        "enabled": False,
        "endpoint": "",
        "samplerType": "const",
        "samplerParam": 1,
        "spanInout": False,
    }

    def __init__(self, workdir: str | Path):
        self.path = Path(workdir) / ROOT_STORE / STORE_CONFIG / f"{JAEGER_CONFIG}{EXT_YAML}"
        self.data: Dict[str, Any] = dict(self.DEFAULTS)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return dict(self.data)
        try:
            loaded = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise new_custom_error(JAEGER_CONFIG, e, ErrCode.LoaderFileUnmarshalError, self.path.as_posix())
        self.data = {**self.DEFAULTS, **loaded}
        return dict(self.data)

    def save(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        self.data = {**self.data, **changes}
        write_file(self.path, yaml.safe_dump(self.data, sort_keys=False, allow_unicode=True))
        logger.debug(f"Jaeger config saved to {self.path}")
        return dict(self.data)

"""Token based authentication providers (OIDC and JWKS)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.consts import EXT_JSON, ROOT_STORE, STORE_AUTHENTICATION
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
    variable_string,
)


class OidcQueryParameter(StoreItem):
    name: Optional[ConfigurationVariable] = None
    value: Optional[ConfigurationVariable] = None


class AuthenticationOidcConfig(StoreItem):
    client_id: Optional[ConfigurationVariable] = None
    client_secret: Optional[ConfigurationVariable] = None
    query_parameters: list[OidcQueryParameter] = []


class AuthenticationJwksProvider(StoreItem):
    jwks_json: Optional[ConfigurationVariable] = None
    user_info_cache_ttl_seconds: int = 0


class Authentication(TimestampedItem):
    name: str = ""
    enabled: bool = False
    issuer: Optional[ConfigurationVariable] = None
    oidc_config_enabled: bool = False
    oidc_config: Optional[AuthenticationOidcConfig] = None
    jwks_provider_enabled: bool = False
    jwks_provider: Optional[AuthenticationJwksProvider] = None

    def token_based_provider(self) -> Dict[str, Any]:
        """Engine token based auth provider entry."""
        provider: Dict[str, Any] = {"id": self.name, "issuer": variable_string(self.issuer)}
        if self.jwks_provider_enabled and self.jwks_provider is not None:
            provider["jwksJson"] = variable_string(self.jwks_provider.jwks_json)
            provider["userInfoCacheTtlSeconds"] = self.jwks_provider.user_info_cache_ttl_seconds
        if self.oidc_config_enabled and self.oidc_config is not None:
            provider["clientId"] = variable_string(self.oidc_config.client_id)
        return provider


def build_authentication_model() -> Model[Authentication]:
    return Model(
        STORE_AUTHENTICATION,
        normalize_path(ROOT_STORE, STORE_AUTHENTICATION),
        EXT_JSON,
        MultipleDataRW("name", filter=not_deleted, logic_delete=logic_delete),
        Authentication,
        hook=timestamp_hook(after_insert=enabled_after_insert),
    )

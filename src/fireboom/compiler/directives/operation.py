"""Directives placed on the operation definition."""

from __future__ import annotations

from ..descriptor import OperationAuthenticationConfig, OperationRoleConfig, OperationTransaction
from ..resolver import OperationResolver
from .base import DirectiveError, OperationDirective, enum_sdl, json_list, to_int

ROLE_ENUM = "WG_ROLE"

RBAC_REQUIRE_MATCH_ALL = "requireMatchAll"
RBAC_REQUIRE_MATCH_ANY = "requireMatchAny"
RBAC_DENY_MATCH_ALL = "denyMatchAll"
RBAC_DENY_MATCH_ANY = "denyMatchAny"
RBAC_TYPES = {
    RBAC_REQUIRE_MATCH_ALL: "require_match_all",
    RBAC_REQUIRE_MATCH_ANY: "require_match_any",
    RBAC_DENY_MATCH_ALL: "deny_match_all",
    RBAC_DENY_MATCH_ANY: "deny_match_any",
}

ISOLATION_LEVELS = ("read_uncommitted", "read_committed", "repeatable_read", "serializable")
DEFAULT_TRANSACTION = OperationTransaction(max_wait_seconds=5, timeout_seconds=10, isolation_level="serializable")


class Rbac(OperationDirective):
    """Role checks; the WG_ROLE enum lists the stored role codes."""

    name = "rbac"
    description = "Require or deny roles of the current user"
    arguments = ", ".join(f"{arg}: [{ROLE_ENUM}]" for arg in RBAC_TYPES)

    def __init__(self):
        self.role_codes: list[str] = []

    def definitions(self) -> str:
        # An enum needs at least one value
        return enum_sdl(ROLE_ENUM, self.role_codes or ["_"])

    def resolve(self, resolver: OperationResolver) -> None:
        role_config = OperationRoleConfig()
        for name, value in resolver.arguments.items():
            attribute = RBAC_TYPES.get(name)
            if attribute is None:
                continue
            setattr(role_config, attribute, [str(role) for role in json_list(value)])
        resolver.operation.authorization_config.role_config = role_config
        resolver.operation.authentication_config = OperationAuthenticationConfig(auth_required=True)


class InternalOperation(OperationDirective):
    name = "internalOperation"
    description = "Serve the operation on the internal path only"

    def resolve(self, resolver: OperationResolver) -> None:
        resolver.operation.internal = True


class Transaction(OperationDirective):
    name = "transaction"
    description = "Run every mutation of the operation in one transaction"
    locations = ("MUTATION",)
    arguments = (
        f"maxWaitSeconds: Int = {DEFAULT_TRANSACTION.max_wait_seconds}, "
        f"timeoutSeconds: Int = {DEFAULT_TRANSACTION.timeout_seconds}, "
        f"isolationLevel: TransactionIsolationLevel = {DEFAULT_TRANSACTION.isolation_level}"
    )
    disallow_parallel = True

    def definitions(self) -> str:
        return enum_sdl("TransactionIsolationLevel", ISOLATION_LEVELS)

    def resolve(self, resolver: OperationResolver) -> None:
        transaction = OperationTransaction(
            max_wait_seconds=to_int(resolver.arguments.get("maxWaitSeconds")),
            timeout_seconds=to_int(resolver.arguments.get("timeoutSeconds")),
        )
        if transaction.max_wait_seconds == 0:
            transaction.max_wait_seconds = DEFAULT_TRANSACTION.max_wait_seconds
        if transaction.timeout_seconds == 0:
            transaction.timeout_seconds = DEFAULT_TRANSACTION.timeout_seconds
        level = resolver.arguments.get("isolationLevel", DEFAULT_TRANSACTION.isolation_level)
        if level not in ISOLATION_LEVELS:
            raise DirectiveError("value [%s] in argument [%s] not supported", level, "isolationLevel")
        transaction.isolation_level = level
        resolver.operation.transaction = transaction
        resolver.operation.disallow_parallel = True


class DisallowParallel(OperationDirective):
    name = "disallowParallel"
    description = "Resolve root fields one after another"
    locations = ("QUERY", "MUTATION")
    disallow_parallel = True

    def resolve(self, resolver: OperationResolver) -> None:
        resolver.operation.disallow_parallel = True

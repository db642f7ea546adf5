"""Access evaluator: decides whether a principal holds a permission.

The principal's role is re-read from the database on every evaluation, so
a permission revoked from a role takes effect on the holder's next request.
"""

from dataclasses import dataclass
from typing import Sequence, Union

from core.exceptions import InsufficientPermission, RoleNotFound

from .models import Role
from .registry import PermissionRegistry, RoleCode, get_registry


@dataclass(frozen=True)
class Unrestricted:
    """Grant that satisfies every permission check."""


@dataclass(frozen=True)
class Scoped:
    codes: frozenset[str]


RoleGrant = Union[Unrestricted, Scoped]


def resolve_grant(role: Role) -> RoleGrant:
    """Turn a role into its effective grant.

    This is the only place where SUPER_ADMIN is special-cased.
    """
    if role.code == RoleCode.SUPER_ADMIN:
        return Unrestricted()
    return Scoped(frozenset(role.permissions.values_list("code", flat=True)))


class AccessEvaluator:
    def __init__(self, registry: PermissionRegistry):
        self.registry = registry

    @staticmethod
    def authenticate(credential: str | None):
        """Resolve a bearer credential into an active user (401 otherwise)."""
        from authentication.services import TokenService

        return TokenService.authenticate(credential)

    @staticmethod
    def load_role(principal) -> Role:
        role_id = getattr(principal, "role_id", None)
        if role_id is None:
            raise RoleNotFound()
        try:
            return Role.objects.get(pk=role_id)
        except Role.DoesNotExist as exc:
            raise RoleNotFound() from exc

    def grant_for(self, principal) -> RoleGrant:
        return resolve_grant(self.load_role(principal))

    def has_any_permission(self, principal, required: Sequence[str]) -> bool:
        """True when the principal holds at least one of ``required``."""
        if isinstance(required, str) or not required:
            raise ValueError("required must be a non-empty sequence of permission codes")
        unknown = self.registry.unknown_codes(required)
        if unknown:
            raise ValueError(f"Unknown permission codes: {', '.join(unknown)}")

        grant = self.grant_for(principal)
        if isinstance(grant, Unrestricted):
            return True
        return any(code in grant.codes for code in required)

    def authorize(self, principal, required: Sequence[str]) -> None:
        if not self.has_any_permission(principal, required):
            raise InsufficientPermission()

    def role_level(self, principal) -> int:
        return self.load_role(principal).level

    @staticmethod
    def is_role_at_least(principal_level: int, required_level: int) -> bool:
        return principal_level >= required_level


_default: AccessEvaluator | None = None


def get_evaluator() -> AccessEvaluator:
    global _default
    if _default is None:
        _default = AccessEvaluator(get_registry())
    return _default


def has_any_permission(principal, required: Sequence[str]) -> bool:
    return get_evaluator().has_any_permission(principal, required)


def authorize(principal, required: Sequence[str]) -> None:
    get_evaluator().authorize(principal, required)


def is_role_at_least(principal_level: int, required_level: int) -> bool:
    return AccessEvaluator.is_role_at_least(principal_level, required_level)


__all__ = [
    "AccessEvaluator",
    "RoleGrant",
    "Scoped",
    "Unrestricted",
    "authorize",
    "get_evaluator",
    "has_any_permission",
    "is_role_at_least",
    "resolve_grant",
]

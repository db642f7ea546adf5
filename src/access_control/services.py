"""Role store operations: registry sync, validated role writes, deletion."""

import logging
from typing import Iterable

from django.db import transaction

from audit.models import AuditAction
from audit.recorder import audit_mutation, snapshot
from core.exceptions import Conflict, Forbidden, ValidationFailed

from .models import Permission, Role
from .registry import DEFAULT_ROLES, ROLE_LEVELS, PermissionRegistry, get_registry

logger = logging.getLogger(__name__)


def sync_permissions(registry: PermissionRegistry | None = None, using: str = "default") -> int:
    """Mirror the registry into Permission rows; returns rows created.

    Idempotent: existing rows get their display metadata refreshed.
    """
    registry = registry or get_registry()
    existing = {p.code: p for p in Permission.objects.using(using).all()}
    created = 0
    for definition in registry.list_permissions():
        fields = {
            "name": definition.name,
            "group": definition.group,
            "resource": definition.resource or "",
            "action": definition.action or "",
        }
        current = existing.get(definition.code)
        if current is None:
            Permission.objects.using(using).create(code=definition.code, **fields)
            created += 1
        elif any(getattr(current, key) != value for key, value in fields.items()):
            Permission.objects.using(using).filter(pk=current.pk).update(**fields)
    if created:
        logger.info("synced %d new permission rows", created)
    return created


def validate_permission_codes(codes: Iterable[str], registry: PermissionRegistry | None = None) -> list[str]:
    """Return the de-duplicated codes or raise ValidationFailed naming the bad ones."""
    registry = registry or get_registry()
    codes = list(dict.fromkeys(codes))
    unknown = registry.unknown_codes(codes)
    if unknown:
        raise ValidationFailed(f"Invalid permissions: {', '.join(unknown)}")
    return codes


def _permission_rows(codes: list[str]) -> list[Permission]:
    rows = list(Permission.objects.filter(code__in=codes))
    if len(rows) != len(codes):
        # Registry and table drifted (e.g. migrate never ran the sync hook).
        sync_permissions()
        rows = list(Permission.objects.filter(code__in=codes))
    return rows


def role_snapshot(role: Role) -> dict:
    return snapshot(role, extra={"permissions": sorted(role.permission_codes())})


def create_role(
    *,
    name: str,
    code: str,
    description: str = "",
    permissions: Iterable[str] = (),
    level: int | None = None,
    is_default: bool = False,
    actor=None,
    source_address: str | None = None,
) -> Role:
    codes = validate_permission_codes(permissions)
    code = code.upper()
    with transaction.atomic():
        with audit_mutation(
            "Role", AuditAction.CREATE, performed_by=actor, source_address=source_address
        ) as capture:
            role = Role.objects.create(
                name=name,
                code=code,
                description=description,
                level=level if level is not None else ROLE_LEVELS.get(code, 1),
                is_default=is_default,
                created_by=actor,
                updated_by=actor,
            )
            role.permissions.set(_permission_rows(codes))
            capture.entity_id = role.pk
            capture.new_state = role_snapshot(role)
    return role


def update_role(role: Role, *, actor=None, source_address: str | None = None, **changes) -> Role:
    """Apply ``changes`` (name, description, level, permissions) to a role."""
    codes = None
    if "permissions" in changes:
        codes = validate_permission_codes(changes.pop("permissions"))
    with transaction.atomic():
        with audit_mutation(
            "Role",
            AuditAction.UPDATE,
            instance=role,
            previous_state=role_snapshot(role),
            performed_by=actor,
            source_address=source_address,
        ) as capture:
            for field, value in changes.items():
                setattr(role, field, value)
            role.updated_by = actor
            role.save()
            if codes is not None:
                role.permissions.set(_permission_rows(codes))
            capture.new_state = role_snapshot(role)
    return role


def set_role_permissions(role: Role, codes: Iterable[str], *, actor=None, source_address: str | None = None) -> Role:
    return update_role(role, actor=actor, source_address=source_address, permissions=list(codes))


def delete_role(role: Role, *, actor=None, source_address: str | None = None) -> None:
    """Delete a role that is neither a default role nor assigned to anyone."""
    if role.is_default:
        raise Forbidden("Cannot delete a default system role")
    assigned = role.users.count()
    if assigned:
        raise Conflict(f"Cannot delete role as it is assigned to {assigned} user(s)")
    with transaction.atomic():
        with audit_mutation(
            "Role",
            AuditAction.DELETE,
            instance=role,
            previous_state=role_snapshot(role),
            performed_by=actor,
            source_address=source_address,
        ):
            role.delete()


def ensure_default_roles(registry: PermissionRegistry | None = None) -> dict[str, Role]:
    """Create or refresh the built-in roles and their seed permissions."""
    registry = registry or get_registry()
    sync_permissions(registry)
    defaults = registry.default_role_permissions()
    roles: dict[str, Role] = {}
    for code, name, description in DEFAULT_ROLES:
        role, _ = Role.objects.update_or_create(
            code=code,
            defaults={
                "name": name,
                "description": description,
                "level": ROLE_LEVELS[code],
                "is_default": True,
            },
        )
        role.permissions.set(Permission.objects.filter(code__in=defaults[code]))
        roles[code] = role
    return roles


__all__ = [
    "create_role",
    "delete_role",
    "ensure_default_roles",
    "role_snapshot",
    "set_role_permissions",
    "sync_permissions",
    "update_role",
    "validate_permission_codes",
]

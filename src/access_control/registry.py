"""Permission registry: the closed, immutable set of permission codes.

Two kinds of codes live side by side:

- flat codes such as ``create_ticket`` or ``view_audit_logs``;
- resource/action pairs encoded as ``RESOURCE:ACTION`` (``CUSTOMERS:VIEW``).

The registry is built once per process (see ``get_registry``) and handed to
the evaluator and validators by reference. Nothing mutates it at runtime.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable


class PermissionCode:
    """Flat permission codes referenced from code."""

    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    VIEW_USER = "view_user"

    CREATE_ROLE = "create_role"
    UPDATE_ROLE = "update_role"
    DELETE_ROLE = "delete_role"
    VIEW_ROLE = "view_role"
    ASSIGN_ROLE = "assign_role"

    CREATE_TICKET = "create_ticket"
    UPDATE_TICKET = "update_ticket"
    DELETE_TICKET = "delete_ticket"
    VIEW_TICKET = "view_ticket"
    ASSIGN_TICKET = "assign_ticket"
    RESOLVE_TICKET = "resolve_ticket"
    APPROVE_TICKET = "approve_ticket"

    CREATE_INSTALLATION = "create_installation"
    UPDATE_INSTALLATION = "update_installation"
    DELETE_INSTALLATION = "delete_installation"
    VIEW_INSTALLATION = "view_installation"
    ASSIGN_INSTALLATION = "assign_installation"
    COMPLETE_INSTALLATION = "complete_installation"

    CREATE_ITEM = "create_item"
    UPDATE_ITEM = "update_item"
    DELETE_ITEM = "delete_item"
    VIEW_ITEM = "view_item"
    IMPORT_ITEMS = "import_items"
    MANAGE_INVENTORY = "manage_inventory"

    CREATE_DISPATCH = "create_dispatch"
    UPDATE_DISPATCH = "update_dispatch"
    VIEW_DISPATCH = "view_dispatch"
    MANAGE_SHIPMENTS = "manage_shipments"
    TRACK_DELIVERY = "track_delivery"

    MANAGE_SETTINGS = "manage_settings"
    VIEW_SETTINGS = "view_settings"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    VIEW_ACTIVITY_LOGS = "view_activity_logs"

    VIEW_DASHBOARD = "view_dashboard"
    VIEW_PROBLEM = "view_problem"
    VIEW_CUSTOMER = "view_customer"
    VIEW_LOG = "view_log"


class RoleCode:
    SUPER_ADMIN = "SUPER_ADMIN"
    SUPPORT_MANAGER = "SUPPORT_MANAGER"
    ENGINEER = "ENGINEER"
    INVENTORY_MANAGER = "INVENTORY_MANAGER"
    DISPATCH_MANAGER = "DISPATCH_MANAGER"


ROLE_LEVELS: dict[str, int] = {
    RoleCode.SUPER_ADMIN: 3,
    RoleCode.SUPPORT_MANAGER: 2,
    RoleCode.ENGINEER: 1,
    RoleCode.INVENTORY_MANAGER: 1,
    RoleCode.DISPATCH_MANAGER: 1,
}

RESOURCES = (
    "ROLES",
    "USERS",
    "INVENTORY_TYPES",
    "INVENTORY_ITEMS",
    "TICKETS",
    "INSTALLATION_REQUESTS",
    "COURIER_TRACKING",
    "INVENTORY_MOVEMENTS",
    "REPORTS",
    "NOTIFICATIONS",
    "CUSTOMERS",
    "DASHBOARD",
    "PROBLEMS",
)
ACTIONS = ("VIEW", "CREATE", "EDIT", "DELETE", "EXPORT")


def resource_code(resource: str, action: str) -> str:
    """Encode a resource/action pair as a permission code."""
    return f"{resource}:{action}"


@dataclass(frozen=True)
class PermissionDefinition:
    code: str
    name: str
    group: str
    resource: str | None = None
    action: str | None = None


# (group, [(code, display name), ...]); order is the display order.
_FLAT_GROUPS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    (
        "User Management",
        (
            (PermissionCode.CREATE_USER, "Create User"),
            (PermissionCode.UPDATE_USER, "Update User"),
            (PermissionCode.DELETE_USER, "Delete User"),
            (PermissionCode.VIEW_USER, "View User"),
        ),
    ),
    (
        "Role Management",
        (
            (PermissionCode.CREATE_ROLE, "Create Role"),
            (PermissionCode.UPDATE_ROLE, "Update Role"),
            (PermissionCode.DELETE_ROLE, "Delete Role"),
            (PermissionCode.VIEW_ROLE, "View Role"),
            (PermissionCode.ASSIGN_ROLE, "Assign Role"),
        ),
    ),
    (
        "Ticket Management",
        (
            (PermissionCode.CREATE_TICKET, "Create Ticket"),
            (PermissionCode.UPDATE_TICKET, "Update Ticket"),
            (PermissionCode.DELETE_TICKET, "Delete Ticket"),
            (PermissionCode.VIEW_TICKET, "View Ticket"),
            (PermissionCode.ASSIGN_TICKET, "Assign Ticket"),
            (PermissionCode.RESOLVE_TICKET, "Resolve Ticket"),
            (PermissionCode.APPROVE_TICKET, "Approve Ticket"),
        ),
    ),
    (
        "Installation Management",
        (
            (PermissionCode.CREATE_INSTALLATION, "Create Installation"),
            (PermissionCode.UPDATE_INSTALLATION, "Update Installation"),
            (PermissionCode.DELETE_INSTALLATION, "Delete Installation"),
            (PermissionCode.VIEW_INSTALLATION, "View Installation"),
            (PermissionCode.ASSIGN_INSTALLATION, "Assign Installation"),
            (PermissionCode.COMPLETE_INSTALLATION, "Complete Installation"),
        ),
    ),
    (
        "Inventory Management",
        (
            (PermissionCode.CREATE_ITEM, "Create Item"),
            (PermissionCode.UPDATE_ITEM, "Update Item"),
            (PermissionCode.DELETE_ITEM, "Delete Item"),
            (PermissionCode.VIEW_ITEM, "View Item"),
            (PermissionCode.IMPORT_ITEMS, "Import Items"),
            (PermissionCode.MANAGE_INVENTORY, "Manage Inventory"),
        ),
    ),
    (
        "Dispatch Management",
        (
            (PermissionCode.CREATE_DISPATCH, "Create Dispatch"),
            (PermissionCode.UPDATE_DISPATCH, "Update Dispatch"),
            (PermissionCode.VIEW_DISPATCH, "View Dispatch"),
            (PermissionCode.MANAGE_SHIPMENTS, "Manage Shipments"),
            (PermissionCode.TRACK_DELIVERY, "Track Delivery"),
        ),
    ),
    (
        "System Settings",
        (
            (PermissionCode.MANAGE_SETTINGS, "Manage Settings"),
            (PermissionCode.VIEW_SETTINGS, "View Settings"),
            (PermissionCode.VIEW_AUDIT_LOGS, "View Audit Logs"),
            (PermissionCode.VIEW_ACTIVITY_LOGS, "View Activity Logs"),
            (PermissionCode.VIEW_LOG, "View Logs"),
        ),
    ),
    (
        "General",
        (
            (PermissionCode.VIEW_DASHBOARD, "View Dashboard"),
            (PermissionCode.VIEW_PROBLEM, "View Problem"),
            (PermissionCode.VIEW_CUSTOMER, "View Customer"),
        ),
    ),
)

_ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    RoleCode.SUPPORT_MANAGER: (
        PermissionCode.CREATE_USER,
        PermissionCode.UPDATE_USER,
        PermissionCode.VIEW_USER,
        PermissionCode.VIEW_ROLE,
        PermissionCode.CREATE_TICKET,
        PermissionCode.UPDATE_TICKET,
        PermissionCode.VIEW_TICKET,
        PermissionCode.ASSIGN_TICKET,
        PermissionCode.APPROVE_TICKET,
        PermissionCode.CREATE_INSTALLATION,
        PermissionCode.UPDATE_INSTALLATION,
        PermissionCode.VIEW_INSTALLATION,
        PermissionCode.ASSIGN_INSTALLATION,
        PermissionCode.CREATE_ITEM,
        PermissionCode.UPDATE_ITEM,
        PermissionCode.VIEW_ITEM,
        PermissionCode.IMPORT_ITEMS,
        PermissionCode.VIEW_SETTINGS,
        PermissionCode.MANAGE_SETTINGS,
        PermissionCode.VIEW_DASHBOARD,
        PermissionCode.VIEW_CUSTOMER,
        resource_code("CUSTOMERS", "CREATE"),
        resource_code("CUSTOMERS", "EDIT"),
        PermissionCode.VIEW_PROBLEM,
        resource_code("PROBLEMS", "CREATE"),
        resource_code("PROBLEMS", "EDIT"),
    ),
    RoleCode.ENGINEER: (
        PermissionCode.VIEW_USER,
        PermissionCode.VIEW_TICKET,
        PermissionCode.UPDATE_TICKET,
        PermissionCode.RESOLVE_TICKET,
        PermissionCode.VIEW_INSTALLATION,
        PermissionCode.UPDATE_INSTALLATION,
        PermissionCode.COMPLETE_INSTALLATION,
        PermissionCode.VIEW_ITEM,
        PermissionCode.VIEW_DASHBOARD,
        PermissionCode.VIEW_CUSTOMER,
        PermissionCode.VIEW_PROBLEM,
    ),
    RoleCode.INVENTORY_MANAGER: (
        PermissionCode.VIEW_USER,
        PermissionCode.CREATE_ITEM,
        PermissionCode.UPDATE_ITEM,
        PermissionCode.DELETE_ITEM,
        PermissionCode.VIEW_ITEM,
        PermissionCode.IMPORT_ITEMS,
        PermissionCode.MANAGE_INVENTORY,
        PermissionCode.VIEW_TICKET,
        PermissionCode.VIEW_INSTALLATION,
        PermissionCode.VIEW_DISPATCH,
        PermissionCode.VIEW_DASHBOARD,
    ),
    RoleCode.DISPATCH_MANAGER: (
        PermissionCode.VIEW_USER,
        PermissionCode.VIEW_ITEM,
        PermissionCode.CREATE_DISPATCH,
        PermissionCode.UPDATE_DISPATCH,
        PermissionCode.VIEW_DISPATCH,
        PermissionCode.MANAGE_SHIPMENTS,
        PermissionCode.TRACK_DELIVERY,
        PermissionCode.VIEW_TICKET,
        PermissionCode.VIEW_INSTALLATION,
        PermissionCode.MANAGE_INVENTORY,
        PermissionCode.VIEW_DASHBOARD,
    ),
}

# (code, display name, description) for the roles created by the seeder.
DEFAULT_ROLES: tuple[tuple[str, str, str], ...] = (
    (RoleCode.SUPER_ADMIN, "Super Admin", "Full access to every feature"),
    (RoleCode.SUPPORT_MANAGER, "Support Manager", "Manages support tickets and engineers"),
    (RoleCode.ENGINEER, "Engineer", "Handles assigned tickets"),
    (RoleCode.INVENTORY_MANAGER, "Inventory Manager", "Manages inventory items"),
    (RoleCode.DISPATCH_MANAGER, "Dispatch Manager", "Manages dispatches and deliveries"),
)


class PermissionRegistry:
    """Immutable lookup over every defined permission."""

    def __init__(self, definitions: Iterable[PermissionDefinition]):
        ordered = tuple(definitions)
        by_code: dict[str, PermissionDefinition] = {}
        for definition in ordered:
            if definition.code in by_code:
                raise ValueError(f"Duplicate permission code: {definition.code}")
            by_code[definition.code] = definition
        self._definitions = ordered
        self._by_code = by_code
        self._codes = frozenset(by_code)

    def __contains__(self, code: object) -> bool:
        return code in self._codes

    def __len__(self) -> int:
        return len(self._definitions)

    def list_permissions(self) -> tuple[PermissionDefinition, ...]:
        return self._definitions

    def codes(self) -> frozenset[str]:
        return self._codes

    def get(self, code: str) -> PermissionDefinition | None:
        return self._by_code.get(code)

    def display_name(self, code: str) -> str:
        """Human readable name for ``code``; unknown codes are returned as-is."""
        definition = self._by_code.get(code)
        return definition.name if definition else code

    def unknown_codes(self, codes: Iterable[str]) -> list[str]:
        return sorted({code for code in codes if code not in self._codes})

    def groups(self) -> dict[str, list[PermissionDefinition]]:
        grouped: dict[str, list[PermissionDefinition]] = {}
        for definition in self._definitions:
            grouped.setdefault(definition.group, []).append(definition)
        return grouped

    def default_role_permissions(self) -> dict[str, frozenset[str]]:
        """Seed mapping of role code to granted codes.

        SUPER_ADMIN maps to the empty set: its grant is implicit and does not
        depend on stored rows.
        """
        mapping = {code: frozenset(perms) for code, perms in _ROLE_PERMISSIONS.items()}
        mapping[RoleCode.SUPER_ADMIN] = frozenset()
        return mapping


def _title(value: str) -> str:
    return value.replace("_", " ").title()


def build_registry() -> PermissionRegistry:
    definitions: list[PermissionDefinition] = []
    for group, entries in _FLAT_GROUPS:
        definitions.extend(PermissionDefinition(code=code, name=name, group=group) for code, name in entries)
    for resource in RESOURCES:
        for action in ACTIONS:
            definitions.append(
                PermissionDefinition(
                    code=resource_code(resource, action),
                    name=f"{_title(action)} {_title(resource)}",
                    group=_title(resource),
                    resource=resource,
                    action=action,
                )
            )
    return PermissionRegistry(definitions)


@lru_cache(maxsize=1)
def get_registry() -> PermissionRegistry:
    """Process-wide registry instance."""
    return build_registry()


__all__ = [
    "ACTIONS",
    "DEFAULT_ROLES",
    "PermissionCode",
    "PermissionDefinition",
    "PermissionRegistry",
    "RESOURCES",
    "ROLE_LEVELS",
    "RoleCode",
    "build_registry",
    "get_registry",
    "resource_code",
]

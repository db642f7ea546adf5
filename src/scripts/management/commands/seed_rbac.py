"""Seed permissions, the built-in roles, and optional demo users."""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from access_control.models import Role
from access_control.registry import RoleCode
from access_control.services import ensure_default_roles, sync_permissions

DEMO_PASSWORD = "ChangeMe123!"

# (email, name, role code)
DEMO_USERS = (
    ("admin@example.com", "Super Admin", RoleCode.SUPER_ADMIN),
    ("manager@example.com", "Support Manager", RoleCode.SUPPORT_MANAGER),
    ("engineer@example.com", "Field Engineer", RoleCode.ENGINEER),
    ("inventory@example.com", "Inventory Manager", RoleCode.INVENTORY_MANAGER),
    ("dispatch@example.com", "Dispatch Manager", RoleCode.DISPATCH_MANAGER),
)


def create_demo_users(roles: dict[str, Role], password: str = DEMO_PASSWORD) -> int:
    """Create any missing demo account; returns how many were created."""
    User = get_user_model()
    created = 0
    for email, name, code in DEMO_USERS:
        if User.objects.filter(email=email).exists():
            continue
        User.objects.create_user(email=email, password=password, name=name, role=roles[code])
        created += 1
    return created


class Command(BaseCommand):
    help = (
        "Sync the permission catalogue and create the built-in roles. "
        "Use --demo-users to add one account per role and --reset to "
        "remove the demo accounts first."
    )

    def add_arguments(self, parser):
        parser.add_argument("--demo-users", action="store_true", help="Create one demo account per built-in role.")
        parser.add_argument("--reset", action="store_true", help="Delete the demo accounts before seeding.")
        parser.add_argument("--password", default=DEMO_PASSWORD, help="Password for newly created demo accounts.")

    def handle(self, *args, **options):
        with transaction.atomic():
            if options["reset"]:
                removed, _ = get_user_model().objects.filter(email__in=[u[0] for u in DEMO_USERS]).delete()
                self.stdout.write(self.style.WARNING(f"Removed {removed} demo row(s)."))

            created = sync_permissions()
            self.stdout.write(f"Permissions synced ({created} new).")
            roles = ensure_default_roles()
            self.stdout.write(f"Built-in roles ready: {', '.join(sorted(roles))}.")

            if options["demo_users"]:
                count = create_demo_users(roles, options["password"])
                self.stdout.write(f"Created {count} demo user(s).")

        self.stdout.write(self.style.SUCCESS("RBAC seed completed."))

"""Management command tests."""

from __future__ import annotations

from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from access_control.models import Permission, Role
from access_control.registry import RoleCode, get_registry
from scripts.management.commands.seed_rbac import DEMO_USERS

User = get_user_model()


class SeedRbacCommandTests(TestCase):
    def test_seeds_permissions_and_roles(self):
        out = StringIO()
        call_command("seed_rbac", stdout=out)

        self.assertEqual(Permission.objects.count(), len(get_registry()))
        self.assertEqual(
            set(Role.objects.values_list("code", flat=True)),
            {RoleCode.SUPER_ADMIN, RoleCode.SUPPORT_MANAGER, RoleCode.ENGINEER,
             RoleCode.INVENTORY_MANAGER, RoleCode.DISPATCH_MANAGER},
        )
        self.assertIn("RBAC seed completed.", out.getvalue())
        self.assertFalse(User.objects.exists())

    def test_is_idempotent(self):
        call_command("seed_rbac", "--demo-users", stdout=StringIO())
        call_command("seed_rbac", "--demo-users", stdout=StringIO())

        self.assertEqual(User.objects.count(), len(DEMO_USERS))
        self.assertEqual(Role.objects.count(), 5)

    def test_demo_users_get_their_roles(self):
        call_command("seed_rbac", "--demo-users", "--password", "DemoPass123", stdout=StringIO())

        engineer = User.objects.get(email="engineer@example.com")
        self.assertEqual(engineer.role.code, RoleCode.ENGINEER)
        self.assertTrue(engineer.check_password("DemoPass123"))

    def test_reset_recreates_demo_users(self):
        call_command("seed_rbac", "--demo-users", stdout=StringIO())
        first_ids = set(User.objects.values_list("pk", flat=True))

        call_command("seed_rbac", "--demo-users", "--reset", stdout=StringIO())

        self.assertEqual(User.objects.count(), len(DEMO_USERS))
        self.assertTrue(first_ids.isdisjoint(User.objects.values_list("pk", flat=True)))

"""Email and WhatsApp delivery helpers."""

from __future__ import annotations

from unittest import mock

import requests
from django.core import mail
from django.test import TestCase, override_settings

from access_control.registry import RoleCode
from notifications import services
from tests.utils import create_user, seed_roles

WHATSAPP = {"WHATSAPP_API_URL": "https://whatsapp.example.com/send", "WHATSAPP_API_TOKEN": "secret-token"}


class WhatsAppTests(TestCase):
    @override_settings(**WHATSAPP)
    @mock.patch("notifications.services.requests.post")
    def test_posts_template_message(self, post):
        post.return_value.status_code = 200

        self.assertTrue(services.send_whatsapp("9876543210", "ticket_assigned", ["TKT1", 3]))

        _, kwargs = post.call_args
        self.assertEqual(post.call_args.args[0], WHATSAPP["WHATSAPP_API_URL"])
        self.assertEqual(kwargs["json"], {"to": "9876543210", "template": "ticket_assigned", "variables": ["TKT1", "3"]})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret-token")

    @override_settings(**WHATSAPP)
    @mock.patch("notifications.services.requests.post", side_effect=requests.ConnectionError("down"))
    def test_request_failure_is_logged(self, post):
        with self.assertLogs("notifications", level="ERROR"):
            self.assertFalse(services.send_whatsapp("9876543210", "ticket_assigned"))

    @override_settings(WHATSAPP_API_URL="", WHATSAPP_API_TOKEN="")
    @mock.patch("notifications.services.requests.post")
    def test_noop_when_not_configured(self, post):
        self.assertFalse(services.send_whatsapp("9876543210", "ticket_assigned"))
        post.assert_not_called()


class EmailTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.engineer = create_user("engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER])
        cls.retired = create_user(
            "retired@example.com", "OldPass1234", cls.roles[RoleCode.ENGINEER], is_active=False
        )

    def test_notify_users_skips_inactive_duplicates_and_excluded(self):
        sent = services.notify_users(
            [self.engineer, self.engineer, None, self.retired, self.manager],
            "Subject",
            "Body",
            exclude=self.manager,
        )

        self.assertEqual(sent, 1)
        self.assertEqual([message.to for message in mail.outbox], [[self.engineer.email]])

    def test_send_email_without_recipient(self):
        self.assertFalse(services.send_email("", "Subject", "Body"))
        self.assertEqual(mail.outbox, [])

    def test_send_email_failure_is_logged(self):
        with mock.patch("notifications.services.send_mail", side_effect=OSError("smtp down")):
            with self.assertLogs("notifications", level="ERROR"):
                self.assertFalse(services.send_email(self.engineer.email, "Subject", "Body"))

"""Tests for the SMTP email service and templates."""

import smtplib
from unittest.mock import MagicMock, patch

from core.integrations.email import EmailService, EmailTemplates


def make_service():
    return EmailService(
        smtp_host="smtp.test",
        smtp_port=2525,
        smtp_user="user",
        smtp_password="pass",
        from_email="noreply@test",
        from_name="Portal",
    )


class TestEmailService:
    def test_build_message(self):
        msg = make_service().build_message(["a@test", "b@test"], "Hello", "<p>x</p>")

        assert msg["From"] == "Portal <noreply@test>"
        assert msg["To"] == "a@test, b@test"
        assert msg["Subject"] == "Hello"

    def test_send(self):
        with patch("core.integrations.email.smtplib.SMTP") as smtp:
            server = MagicMock()
            smtp.return_value.__enter__.return_value = server

            assert make_service().send_email("a@test", "Hello", "<p>x</p>") is True

        smtp.assert_called_once_with("smtp.test", 2525)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pass")
        server.send_message.assert_called_once()

    def test_smtp_failure_returns_false(self):
        with patch("core.integrations.email.smtplib.SMTP") as smtp:
            smtp.side_effect = smtplib.SMTPConnectError(421, "busy")

            assert make_service().send_email("a@test", "Hello", "<p>x</p>") is False


class TestEmailTemplates:
    def test_copies_assigned(self):
        template = EmailTemplates.copies_assigned("Asha", [4, 5])

        assert template["subject"] == "New Copy Assigned for Evaluation"
        assert "2 new copies have been assigned" in template["body"]
        assert "Copy #5" in template["body"]

    def test_single_copy_wording(self):
        template = EmailTemplates.copies_assigned("Asha", [4])

        assert "1 new copy has been assigned" in template["body"]

    def test_idle_warning(self):
        template = EmailTemplates.idle_warning("Asha", 4, 13.5)

        assert template["subject"] == "Reminder: Copy Pending for Evaluation"
        assert "13.5 hours" in template["body"]

    def test_reassigned_away(self):
        template = EmailTemplates.copy_reassigned_away("Asha", 4)

        assert template["subject"] == "Copy Reassigned"
        assert "Copy #4" in template["body"]

"""Email integration for examiner notifications."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, List, Optional

from core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.smtp_from_email
        self.from_name = from_name or settings.smtp_from_name

    def build_message(self, to_email: str | List[str], subject: str, body: str, html: bool = True) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = ", ".join(to_email) if isinstance(to_email, list) else to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "html" if html else "plain"))
        return msg

    def send_email(
        self,
        to_email: str | List[str],
        subject: str,
        body: str,
        html: bool = True,
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address(es)
            subject: Email subject
            body: Email body
            html: Whether body is HTML

        Returns:
            True if email sent successfully
        """
        recipients = list(to_email) if isinstance(to_email, list) else [to_email]
        try:
            msg = self.build_message(to_email, subject, body, html=html)
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_email, to_addrs=recipients)

            logger.info(f"Email '{subject}' sent to {to_email}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{subject}' to {to_email}: {e}")
            return False


def _copy_list(copy_ids: Iterable[int]) -> str:
    items = "".join(f"<li>Copy #{copy_id}</li>" for copy_id in copy_ids)
    return f"<ul>{items}</ul>"


class EmailTemplates:
    """Examiner notification templates."""

    @staticmethod
    def copies_assigned(examiner_name: str, copy_ids: List[int]) -> dict:
        count = len(copy_ids)
        noun = "copy has" if count == 1 else "copies have"
        return {
            "subject": "New Copy Assigned for Evaluation",
            "body": f"""
                <html>
                <body>
                    <h2>Dear {examiner_name},</h2>
                    <p>{count} new {noun} been assigned to you for evaluation.</p>
                    {_copy_list(copy_ids)}
                    <p>Please evaluate at your earliest convenience.</p>
                    <p>Login to your dashboard to start checking.</p>
                </body>
                </html>
            """,
        }

    @staticmethod
    def idle_warning(examiner_name: str, copy_id: int, idle_hours: float) -> dict:
        return {
            "subject": "Reminder: Copy Pending for Evaluation",
            "body": f"""
                <html>
                <body>
                    <h2>Dear {examiner_name},</h2>
                    <p>Copy #{copy_id} assigned to you has been pending for
                    <strong>{idle_hours:g} hours</strong>.</p>
                    <p><strong>Please complete the evaluation soon; idle copies are
                    automatically reassigned to another examiner.</strong></p>
                    <p>Thank you for your cooperation!</p>
                </body>
                </html>
            """,
        }

    @staticmethod
    def copy_reassigned_away(examiner_name: str, copy_id: int) -> dict:
        return {
            "subject": "Copy Reassigned",
            "body": f"""
                <html>
                <body>
                    <h2>Dear {examiner_name},</h2>
                    <p>Copy #{copy_id} is no longer assigned to you and has been
                    moved to another examiner.</p>
                    <p><strong>Reassignments may affect your performance score and
                    future copy allocations.</strong></p>
                    <p>Please ensure timely evaluation of assigned copies.</p>
                </body>
                </html>
            """,
        }


# Global email service instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create global email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service

"""Email notifications sent by the lifecycle job.

Two kinds of mail leave the job:
- Upcoming-expiration notices: one per contact, rendered from a Jinja2
  template listing the contact's expiring accounts.
- Test-run reports: a plain text message with the would-be deactivations
  attached as CSV, sent to the operators listed in TESTRUNEMAIL.

Mail goes out over SMTP (a local relay such as Mailpit in development, a
managed relay in production). Send methods never raise for rendering or
transport problems: they return a `NotificationResult` with
`success=False` and the caller decides whether to log and move on.

Usage:
    mailer = LifecycleMailer(settings.smtp, settings.notifications)
    result = mailer.send_expiration_notice(group)
    if not result.success:
        logger.error("Notice failed: %s", result.error)
"""

from __future__ import annotations

import logging
import secrets
import smtplib
import ssl
from dataclasses import dataclass
from datetime import UTC, datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

if TYPE_CHECKING:
    from collections.abc import Sequence

    from userlifecycle.core.config import NotificationSettings, SMTPSettings
    from userlifecycle.services.expiration import NotificationGroup


logger = logging.getLogger(__name__)


class NotificationStatus(str, Enum):
    """Status of a notification attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class NotificationResult:
    """Result of a notification attempt.

    Attributes:
        success: Whether the message was handed to the SMTP relay.
        status: Outcome of the attempt.
        recipients: Addresses the message was meant for.
        message_id: Message-ID header of the sent message.
        template_id: Template used, if any.
        error: Error message if the attempt failed.
        sent_at: When the relay accepted the message.
    """

    success: bool
    status: NotificationStatus
    recipients: tuple[str, ...]
    message_id: str | None = None
    template_id: str | None = None
    error: str | None = None
    sent_at: datetime | None = None


class EmailError(Exception):
    """Base exception for email operations."""

    pass


class EmailTemplateError(EmailError):
    """Raised when a template cannot be loaded or rendered."""

    pass


class EmailDeliveryError(EmailError):
    """Raised when email delivery fails."""

    pass


class LifecycleMailer:
    """Sends the job's notification emails over SMTP.

    Attributes:
        smtp_settings: SMTP connection and sender settings.
        notification_settings: Subjects, bodies and template ids.
    """

    def __init__(
        self,
        smtp_settings: SMTPSettings,
        notification_settings: NotificationSettings,
    ) -> None:
        self.smtp_settings = smtp_settings
        self.notification_settings = notification_settings

        self._env = Environment(
            loader=PackageLoader("userlifecycle", "templates/email"),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def send_template(
        self,
        to_email: str,
        to_name: str,
        template_id: str,
        dynamic_data: dict[str, Any],
    ) -> NotificationResult:
        """Render a template and send it to one recipient.

        Args:
            to_email: Recipient address.
            to_name: Recipient display name.
            template_id: Base name of `templates/email/<id>.html` and `.txt`.
            dynamic_data: Template context.

        Returns:
            Outcome of the attempt.
        """
        recipients = (to_email,)
        try:
            html_body, text_body = self._render_template(template_id, dynamic_data)
        except EmailTemplateError as e:
            logger.error("Email template rendering failed: template=%s, error=%s", template_id, e)
            return NotificationResult(
                success=False,
                status=NotificationStatus.FAILED,
                recipients=recipients,
                template_id=template_id,
                error=str(e),
            )

        msg = MIMEMultipart("alternative")
        msg["Subject"] = self.notification_settings.expiration_subject
        msg["To"] = self._format_address(to_name, to_email)
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        return self._deliver(msg, recipients, template_id=template_id)

    def send_expiration_notice(self, group: NotificationGroup) -> NotificationResult:
        """Send a contact the list of their accounts about to expire."""
        logger.debug(
            "Sending expiration notice: user_auth_id=%s, accounts=%d",
            group.user_auth_id,
            len(group.accounts),
        )
        return self.send_template(
            to_email=group.email,
            to_name=group.last_name,
            template_id=self.notification_settings.expiration_template,
            dynamic_data={
                "name": group.last_name,
                "accounts": [account.to_template_data() for account in group.accounts],
            },
        )

    def send_test_run_report(
        self,
        recipients: Sequence[str],
        report: bytes,
    ) -> NotificationResult:
        """Send the deactivation report to the test-run recipients in one message.

        Args:
            recipients: Operator addresses; an empty list sends nothing.
            report: CSV bytes to attach.

        Returns:
            Outcome of the attempt; `SKIPPED` when there are no recipients.
        """
        if not recipients:
            logger.warning("Test run report not sent: no recipients configured")
            return NotificationResult(
                success=False,
                status=NotificationStatus.SKIPPED,
                recipients=(),
                error="No recipients configured",
            )

        settings = self.notification_settings
        msg = MIMEMultipart()
        msg["Subject"] = settings.test_run_subject
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(settings.test_run_body, "plain", "utf-8"))

        _maintype, subtype = settings.attachment_content_type.split("/")
        attachment = MIMEApplication(report, _subtype=subtype)
        attachment.replace_header("Content-Type", settings.attachment_content_type)
        attachment.add_header(
            "Content-Disposition", "attachment", filename=settings.attachment_filename
        )
        msg.attach(attachment)

        return self._deliver(msg, tuple(recipients))

    def _render_template(self, template_id: str, data: dict[str, Any]) -> tuple[str, str]:
        """Render the HTML and text variants of a template.

        Raises:
            EmailTemplateError: If either variant is missing or fails to render.
        """
        try:
            html = self._env.get_template(f"{template_id}.html").render(**data)
            text = self._env.get_template(f"{template_id}.txt").render(**data)
        except TemplateError as e:
            msg = f"Cannot render template {template_id!r}: {e}"
            raise EmailTemplateError(msg) from e
        return html, text

    def _deliver(
        self,
        msg: MIMEMultipart,
        recipients: tuple[str, ...],
        *,
        template_id: str | None = None,
    ) -> NotificationResult:
        try:
            message_id = self._send_email(msg, list(recipients))
        except EmailDeliveryError as e:
            logger.error("Email delivery failed: recipients=%d, error=%s", len(recipients), e)
            return NotificationResult(
                success=False,
                status=NotificationStatus.FAILED,
                recipients=recipients,
                template_id=template_id,
                error=str(e),
            )

        logger.info("Email sent: message_id=%s, recipients=%d", message_id, len(recipients))
        return NotificationResult(
            success=True,
            status=NotificationStatus.SENT,
            recipients=recipients,
            message_id=message_id,
            template_id=template_id,
            sent_at=datetime.now(UTC),
        )

    def _send_email(self, msg: MIMEMultipart, recipients: list[str]) -> str:
        """Send a prepared message via SMTP.

        Args:
            msg: Message with Subject, To and body set.
            recipients: Envelope recipients.

        Returns:
            SMTP message ID.

        Raises:
            EmailDeliveryError: If the email cannot be sent.
        """
        msg["From"] = self._format_address(
            self.smtp_settings.from_name, self.smtp_settings.from_address
        )
        message_id = f"<{secrets.token_hex(16)}@{self._get_domain()}>"
        msg["Message-ID"] = message_id

        try:
            if self.smtp_settings.use_ssl:
                # Implicit TLS (port 465)
                server = smtplib.SMTP_SSL(
                    self.smtp_settings.host,
                    self.smtp_settings.port,
                    timeout=self.smtp_settings.timeout,
                    context=ssl.create_default_context(),
                )
            else:
                server = smtplib.SMTP(
                    self.smtp_settings.host,
                    self.smtp_settings.port,
                    timeout=self.smtp_settings.timeout,
                )
                if self.smtp_settings.use_tls:
                    server.starttls(context=ssl.create_default_context())

            if self.smtp_settings.username and self.smtp_settings.password:
                server.login(
                    self.smtp_settings.username,
                    self.smtp_settings.password.get_secret_value(),
                )

            server.sendmail(self.smtp_settings.from_address, recipients, msg.as_string())
            server.quit()
            return message_id

        except smtplib.SMTPException as e:
            msg_text = f"SMTP error: {e}"
            raise EmailDeliveryError(msg_text) from e
        except OSError as e:
            msg_text = f"Connection error: {e}"
            raise EmailDeliveryError(msg_text) from e

    @staticmethod
    def _format_address(name: str, address: str) -> str:
        return f"{name} <{address}>" if name else address

    def _get_domain(self) -> str:
        """Domain for generated Message-IDs, taken from the sender address."""
        _, _, domain = self.smtp_settings.from_address.rpartition("@")
        return domain or "localhost"

"""Email delivery over SMTP via fastapi-mail."""

import asyncio
import html
import logging
from typing import List, Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from aiosmtplib.errors import SMTPException
from fastapi_mail.errors import ConnectionErrors
from pydantic import ValidationError

from shareguard.alerts.channels.base import (
    RECOMMENDATIONS,
    SEVERITY_COLORS,
    AlertChannel,
    describe_location,
)
from shareguard.alerts.context import AlertContext
from shareguard.common.config import Config
from shareguard.common.exceptions import ConfigurationError, ExternalDeliveryFailure
from shareguard.data.schemas import AlertRecord

logger = logging.getLogger(__name__)


class Mailer:
    """Synchronous facade over FastMail for use from worker threads."""

    def __init__(self, connection: ConnectionConfig):
        self._mail = FastMail(connection)

    @classmethod
    def from_config(cls, config: Config) -> "Mailer":
        if not config.email_enabled:
            raise ConfigurationError(
                "SMTP is not configured (SHAREGUARD_MAIL_USERNAME/PASSWORD/FROM)"
            )
        connection = ConnectionConfig(
            MAIL_USERNAME=config.mail_username,
            MAIL_PASSWORD=config.mail_password,
            MAIL_FROM=config.mail_from,
            MAIL_FROM_NAME="ShareGuard Security",
            MAIL_PORT=config.mail_port,
            MAIL_SERVER=config.mail_server,
            MAIL_STARTTLS=True,
            MAIL_SSL_TLS=False,
            USE_CREDENTIALS=True,
            VALIDATE_CERTS=True,
        )
        return cls(connection)

    def send(self, recipients: List[str], subject: str, body: str, as_html: bool = True) -> None:
        """Send one message.

        Raises:
            ExternalDeliveryFailure: On connection, SMTP, socket or recipient errors
        """
        try:
            message = MessageSchema(
                subject=subject,
                recipients=recipients,
                body=body,
                subtype=MessageType.html if as_html else MessageType.plain,
            )
            asyncio.run(self._mail.send_message(message))
        except (ConnectionErrors, SMTPException, OSError, ValidationError) as e:
            raise ExternalDeliveryFailure(str(e), channel="email") from e


def render_alert_email(alert: AlertRecord, context: AlertContext, dashboard_url: str) -> str:
    color = SEVERITY_COLORS[alert.severity]
    rows = [
        ("User Email", context.email or "Unknown"),
        ("Device ID", f"{context.device_id[:16]}..." if context.device_id else "Unknown"),
        ("IP Address", context.ip_address or "Unknown"),
        ("Location", describe_location(context)),
    ]
    if context.trust_score is not None:
        rows.append(("Trust Score", f"{context.trust_score}/100"))
    rows.append(("Timestamp", alert.timestamp.isoformat()))

    details = "".join(
        f"<tr><td><b>{html.escape(label)}</b></td><td>{html.escape(value)}</td></tr>"
        for label, value in rows
    )
    return (
        f'<div style="font-family: Arial, sans-serif; max-width: 600px;">'
        f'<div style="background: {color}; color: white; padding: 20px;">'
        f"<h1>Security Alert</h1><p>Severity: {alert.severity.value}</p></div>"
        f"<h2>{html.escape(alert.rule_name)}</h2>"
        f'<p style="border-left: 4px solid {color}; padding: 10px;">{html.escape(alert.message)}</p>'
        f"<table>{details}</table>"
        f'<p><a href="{html.escape(dashboard_url)}">View Dashboard</a></p>'
        f"<p>{RECOMMENDATIONS[alert.severity]}</p>"
        f"</div>"
    )


class EmailChannel(AlertChannel):
    """Emails alerts to the configured security recipients."""

    name = "email"

    def __init__(self, mailer: Mailer, recipients: List[str], dashboard_url: str):
        if not recipients:
            raise ConfigurationError("Email alerts need at least one recipient")
        self._mailer = mailer
        self.recipients = list(recipients)
        self.dashboard_url = dashboard_url

    def send(self, alert: AlertRecord, context: AlertContext) -> None:
        self._mailer.send(
            self.recipients,
            subject=f"Security Alert: {alert.rule_name}",
            body=render_alert_email(alert, context, self.dashboard_url),
        )
        logger.info("Email alert sent", extra={"rule_id": alert.rule_id})


def build_email_channel(config: Config) -> Optional[EmailChannel]:
    """Email channel if SMTP and recipients are configured, else None."""
    if not (config.email_enabled and config.alert_email_recipients):
        return None
    return EmailChannel(Mailer.from_config(config), config.alert_email_recipients, config.dashboard_url)

"""Alert delivery channels."""

from shareguard.alerts.channels.base import AlertChannel
from shareguard.alerts.channels.email import EmailChannel, Mailer, build_email_channel
from shareguard.alerts.channels.webhooks import DiscordChannel, SlackChannel, WebhookChannel

__all__ = [
    "AlertChannel",
    "EmailChannel",
    "Mailer",
    "build_email_channel",
    "SlackChannel",
    "DiscordChannel",
    "WebhookChannel",
]

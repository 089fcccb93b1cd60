"""HTTP alert channels: Slack, Discord and a signed generic webhook."""

import hashlib
import hmac
import json
import logging
from abc import abstractmethod
from typing import Any, Dict, Optional

import httpx

from shareguard.alerts.channels.base import (
    SEVERITY_COLORS,
    SEVERITY_ICONS,
    AlertChannel,
    describe_location,
)
from shareguard.alerts.context import AlertContext
from shareguard.common.exceptions import ExternalDeliveryFailure
from shareguard.data.schemas import AlertRecord

logger = logging.getLogger(__name__)

BOT_NAME = "ShareGuard Security"


def trust_bar(score: int) -> str:
    filled = score // 10
    return "#" * filled + "-" * (10 - filled)


class HttpChannel(AlertChannel):
    """Posts a JSON payload to a URL."""

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    @abstractmethod
    def build_payload(self, alert: AlertRecord, context: AlertContext) -> Dict[str, Any]:
        """Channel-specific JSON body."""
        pass

    def headers(self, body: bytes) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def send(self, alert: AlertRecord, context: AlertContext) -> None:
        body = json.dumps(self.build_payload(alert, context), default=str).encode("utf-8")
        try:
            response = self._client.post(self.url, content=body, headers=self.headers(body))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalDeliveryFailure(str(e), channel=self.name) from e
        logger.info(f"{self.name} alert sent", extra={"rule_id": alert.rule_id})

    def close(self) -> None:
        self._client.close()


class SlackChannel(HttpChannel):
    name = "slack"

    def build_payload(self, alert: AlertRecord, context: AlertContext) -> Dict[str, Any]:
        icon = SEVERITY_ICONS[alert.severity]
        fields = [
            {"title": "Severity", "value": alert.severity.value, "short": True},
            {"title": "User", "value": context.email or context.user_id, "short": True},
            {"title": "IP Address", "value": context.ip_address or "Unknown", "short": True},
            {"title": "Location", "value": describe_location(context), "short": True},
        ]
        summary = f"*{icon} Security Alert: {alert.rule_name}*\n{alert.message}"
        if context.trust_score is not None:
            fields.append(
                {"title": "Trust Score", "value": f"{context.trust_score}/100", "short": True}
            )
            summary += f"\n*Trust Score:* {context.trust_score}/100 `{trust_bar(context.trust_score)}`"

        return {
            "username": BOT_NAME,
            "icon_emoji": ":shield:",
            "attachments": [
                {
                    "color": SEVERITY_COLORS[alert.severity],
                    "title": f"{icon} {alert.rule_name}",
                    "text": alert.message,
                    "fields": fields,
                    "footer": "ShareGuard Alert System",
                    "ts": int(alert.timestamp.timestamp()),
                }
            ],
            "blocks": [
                {"type": "section", "text": {"type": "mrkdwn", "text": summary}},
            ],
        }


class DiscordChannel(HttpChannel):
    name = "discord"

    def build_payload(self, alert: AlertRecord, context: AlertContext) -> Dict[str, Any]:
        fields = [
            {"name": "Severity", "value": alert.severity.value, "inline": True},
            {"name": "User", "value": context.email or context.user_id, "inline": True},
            {"name": "IP Address", "value": context.ip_address or "Unknown", "inline": True},
            {"name": "Location", "value": describe_location(context), "inline": True},
        ]
        if context.trust_score is not None:
            fields.append(
                {"name": "Trust Score", "value": f"{context.trust_score}/100", "inline": True}
            )
        return {
            "username": BOT_NAME,
            "embeds": [
                {
                    "title": alert.rule_name,
                    "description": alert.message,
                    "color": int(SEVERITY_COLORS[alert.severity].lstrip("#"), 16),
                    "fields": fields,
                    "footer": {"text": "ShareGuard Alert System"},
                    "timestamp": alert.timestamp.isoformat(),
                }
            ],
        }


class WebhookChannel(HttpChannel):
    """Generic JSON webhook, HMAC-SHA256 signed when a secret is set."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(url, timeout=timeout, client=client)
        self._secret = secret

    def build_payload(self, alert: AlertRecord, context: AlertContext) -> Dict[str, Any]:
        return {
            "alert": {
                "id": alert.alert_id,
                "rule_id": alert.rule_id,
                "name": alert.rule_name,
                "severity": alert.severity.value,
                "message": alert.message,
                "timestamp": alert.timestamp.isoformat(),
            },
            "context": {
                "user_id": context.user_id,
                "email": context.email,
                "device_id": context.device_id,
                "ip_address": context.ip_address,
                "location": context.location.model_dump(mode="json") if context.location else None,
                "trust_score": context.trust_score,
            },
        }

    def headers(self, body: bytes) -> Dict[str, str]:
        headers = super().headers(body)
        if self._secret:
            headers["X-Alert-Signature"] = hmac.new(
                self._secret.encode("utf-8"), body, hashlib.sha256
            ).hexdigest()
        return headers

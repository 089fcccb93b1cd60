"""Alert channel interface."""

from abc import ABC, abstractmethod

from shareguard.alerts.context import AlertContext
from shareguard.data.schemas import AlertRecord, Severity


SEVERITY_COLORS = {
    Severity.CRITICAL: "#DC2626",
    Severity.HIGH: "#EA580C",
    Severity.MEDIUM: "#F59E0B",
    Severity.LOW: "#3B82F6",
}

SEVERITY_ICONS = {
    Severity.CRITICAL: ":rotating_light:",
    Severity.HIGH: ":warning:",
    Severity.MEDIUM: ":zap:",
    Severity.LOW: ":information_source:",
}

RECOMMENDATIONS = {
    Severity.CRITICAL: "Immediate action required. Review this activity and consider blocking the user.",
    Severity.HIGH: "Review the user's recent activity and take appropriate action.",
    Severity.MEDIUM: "Monitor this user's activity and verify it is legitimate.",
    Severity.LOW: "Informational. No immediate action required.",
}


def describe_location(context: AlertContext) -> str:
    if context.location is None:
        return "Unknown"
    return f"{context.location.city or 'Unknown'}, {context.location.country}"


class AlertChannel(ABC):
    """An outbound destination for triggered alerts."""

    name: str = "channel"

    @abstractmethod
    def send(self, alert: AlertRecord, context: AlertContext) -> None:
        """Deliver one alert.

        Raises:
            ExternalDeliveryFailure: If delivery fails
        """
        pass

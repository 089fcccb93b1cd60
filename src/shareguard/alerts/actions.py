"""Alert actions - side effects a triggered rule can request.

Every action kind has one implementation behind AlertAction.execute. Channel
actions only enqueue work on the dispatcher; local actions run inline.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from shareguard.alerts.channels.base import AlertChannel
from shareguard.alerts.context import AlertContext
from shareguard.alerts.dispatcher import BackgroundDispatcher
from shareguard.alerts.store import FlagRegistry
from shareguard.auth.suspensions import Suspensions
from shareguard.data.schemas import ActionKind, AlertRecord
from shareguard.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)


class AlertAction(ABC):

    @abstractmethod
    def execute(self, alert: AlertRecord, context: AlertContext) -> None:
        pass


class DispatchAction(AlertAction):
    """Hands the alert to an external channel via the background dispatcher."""

    def __init__(self, kind: ActionKind, dispatcher: BackgroundDispatcher, channel: Optional[AlertChannel]):
        self.kind = kind
        self._dispatcher = dispatcher
        self._channel = channel

    def execute(self, alert: AlertRecord, context: AlertContext) -> None:
        if self._channel is None:
            logger.debug(f"{self.kind.value} channel not configured, skipping", extra={"rule_id": alert.rule_id})
            return
        self._dispatcher.submit(self._channel, alert, context)


class BlockSessionAction(AlertAction):
    """Terminates the session of the device that triggered the alert."""

    def __init__(self, sessions: SessionRegistry):
        self._sessions = sessions

    def execute(self, alert: AlertRecord, context: AlertContext) -> None:
        if context.device_id:
            self._sessions.delete(context.user_id, context.device_id)


class TemporaryBlockAction(AlertAction):
    """Suspends the user for a fixed duration."""

    def __init__(self, suspensions: Suspensions, seconds: Optional[int] = None):
        self._suspensions = suspensions
        self._seconds = seconds

    def execute(self, alert: AlertRecord, context: AlertContext) -> None:
        self._suspensions.block(context.user_id, self._seconds)


class FlagAction(AlertAction):
    """Marks the user for manual review."""

    def __init__(self, flags: FlagRegistry):
        self._flags = flags

    def execute(self, alert: AlertRecord, context: AlertContext) -> None:
        self._flags.flag(context.user_id, alert.message, alert.severity)


class LogAction(AlertAction):

    def execute(self, alert: AlertRecord, context: AlertContext) -> None:
        logger.info(
            f"Alert: {alert.message}",
            extra={"rule_id": alert.rule_id, "user_id": context.user_id},
        )


def build_actions(
    dispatcher: BackgroundDispatcher,
    sessions: SessionRegistry,
    suspensions: Suspensions,
    flags: FlagRegistry,
    channels: Optional[Dict[ActionKind, Optional[AlertChannel]]] = None,
    block_seconds: Optional[int] = None,
) -> Dict[ActionKind, AlertAction]:
    """Wire one implementation per action kind.

    Args:
        dispatcher: Queue used for channel deliveries
        sessions: Registry for block_session
        suspensions: Suspension store for temporary_block
        flags: Flag registry for flag
        channels: Configured channel per kind; missing kinds are skipped at runtime
        block_seconds: temporary_block duration, defaults to the suspension default
    """
    channels = channels or {}
    actions: Dict[ActionKind, AlertAction] = {
        kind: DispatchAction(kind, dispatcher, channels.get(kind))
        for kind in (ActionKind.EMAIL, ActionKind.SLACK, ActionKind.DISCORD, ActionKind.WEBHOOK)
    }
    actions[ActionKind.BLOCK_SESSION] = BlockSessionAction(sessions)
    actions[ActionKind.TEMPORARY_BLOCK] = TemporaryBlockAction(suspensions, block_seconds)
    actions[ActionKind.FLAG] = FlagAction(flags)
    actions[ActionKind.LOG] = LogAction()
    return actions

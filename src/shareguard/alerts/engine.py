"""Alert Rule Engine - evaluates the rule table against a login context."""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional, Sequence

from shareguard.alerts.actions import AlertAction
from shareguard.alerts.context import AlertContext
from shareguard.alerts.rules import AlertRule
from shareguard.alerts.store import AlertStore
from shareguard.data.schemas import ActionKind, AlertRecord

logger = logging.getLogger(__name__)


class AlertRuleEngine:
    """Evaluates rules independently and in order.

    For each triggered rule the engine builds an AlertRecord, runs the
    rule's actions in declared order and persists the record. A rule that
    fails to evaluate, an action that fails, or a failed persist is logged
    and never interrupts the remaining rules or the login.
    """

    def __init__(
        self,
        rules: Sequence[AlertRule],
        actions: Mapping[ActionKind, AlertAction],
        store: AlertStore,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.rules = tuple(rules)
        self._actions = actions
        self._store = store
        self._clock = clock or time.time

    def evaluate(self, context: AlertContext) -> List[AlertRecord]:
        """Evaluate every rule against the context.

        Returns:
            AlertRecords for the rules that triggered, in table order
        """
        triggered: List[AlertRecord] = []
        fields = context.template_fields()

        for rule in self.rules:
            try:
                if not rule.matches(context):
                    continue
            except Exception as e:
                logger.error(f"Error evaluating rule {rule.id}: {e}", extra={"rule_id": rule.id})
                continue

            alert = AlertRecord(
                rule_id=rule.id,
                rule_name=rule.name,
                severity=rule.severity,
                message=rule.render(fields),
                context=context.subject(),
                timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
            )

            self._execute_actions(rule, alert, context)

            try:
                self._store.save(alert)
            except Exception as e:
                logger.error(f"Failed to persist alert {alert.alert_id}: {e}", extra={"rule_id": rule.id})

            logger.warning(
                f"Alert triggered: {rule.name}",
                extra={"rule_id": rule.id, "user_id": context.user_id, "severity": rule.severity.value},
            )
            triggered.append(alert)

        return triggered

    def _execute_actions(self, rule: AlertRule, alert: AlertRecord, context: AlertContext) -> None:
        for name in rule.actions:
            try:
                kind = ActionKind(name)
            except ValueError:
                logger.warning(f"Unknown alert action: {name}", extra={"rule_id": rule.id})
                continue

            action = self._actions.get(kind)
            if action is None:
                logger.warning(f"No handler for alert action: {name}", extra={"rule_id": rule.id})
                continue

            try:
                action.execute(alert, context)
            except Exception as e:
                logger.error(
                    f"Error executing action {name}: {e}",
                    extra={"rule_id": rule.id, "action": name},
                )

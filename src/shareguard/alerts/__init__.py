"""Alerts - rule table, evaluation engine, actions and delivery."""

from shareguard.alerts.context import AlertContext
from shareguard.alerts.rules import AlertRule, Condition, load_rules
from shareguard.alerts.store import AlertStore, FlagRegistry
from shareguard.alerts.dispatcher import BackgroundDispatcher
from shareguard.alerts.actions import AlertAction, build_actions
from shareguard.alerts.engine import AlertRuleEngine

__all__ = [
    "AlertContext",
    "AlertRule",
    "Condition",
    "load_rules",
    "AlertStore",
    "FlagRegistry",
    "BackgroundDispatcher",
    "AlertAction",
    "build_actions",
    "AlertRuleEngine",
]

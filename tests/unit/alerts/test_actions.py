"""Unit tests for alert actions."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from shareguard.alerts import AlertContext, FlagRegistry, build_actions
from shareguard.auth import Suspensions
from shareguard.data.schemas import ActionKind, AlertRecord, AlertSubject, Severity
from shareguard.sessions import SessionRegistry


@pytest.fixture
def sessions(store, clock):
    return SessionRegistry(store, clock=clock)


@pytest.fixture
def suspensions(store):
    return Suspensions(store)


@pytest.fixture
def flags(store, clock):
    return FlagRegistry(store, clock=clock)


@pytest.fixture
def dispatcher():
    return MagicMock()


@pytest.fixture
def slack():
    return MagicMock()


@pytest.fixture
def actions(dispatcher, sessions, suspensions, flags, slack):
    return build_actions(
        dispatcher, sessions, suspensions, flags,
        channels={ActionKind.SLACK: slack},
        block_seconds=600,
    )


@pytest.fixture
def alert():
    return AlertRecord(
        rule_id="device_sharing",
        rule_name="Device Sharing Detected",
        severity=Severity.MEDIUM,
        message="Device dev_1 is being used by 3 accounts",
        context=AlertSubject(user_id="usr_1"),
        timestamp=datetime(2026, 1, 15, 12, tzinfo=timezone.utc),
    )


@pytest.fixture
def context():
    return AlertContext(user_id="usr_1", device_id="dev_1")


class TestBuildActions:

    def test_one_handler_per_kind(self, actions):
        assert set(actions) == set(ActionKind)

    def test_configured_channel_is_dispatched(self, actions, dispatcher, slack, alert, context):
        actions[ActionKind.SLACK].execute(alert, context)
        dispatcher.submit.assert_called_once_with(slack, alert, context)

    def test_unconfigured_channel_is_skipped(self, actions, dispatcher, alert, context):
        actions[ActionKind.DISCORD].execute(alert, context)
        dispatcher.submit.assert_not_called()

    def test_block_session(self, actions, sessions, alert, context):
        sessions.create("usr_1", "dev_1", "tok-1")
        sessions.create("usr_1", "dev_2", "tok-2")

        actions[ActionKind.BLOCK_SESSION].execute(alert, context)

        assert sessions.get("usr_1", "dev_1") is None
        assert sessions.get("usr_1", "dev_2") is not None

    def test_temporary_block(self, actions, suspensions, alert, context, clock):
        actions[ActionKind.TEMPORARY_BLOCK].execute(alert, context)

        assert suspensions.is_blocked("usr_1")
        clock.advance(601)
        assert not suspensions.is_blocked("usr_1")

    def test_flag(self, actions, flags, alert, context):
        actions[ActionKind.FLAG].execute(alert, context)

        assert flags.get("usr_1")["reason"] == "Device dev_1 is being used by 3 accounts"

    def test_log(self, actions, alert, context, caplog):
        with caplog.at_level("INFO", logger="shareguard.alerts.actions"):
            actions[ActionKind.LOG].execute(alert, context)
        assert "Device dev_1 is being used by 3 accounts" in caplog.text

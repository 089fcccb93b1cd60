"""Unit tests for AlertStore and FlagRegistry."""

from datetime import timedelta

import pytest

from shareguard.alerts import AlertStore, FlagRegistry
from shareguard.data.schemas import AlertRecord, AlertSubject, Severity


@pytest.fixture
def alerts(store, clock):
    return AlertStore(store, clock=clock)


@pytest.fixture
def flags(store, clock):
    return FlagRegistry(store, clock=clock)


def make_alert(clock, rule_id="trust_score_critical", severity=Severity.HIGH, user_id="usr_1", offset=0):
    return AlertRecord(
        rule_id=rule_id,
        rule_name=rule_id.replace("_", " ").title(),
        severity=severity,
        message=f"{rule_id} for {user_id}",
        context=AlertSubject(user_id=user_id),
        timestamp=clock.datetime() + timedelta(seconds=offset),
    )


class TestAlertStore:

    def test_recent_is_newest_first(self, alerts, clock):
        older = make_alert(clock, offset=0)
        newer = make_alert(clock, offset=5)
        alerts.save(older)
        alerts.save(newer)

        assert [a.alert_id for a in alerts.recent()] == [newer.alert_id, older.alert_id]
        assert alerts.recent(0) == []

    def test_index_is_capped_at_1000(self, alerts, clock):
        saved = [make_alert(clock, offset=i) for i in range(1005)]
        for alert in saved:
            alerts.save(alert)

        assert alerts.index_size() == 1000
        assert alerts.recent(1)[0].alert_id == saved[-1].alert_id
        assert saved[0].alert_id not in {a.alert_id for a in alerts.recent(1000)}

    def test_expired_records_are_skipped(self, alerts, clock):
        alerts.save(make_alert(clock))
        clock.advance(7 * 86400 + 1)

        assert alerts.recent() == []

    def test_by_severity(self, alerts, clock):
        alerts.save(make_alert(clock, severity=Severity.HIGH, offset=1))
        alerts.save(make_alert(clock, rule_id="geo_impossibility", severity=Severity.CRITICAL, offset=2))
        alerts.save(make_alert(clock, severity=Severity.HIGH, offset=3))

        critical = alerts.by_severity(Severity.CRITICAL)
        assert [a.rule_id for a in critical] == ["geo_impossibility"]
        assert len(alerts.by_severity("HIGH")) == 2

    def test_for_user(self, alerts, clock):
        alerts.save(make_alert(clock, user_id="usr_1", offset=1))
        alerts.save(make_alert(clock, user_id="usr_2", offset=2))
        alerts.save(make_alert(clock, user_id="usr_1", offset=3))

        assert len(alerts.for_user("usr_1")) == 2
        assert len(alerts.for_user("usr_1", limit=1)) == 1
        assert alerts.for_user("usr_3") == []

    def test_stats(self, alerts, flags, clock):
        alerts.save(make_alert(clock, offset=-2 * 86400))
        alerts.save(make_alert(clock, rule_id="device_sharing", severity=Severity.MEDIUM))
        alerts.save(make_alert(clock, offset=1))
        flags.flag("usr_1", "shared device", Severity.MEDIUM)

        stats = alerts.stats()

        assert stats["total"] == 3
        assert stats["by_severity"] == {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 0}
        assert stats["by_rule"] == {"trust_score_critical": 2, "device_sharing": 1}
        assert stats["last_24_hours"] == 2
        assert stats["flagged_users"] == 1


class TestFlagRegistry:

    def test_flag_and_get(self, flags, clock):
        flags.flag("usr_1", "Device shared by 3 accounts", Severity.MEDIUM)

        details = flags.get("usr_1")
        assert details["reason"] == "Device shared by 3 accounts"
        assert details["severity"] == "MEDIUM"
        assert details["flagged_at"] == clock.datetime().isoformat()
        assert flags.count() == 1

    def test_unflagged_user(self, flags):
        assert flags.get("usr_1") is None

    def test_clear(self, flags):
        flags.flag("usr_1", "reason", Severity.LOW)
        flags.clear("usr_1")

        assert flags.get("usr_1") is None
        assert flags.count() == 0

    def test_membership_outlives_details(self, flags, clock):
        flags.flag("usr_1", "reason", Severity.LOW)
        clock.advance(30 * 86400 + 1)

        assert flags.get("usr_1") == {"flagged": True}

"""Unit tests for the alert rule table."""

import pydantic
import pytest

from shareguard.alerts import AlertContext, AlertRule, Condition, load_rules
from shareguard.alerts.rules import resolve_field
from shareguard.common.exceptions import ConfigurationError
from shareguard.data.schemas import GeoCheckResult, GeoLocation, Severity


def context(**fields):
    fields.setdefault("user_id", "usr_1")
    fields.setdefault("email", "viewer@example.com")
    return AlertContext(**fields)


class TestDefaultRules:

    def test_loads_packaged_table_in_order(self):
        rules = load_rules()

        assert [rule.id for rule in rules] == [
            "geo_impossibility",
            "trust_score_critical",
            "device_sharing",
            "multiple_failed_logins",
            "session_limit_exceeded",
            "unusual_login_hours",
            "vpn_detected",
            "rapid_location_changes",
            "new_device_high_risk",
            "account_takeover_attempt",
        ]

    def test_rules_are_immutable(self):
        rule = load_rules()[0]
        with pytest.raises(pydantic.ValidationError):
            rule.severity = Severity.LOW

    @pytest.mark.parametrize("rule_id,fields,expected", [
        ("geo_impossibility", {"geo_check": GeoCheckResult(is_impossible=True)}, True),
        ("geo_impossibility", {"geo_check": GeoCheckResult()}, False),
        ("geo_impossibility", {}, False),
        ("trust_score_critical", {"trust_score": 39}, True),
        ("trust_score_critical", {"trust_score": 40}, False),
        ("trust_score_critical", {}, False),
        ("device_sharing", {"device_user_count": 3}, True),
        ("device_sharing", {"device_user_count": 2}, False),
        ("multiple_failed_logins", {"failed_attempts": 5}, True),
        ("multiple_failed_logins", {"failed_attempts": 4}, False),
        ("session_limit_exceeded", {"active_sessions": 3, "max_sessions": 2}, True),
        ("session_limit_exceeded", {"active_sessions": 2, "max_sessions": 2}, False),
        ("unusual_login_hours", {"login_hour": 2}, True),
        ("unusual_login_hours", {"login_hour": 5}, True),
        ("unusual_login_hours", {"login_hour": 6}, False),
        ("unusual_login_hours", {"login_hour": 1}, False),
        ("vpn_detected", {"is_vpn": True}, True),
        ("rapid_location_changes", {"location_change_count": 4}, True),
        ("rapid_location_changes", {"location_change_count": 3}, False),
        ("new_device_high_risk", {"is_new_device": True, "trust_score": 49}, True),
        ("new_device_high_risk", {"is_new_device": True, "trust_score": 50}, False),
        ("new_device_high_risk", {"is_new_device": False, "trust_score": 10}, False),
        ("account_takeover_attempt", {"password_changed": True, "trust_score": 59}, True),
        ("account_takeover_attempt", {"password_changed": True, "trust_score": 60}, False),
    ])
    def test_rule_conditions(self, rule_id, fields, expected):
        rule = {r.id: r for r in load_rules()}[rule_id]
        assert rule.matches(context(**fields)) is expected


class TestMessages:

    def test_renders_nested_fields(self):
        rule = {r.id: r for r in load_rules()}["geo_impossibility"]
        ctx = context(geo_check=GeoCheckResult(is_impossible=True, reason="Impossible travel: 11760km in 120 minutes"))

        assert rule.render(ctx.template_fields()) == (
            "User viewer@example.com attempted login from impossible location: "
            "Impossible travel: 11760km in 120 minutes"
        )

    def test_renders_location_fields(self):
        rule = {r.id: r for r in load_rules()}["vpn_detected"]
        ctx = context(is_vpn=True, location=GeoLocation(country="IN", latitude=1, longitude=2))

        assert rule.render(ctx.template_fields()) == "User viewer@example.com is using VPN/Proxy from IN"

    def test_truncates_device_id(self):
        rule = {r.id: r for r in load_rules()}["device_sharing"]
        ctx = context(device_id="abcdef0123456789", device_user_count=3)

        assert rule.render(ctx.template_fields()) == "Device abcdef01 is being used by 3 accounts"

    def test_falls_back_to_rule_name(self):
        rule = AlertRule(
            id="r", name="Fallback Name", severity=Severity.LOW,
            conditions=[Condition(field="is_vpn", op="eq", value=True)],
            message="{not_a_field}",
        )
        assert rule.render(context().template_fields()) == "Fallback Name"


class TestConditions:

    def test_resolve_field_through_models_and_dicts(self):
        source = {"outer": GeoCheckResult(reason="x")}
        assert resolve_field(source, "outer.reason") == "x"
        assert resolve_field(source, "outer.missing") is None
        assert resolve_field(source, "nope.reason") is None

    def test_value_from_compares_fields(self):
        condition = Condition(field="active_sessions", op="ge", value_from="max_sessions")
        assert condition.matches(context(active_sessions=2, max_sessions=2))
        assert not condition.matches(context(active_sessions=1, max_sessions=2))

    def test_requires_exactly_one_operand(self):
        with pytest.raises(pydantic.ValidationError):
            Condition(field="trust_score", op="lt")
        with pytest.raises(pydantic.ValidationError):
            Condition(field="trust_score", op="lt", value=1, value_from="max_sessions")

    def test_between_requires_pair(self):
        with pytest.raises(pydantic.ValidationError):
            Condition(field="login_hour", op="between", value=3)

    def test_unknown_operator(self):
        with pytest.raises(pydantic.ValidationError):
            Condition(field="trust_score", op="like", value=1)


class TestLoadRules:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_rules(tmp_path / "absent.yaml")

    def test_duplicate_ids_rejected(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n"
            "  - {id: a, name: A, severity: LOW, message: m,"
            " conditions: [{field: is_vpn, op: eq, value: true}]}\n"
            "  - {id: a, name: B, severity: LOW, message: m,"
            " conditions: [{field: is_vpn, op: eq, value: true}]}\n"
        )
        with pytest.raises(ConfigurationError):
            load_rules(path)

    def test_rule_without_conditions_rejected(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("rules:\n  - {id: a, name: A, severity: LOW, message: m, conditions: []}\n")
        with pytest.raises(ConfigurationError):
            load_rules(path)

    def test_custom_table(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "version: '2'\n"
            "rules:\n"
            "  - id: late\n"
            "    name: Late Login\n"
            "    severity: LOW\n"
            "    conditions:\n"
            "      - {field: login_hour, op: between, value: [22, 23]}\n"
            "    actions: [log]\n"
            "    message: 'late login at {login_hour}'\n"
        )
        (rule,) = load_rules(path)

        assert rule.actions == ("log",)
        assert rule.matches(context(login_hour=23))
        assert not rule.matches(context(login_hour=21))

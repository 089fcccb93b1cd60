"""Tests for the logging helpers."""

import logging

from shareguard.common.logging import ContextFormatter, configure_logging, get_logger


def make_record(**extra):
    record = logging.LogRecord("shareguard.test", logging.WARNING, __file__, 1, "Rate limit exceeded", (), None)
    record.__dict__.update(extra)
    return record


class TestContextFormatter:

    def test_appends_extra_fields_sorted(self):
        formatted = ContextFormatter("%(levelname)s %(message)s").format(
            make_record(limiter="login", hits=6)
        )
        assert formatted == "WARNING Rate limit exceeded [hits=6 limiter=login]"

    def test_plain_record_unchanged(self):
        formatted = ContextFormatter("%(levelname)s %(message)s").format(make_record())
        assert formatted == "WARNING Rate limit exceeded"


class TestGetLogger:

    def test_single_handler(self):
        first = get_logger("shareguard.test.handlers", "DEBUG")
        second = get_logger("shareguard.test.handlers", "WARNING")

        assert first is second
        assert len(second.handlers) == 1
        assert second.level == logging.WARNING
        assert isinstance(second.handlers[0].formatter, ContextFormatter)

    def test_configure_logging_targets_package_logger(self):
        assert configure_logging("INFO").name == "shareguard"

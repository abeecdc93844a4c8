"""Tests for logging setup and credential masking."""

import logging

import pytest

from table_sync.logging_config import SensitiveDataFilter, get_logger, setup_logging


def make_record(msg, args=None):
    return logging.LogRecord("table_sync.test", logging.INFO, __file__, 1, msg, args, None)


class TestSensitiveDataFilter:

    @pytest.mark.parametrize("text", [
        "row={'email': 'a@example.org', 'password': 'hunter2'}",
        "connecting with api_key=abc123",
        "publishing with Bearer eyJhbGciOi",
    ])
    def test_masks_credentials(self, text):
        record = make_record(text)

        assert SensitiveDataFilter().filter(record) is True
        assert "***MASKED***" in record.msg
        assert "hunter2" not in record.msg
        assert "abc123" not in record.msg
        assert "eyJhbGciOi" not in record.msg

    def test_leaves_regular_messages(self):
        record = make_record("Event handled [model=User, created=1]")

        SensitiveDataFilter().filter(record)

        assert record.msg == "Event handled [model=User, created=1]"

    def test_masks_args(self):
        record = make_record("payload %s", ("token=secret-value",))

        SensitiveDataFilter().filter(record)

        assert record.args == ("token=***MASKED***",)


class TestSetupLogging:

    def test_configures_once(self):
        logger = setup_logging("table_sync_test_once", log_level="DEBUG")
        again = setup_logging("table_sync_test_once", log_level="WARNING")

        assert logger is again
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not logger.propagate

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("TABLE_SYNC_LOG_LEVEL", "error")

        logger = setup_logging("table_sync_test_env")

        assert logger.level == logging.ERROR

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logging("table_sync_test_unknown", log_level="LOUD")

        assert logger.level == logging.INFO

    def test_correlation_id_in_format(self):
        logger = setup_logging("table_sync_test_corr", log_level="INFO", correlation_id="worker-1")

        assert "[worker-1]" in logger.handlers[0].formatter._fmt

    def test_get_logger(self):
        assert get_logger("table_sync.receiving").name == "table_sync.receiving"

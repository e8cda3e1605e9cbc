"""
Tests for environment configuration and structured logging
"""

import json
import logging

import pytest

from minibank import config as config_module
from minibank.config import BankConfig, get_config, reload_config
from minibank.logging_config import JSONFormatter, get_logger, log_action, setup_logging


class TestBankConfig:
    """Test pydantic-settings configuration"""

    def test_defaults(self):
        """Test default configuration values"""
        cfg = BankConfig()
        assert cfg.default_savings_interest_rate == "0.03"
        assert cfg.default_overdraft_limit == "500.00"
        assert cfg.max_login_attempts == 3
        assert cfg.enable_audit_logging is True

    def test_environment_overrides(self, monkeypatch):
        """Test environment overrides"""
        monkeypatch.setenv("MINIBANK_DEFAULT_OVERDRAFT_LIMIT", "250.00")
        monkeypatch.setenv("MINIBANK_MAX_LOGIN_ATTEMPTS", "5")
        monkeypatch.setenv("MINIBANK_ENABLE_AUDIT_LOGGING", "false")

        cfg = BankConfig()
        assert cfg.default_overdraft_limit == "250.00"
        assert cfg.max_login_attempts == 5
        assert cfg.enable_audit_logging is False

    def test_reload_config_replaces_global(self, monkeypatch):
        """Test reload config replaces global"""
        original = get_config()
        monkeypatch.setenv("MINIBANK_ID_WIDTH", "4")
        try:
            reloaded = reload_config()
            assert reloaded is get_config()
            assert reloaded.id_width == 4
        finally:
            monkeypatch.setattr(config_module, "config", original)


class TestStructuredLogging:
    """Test the JSON formatter and log_action helper"""

    def _record(self, message="hello", **fields):
        record = logging.LogRecord("minibank.test", logging.INFO, __file__, 1, message, (), None)
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_structured_fields(self):
        """Test JSON formatter includes structured fields"""
        record = self._record(user_id="admin", action="deposit", resource="account:ACC001",
                              extra={"amount": "5.00"})
        payload = json.loads(JSONFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["message"] == "hello"
        assert payload["user_id"] == "admin"
        assert payload["action"] == "deposit"
        assert payload["resource"] == "account:ACC001"
        assert payload["extra"] == {"amount": "5.00"}
        assert "timestamp" in payload

    def test_json_timestamp_is_record_creation_time(self):
        """Test that the timestamp comes from the record, not the formatting time"""
        record = self._record()
        record.created = 0.0
        payload = json.loads(JSONFormatter().format(record))
        assert payload["timestamp"] == "1970-01-01T00:00:00+00:00"

    def test_json_formatter_drops_missing_fields(self):
        """Test JSON formatter drops missing fields"""
        payload = json.loads(JSONFormatter().format(self._record()))
        assert "user_id" not in payload
        assert "extra" not in payload

    def test_setup_logging_configures_named_logger(self, tmp_path):
        """Test setup logging configures named logger"""
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("DEBUG", "minibank.test_setup", log_file=str(log_file))

        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

        # Calling again replaces rather than stacks handlers
        setup_logging("INFO", "minibank.test_setup", log_format="text", log_file=str(log_file))
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        logger.handlers[0].close()

    def test_log_action_attaches_fields(self, tmp_path):
        """Test log action attaches fields"""
        log_file = tmp_path / "actions.log"
        logger = setup_logging("INFO", "minibank.test_actions", log_file=str(log_file))

        log_action(logger, "info", "Transaction posted", user_id="alice",
                   action="deposit", resource="transaction:TX001", extra={"amount": "5.00"})
        log_action(logger, "debug", "not emitted")
        logger.handlers[0].close()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        payload = json.loads(lines[0])
        assert payload["message"] == "Transaction posted"
        assert payload["user_id"] == "alice"
        assert payload["resource"] == "transaction:TX001"
        assert payload["module"] == "test_config_logging"
        assert payload["logger"] == "minibank.test_actions"

    def test_get_logger(self):
        """Test named logger lookup"""
        assert get_logger("minibank.x") is logging.getLogger("minibank.x")
        assert get_logger().name == "minibank"

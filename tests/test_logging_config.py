"""
Tests for structured logging
"""

import json
import logging
import sys

import pytest

from secure_banking.config import SecureBankingConfig
from secure_banking.logging_config import (
    JSONFormatter, setup_logging, setup_logging_from_config, get_logger,
    log_action, log_rejection
)


@pytest.fixture
def isolated_logger():
    name = "secure_banking_test_logger"
    yield name
    logger = logging.getLogger(name)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def _capture(logger):
    records = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    logger.addHandler(ListHandler())
    return records


class TestJSONFormatter:
    """Test JSON log formatting"""

    def test_basic_fields(self):
        record = logging.LogRecord("secure_banking", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["message"] == "hello world"
        assert "timestamp" in entry
        assert "reason" not in entry

    def test_structured_fields(self):
        record = logging.LogRecord("secure_banking", logging.INFO, __file__, 1, "rejected", (), None)
        record.action = "validation_rejected"
        record.field = "ssn"
        record.reason = "bad-length"
        entry = json.loads(JSONFormatter().format(record))

        assert entry["action"] == "validation_rejected"
        assert entry["field"] == "ssn"
        assert entry["reason"] == "bad-length"

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("secure_banking", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestSetupLogging:
    """Test logger configuration"""

    def test_json_handler(self, isolated_logger):
        logger = setup_logging("DEBUG", logger_name=isolated_logger)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert not logger.propagate

    def test_text_handler(self, isolated_logger):
        logger = setup_logging("INFO", logger_name=isolated_logger, log_format="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_no_duplicate_handlers(self, isolated_logger):
        setup_logging(logger_name=isolated_logger)
        logger = setup_logging(logger_name=isolated_logger)
        assert len(logger.handlers) == 1

    def test_file_handler(self, isolated_logger, tmp_path):
        log_file = tmp_path / "secure_banking.log"
        logger = setup_logging(logger_name=isolated_logger, log_file=str(log_file))
        logger.info("written to file")
        logger.handlers[0].flush()

        entry = json.loads(log_file.read_text().strip())
        assert entry["message"] == "written to file"
        logger.handlers[0].close()

    def test_from_config(self):
        logger = setup_logging_from_config(SecureBankingConfig(log_level="WARNING", log_format="text"))
        try:
            assert logger.name == "secure_banking"
            assert logger.level == logging.WARNING
        finally:
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    def test_get_logger(self):
        assert get_logger().name == "secure_banking"
        assert get_logger("secure_banking.encryption").name == "secure_banking.encryption"


class TestLogAction:
    """Test structured action logging"""

    def test_custom_fields(self, isolated_logger):
        logger = logging.getLogger(isolated_logger)
        logger.setLevel(logging.INFO)
        records = _capture(logger)

        log_action(logger, "info", "Key rotated", action="key_rotation", correlation_id="req-1",
                   extra={"records": 3})

        assert len(records) == 1
        assert records[0].action == "key_rotation"
        assert records[0].correlation_id == "req-1"
        assert records[0].extra == {"records": 3}

    def test_respects_level(self, isolated_logger):
        logger = logging.getLogger(isolated_logger)
        logger.setLevel(logging.WARNING)
        records = _capture(logger)

        log_action(logger, "info", "suppressed")
        assert records == []

    def test_log_rejection_carries_reason_only(self, isolated_logger):
        logger = logging.getLogger(isolated_logger)
        logger.setLevel(logging.INFO)
        records = _capture(logger)

        log_rejection(logger, "card_number", "checksum-mismatch")

        assert len(records) == 1
        assert records[0].field == "card_number"
        assert records[0].reason == "checksum-mismatch"
        assert records[0].getMessage() == "Validation rejected for card_number: checksum-mismatch"

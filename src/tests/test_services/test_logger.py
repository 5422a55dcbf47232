"""
Tests for the logger service
"""

import json
import logging

import pytest

from services.logger import JsonFormatter, LoggerService, cleanup_logging, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    cleanup_logging()
    root.handlers = handlers
    root.setLevel(level)


class TestJsonFormatter:
    def test_includes_component_and_extras(self):
        record = logging.LogRecord(
            "sources.rate_limited_client", logging.WARNING, __file__, 1, "retrying", None, None
        )
        record.tier = "fast"
        record.attempt = 2

        data = json.loads(JsonFormatter().format(record))

        assert data["component"] == "sources.rate_limited_client"
        assert data["level"] == "WARNING"
        assert data["message"] == "retrying"
        assert data["tier"] == "fast"
        assert data["attempt"] == 2
        assert "msg" not in data


class TestLoggerService:
    def test_writes_rotating_files(self, tmp_path):
        service = LoggerService({"log_dir": str(tmp_path), "colored_output": False})
        logging.getLogger("test").info("hello")
        logging.getLogger("test").error("broken")
        service.cleanup()

        assert "hello" in (tmp_path / "monitor.log").read_text()
        errors = (tmp_path / "errors.log").read_text()
        assert "broken" in errors
        assert "hello" not in errors

    def test_json_file_output(self, tmp_path):
        service = LoggerService({"log_dir": str(tmp_path), "json_logs": True})
        logging.getLogger("core.aggregator").info("cycle", extra={"cycle": 3})
        service.cleanup()

        line = (tmp_path / "monitor.log").read_text().splitlines()[0]
        assert json.loads(line)["cycle"] == 3

    def test_file_logs_disabled(self, tmp_path):
        service = LoggerService({"log_dir": str(tmp_path / "logs"), "file_logs": False})
        logging.getLogger("test").info("console only")
        service.cleanup()

        assert not (tmp_path / "logs").exists()


class TestModuleFunctions:
    def test_setup_is_idempotent(self, tmp_path):
        first = setup_logging({"log_dir": str(tmp_path)})
        second = setup_logging({"log_dir": str(tmp_path / "other")})

        assert first is second
        assert not (tmp_path / "other").exists()

    def test_get_logger_returns_named_logger(self, tmp_path):
        setup_logging({"log_dir": str(tmp_path)})
        assert get_logger("sources.steam_api").name == "sources.steam_api"

"""Tests for logging_config.py — JSON records and idempotent setup."""

import json
import logging

from logging_config import JsonFormatter, configure_logging


def _record(**extra):
    record = logging.LogRecord("calc_engine", logging.WARNING, __file__, 12,
                               "rate fetch failed: %s", ("timeout",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self):
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "calc_engine"
        assert entry["message"] == "rate fetch failed: timeout"
        assert "calculator_id" not in entry

    def test_context_fields(self):
        entry = json.loads(JsonFormatter().format(_record(calculator_id="loan", locale="pt-BR")))
        assert entry["calculator_id"] == "loan"
        assert entry["locale"] == "pt-BR"


class TestConfigureLogging:
    def test_repeat_calls_do_not_stack_handlers(self, tmp_path):
        configure_logging(log_dir=str(tmp_path))
        before = len(logging.getLogger().handlers)
        configure_logging(log_dir=str(tmp_path), log_format="json")
        assert len(logging.getLogger().handlers) == before
        assert (tmp_path / "calc_engine.log").exists()

    def test_returns_app_logger(self, tmp_path):
        assert configure_logging(log_dir=str(tmp_path)).name == "calc_engine"

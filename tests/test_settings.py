"""Tests for querylog.settings - QUERYLOG_* environment configuration."""

import logging
import os
import time
from datetime import timedelta

import pytest
from pydantic import ValidationError

from querylog.context import ContextValue
from querylog.options import build_config, with_sink
from querylog.record import LogType
from querylog.settings import QueryLogSettings, _parse_level, from_env

from conftest import CaptureSink


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No stray .env file or QUERYLOG_* variables."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("QUERYLOG_"):
            monkeypatch.delenv(name)


class TestParseLevel:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (10, 10),
            ("42", 42),
            (" 35 ", 35),
            ("error", logging.ERROR),
            ("WARNING", logging.WARNING),
            ("debug", logging.DEBUG),
        ],
    )
    def test_parse(self, value, expected):
        assert _parse_level(value) == expected

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="unknown log level"):
            _parse_level("loud")


class TestQueryLogSettings:
    def test_defaults(self):
        settings = QueryLogSettings()

        assert settings.trace_all is False
        assert settings.ignore_trace is False
        assert settings.ignore_record_not_found is True
        assert settings.slow_threshold == timedelta(0)
        assert settings.error_field == "error"
        assert settings.source_field == "file"
        assert settings.context_keys == {}
        assert settings.error_level == logging.ERROR
        assert settings.slow_query_level == logging.WARNING
        assert settings.default_level == logging.INFO

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("QUERYLOG_TRACE_ALL", "true")
        monkeypatch.setenv("QUERYLOG_SLOW_THRESHOLD_MS", "250")
        monkeypatch.setenv("QUERYLOG_SLOW_QUERY_LEVEL", "ERROR")
        monkeypatch.setenv("QUERYLOG_DEFAULT_LEVEL", "15")
        monkeypatch.setenv("QUERYLOG_ERROR_FIELD", "err")
        monkeypatch.setenv("QUERYLOG_CONTEXT_KEYS", '{"request_id": "rid"}')

        settings = QueryLogSettings()

        assert settings.trace_all is True
        assert settings.slow_threshold == timedelta(milliseconds=250)
        assert settings.slow_query_level == logging.ERROR
        assert settings.default_level == 15
        assert settings.error_field == "err"
        assert settings.context_keys == {"request_id": "rid"}

    def test_reads_dotenv(self, tmp_path):
        (tmp_path / ".env").write_text("QUERYLOG_IGNORE_TRACE=1\n")

        assert QueryLogSettings().ignore_trace is True

    def test_negative_threshold_rejected(self, monkeypatch):
        monkeypatch.setenv("QUERYLOG_SLOW_THRESHOLD_MS", "-1")

        with pytest.raises(ValidationError):
            QueryLogSettings()

    def test_bad_level_rejected(self):
        with pytest.raises(ValidationError):
            QueryLogSettings(error_level="loud")


class TestOptions:
    def test_default_settings_match_default_config(self):
        config = build_config(*QueryLogSettings().options())

        assert config == build_config()

    def test_options_translate_every_field(self):
        settings = QueryLogSettings(
            trace_all=True,
            ignore_trace=True,
            ignore_record_not_found=False,
            slow_threshold_ms=100,
            error_field="err",
            source_field="src",
            context_keys={"request_id": "rid"},
            error_level=42,
            slow_query_level=32,
            default_level=22,
        )
        config = build_config(*settings.options())

        assert config.trace_all is True
        assert config.ignore_trace is True
        assert config.ignore_record_not_found is False
        assert config.slow_threshold == timedelta(milliseconds=100)
        assert config.error_field == "err"
        assert config.source_field == "src"
        assert config.extractors == (ContextValue("request_id", "rid"),)
        assert config.level_for(LogType.ERROR) == 42
        assert config.level_for(LogType.SLOW_QUERY) == 32
        assert config.level_for(LogType.DEFAULT) == 22


class TestFromEnv:
    def test_builds_logger_with_extra_options(self, monkeypatch):
        monkeypatch.setenv("QUERYLOG_TRACE_ALL", "true")
        monkeypatch.setenv("QUERYLOG_CONTEXT_KEYS", '{"request_id": "rid"}')
        sink = CaptureSink()

        qlog = from_env(with_sink(sink))
        qlog.trace({"rid": "abc"}, time.perf_counter(), lambda: ("SELECT 1", 1))

        assert sink.last.message.startswith("SQL query executed [")
        assert sink.last.get("request_id") == "abc"

    def test_explicit_settings(self):
        sink = CaptureSink()
        qlog = from_env(with_sink(sink), settings=QueryLogSettings(ignore_trace=True))

        qlog.trace({}, time.perf_counter() - 10, lambda: ("SELECT 1", 1), RuntimeError("x"))

        assert sink.records == []

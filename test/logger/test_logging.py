"""Tests for the structured logger.

Covers the session logger interface, JSON and text rendering, redaction of
secret-looking fields and truncation of oversized values.
"""

import json
import logging

from chainload.logger import ConsoleLogger, StructuredLogger, build_session_logger, session_logger


def _first_json_line(output: str) -> dict:
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        return json.loads(line)
    raise AssertionError("No JSON log line found")


class TestSessionLogger:
    """Tests for session logger functionality."""

    def test_logger_has_level_methods(self):
        for name in ("debug", "info", "warning", "error"):
            assert callable(getattr(session_logger, name))

    def test_build_session_logger_json(self, monkeypatch, capsys):
        monkeypatch.setenv("CHAINLOAD_LOG_JSON", "true")
        monkeypatch.setenv("CHAINLOAD_LOG_LEVEL", "debug")

        logger = build_session_logger()
        logger.debug("bench.sample", event="bench.sample", n=1)

        captured = capsys.readouterr()
        data = _first_json_line(captured.err)
        assert data["message"] == "bench.sample"
        assert data["level"] == "DEBUG"
        assert data["n"] == 1

        # Restore the default text handler for other tests.
        monkeypatch.delenv("CHAINLOAD_LOG_JSON")
        monkeypatch.delenv("CHAINLOAD_LOG_LEVEL")
        build_session_logger()


class TestStructuredLogger:
    def test_json_format_fields(self, capsys):
        logger = StructuredLogger(name="test-json-fields", json_format=True)

        logger.info("bench.run_start", event="bench.run_start", concurrency_limit=8)

        data = _first_json_line(capsys.readouterr().out)
        assert data["message"] == "bench.run_start"
        assert data["event"] == "bench.run_start"
        assert data["concurrency_limit"] == 8
        assert data["logger"] == "test-json-fields"
        assert "timestamp" in data

    def test_text_format_omits_event_field(self, capsys):
        logger = StructuredLogger(name="test-text-fields")

        logger.warning("bench.task_retry", event="bench.task_retry", attempt=2)

        line = capsys.readouterr().out.strip()
        assert "WARNING bench.task_retry" in line
        assert "attempt=2" in line
        assert "event=" not in line

    def test_level_filtering(self, capsys):
        logger = StructuredLogger(name="test-level-filter", level=logging.WARNING)

        logger.info("hidden")
        logger.error("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_redacts_secret_fields(self, capsys):
        logger = StructuredLogger(name="test-redact", json_format=True)

        logger.info("payload", private_key="0xdeadbeef", auth_token="abc", api_key="k", password="p")

        data = _first_json_line(capsys.readouterr().out)
        for key in ("private_key", "auth_token", "api_key", "password"):
            assert data[key] == "[REDACTED]"

    def test_truncates_oversized_text(self, capsys):
        logger = StructuredLogger(name="test-truncate", json_format=True)

        huge = "x" * 5000
        logger.info("large", body=huge)

        data = _first_json_line(capsys.readouterr().out)
        assert len(data["body"]) < len(huge)
        assert data["body"].endswith("...[truncated]")

    def test_recreating_does_not_duplicate_output(self, capsys):
        StructuredLogger(name="test-dedupe")
        logger = StructuredLogger(name="test-dedupe")

        logger.info("once")

        assert capsys.readouterr().out.count("once") == 1


class TestConsoleLogger:
    def test_writes_to_stderr(self, capsys):
        logger = ConsoleLogger(name="test-console")

        logger.error("bench.fatal", error_code="CONFIGURATION")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "bench.fatal" in captured.err
        assert "error_code=CONFIGURATION" in captured.err

"""Tests for rolegraph.logging module."""

from __future__ import annotations

import json
import logging
import os
from unittest.mock import patch

import pytest

from rolegraph import (
    LogLevel,
    RoleGraphConfig,
    RoleGraphFormatter,
    get_role_graph_logger,
    safe_preview,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, RoleGraphFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


def _record(msg: str = "Test message") -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestSafePreview:
    """Tests for safe_preview function."""

    def test_none_value(self) -> None:
        assert safe_preview(None) == ""

    def test_string_with_whitespace(self) -> None:
        """Test that whitespace is normalized."""
        assert safe_preview("hello\n\tworld  test") == "hello world test"

    def test_truncation(self) -> None:
        result = safe_preview("a" * 300, limit=100)
        assert len(result) == 100
        assert result.endswith("…")

    def test_role_map(self) -> None:
        """Nested role maps are rendered as sorted JSON."""
        role_map = {"G2": {"G1": {"editor": "admin"}}, "G1": {"G2": {"admin": "editor"}}}
        result = safe_preview(role_map)
        assert json.loads(result) == role_map
        assert result.index('"G1"') < result.index('"G2"')

    def test_sets_and_proxies(self) -> None:
        from types import MappingProxyType

        assert safe_preview({"roles": {"b", "a"}}) == '{"roles": ["a", "b"]}'
        assert safe_preview({"G1": MappingProxyType({"r": "s"})}) == '{"G1": {"r": "s"}}'


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_with_config(self) -> None:
        config = RoleGraphConfig(log_level=LogLevel.DEBUG)
        setup_logging(config=config, json_format=False)
        assert logging.getLogger().level == logging.DEBUG

    @patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=True)
    def test_setup_with_env(self) -> None:
        """Test logging setup loading from environment."""
        setup_logging(json_format=False)
        assert logging.getLogger().level == logging.WARNING

    def test_replaces_handlers(self) -> None:
        config = RoleGraphConfig()
        setup_logging(config=config)
        setup_logging(config=config)
        assert len(logging.getLogger().handlers) == 1

    def test_json_format(self, capsys: pytest.CaptureFixture) -> None:
        """Test JSON format output."""
        setup_logging(config=RoleGraphConfig(log_level=LogLevel.INFO), json_format=True)

        logging.getLogger("test").info("Test message")

        data = json.loads(capsys.readouterr().err.strip())
        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["logger"] == "test"

    def test_json_from_config(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=RoleGraphConfig(log_json=True))
        logging.getLogger("test").info("Test message")
        assert capsys.readouterr().err.strip().startswith("{")

    def test_plain_format(self, capsys: pytest.CaptureFixture) -> None:
        """Test plain text format output."""
        setup_logging(config=RoleGraphConfig(log_level=LogLevel.INFO), json_format=False)

        logging.getLogger("test").info("Test message")

        stderr_output = capsys.readouterr().err.strip()
        assert "INFO" in stderr_output
        assert "Test message" in stderr_output
        assert not stderr_output.startswith("{")


class TestRoleGraphLogger:
    """Tests for the root / principal logger adapter."""

    def test_context_on_record(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_role_graph_logger("test", root_id="G1", principal_id="user:42")
        with caplog.at_level(logging.INFO):
            logger.info("Built role map")
        record = caplog.records[0]
        assert record.root_id == "G1"
        assert record.principal_id == "user:42"

    def test_per_call_override(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_role_graph_logger("test", root_id="G1")
        with caplog.at_level(logging.INFO):
            logger.info("Built role map", root_id="G7")
        assert caplog.records[0].root_id == "G7"

    def test_without_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_role_graph_logger("test")
        with caplog.at_level(logging.INFO):
            logger.info("Test message")
        assert not hasattr(caplog.records[0], "root_id")


class TestRoleGraphFormatter:
    """Tests for RoleGraphFormatter."""

    def test_json_format(self) -> None:
        record = _record()
        record.root_id = "G1"
        record.path_count = 3

        data = json.loads(RoleGraphFormatter(json_format=True).format(record))
        assert data["level"] == "INFO"
        assert data["root_id"] == "G1"
        assert data["path_count"] == "3"
        assert "principal_id" not in data

    def test_plain_format(self) -> None:
        record = _record()
        record.root_id = "G1"
        record.principal_id = "anonymous"

        result = RoleGraphFormatter(json_format=False).format(record)
        assert "INFO" in result
        assert "root_id=G1" in result
        assert "principal_id=anonymous" in result
        assert result.endswith(": Test message")

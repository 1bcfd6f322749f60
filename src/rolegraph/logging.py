"""Centralized logging utilities for rolegraph.

This module provides:
- Logging configuration from RoleGraphConfig
- Length-bounded previews for large values (role maps, path lists)
- Structured logging with root container / principal context
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import LogLevel, RoleGraphConfig

# Record attributes that belong to logging itself, not to ``extra``.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "root_id", "principal_id",
})


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a single-line, length-bounded preview of a value for logging.

    Role maps can hold thousands of entries; never log them in full.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple, set, frozenset)):
        try:
            s = json.dumps(value, default=_json_default, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if hasattr(value, "items"):
        return dict(value.items())
    return str(value)


class RoleGraphFormatter(logging.Formatter):
    """Formatter that includes root/principal context and optional JSON output."""

    def __init__(
        self,
        json_format: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record."""
        root_id = getattr(record, "root_id", None)
        principal_id = getattr(record, "principal_id", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if root_id is not None:
            log_data["root_id"] = str(root_id)
        if principal_id is not None:
            log_data["principal_id"] = str(principal_id)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            log_data["level"],
            log_data["logger"],
        ]
        if root_id is not None:
            parts.append(f"root_id={log_data['root_id']}")
        if principal_id is not None:
            parts.append(f"principal_id={log_data['principal_id']}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class RoleGraphLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds root_id and principal_id to log records.

    Usage:
        logger = get_role_graph_logger(__name__, principal_id="42")
        logger.info("Calculated grants", root_id="g1")
    """

    def __init__(
        self,
        logger: logging.Logger,
        root_id: Optional[str] = None,
        principal_id: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.root_id = root_id
        self.principal_id = principal_id

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        root_id = kwargs.pop("root_id", self.root_id)
        principal_id = kwargs.pop("principal_id", self.principal_id)

        extra = kwargs.get("extra", {})
        if root_id is not None:
            extra["root_id"] = root_id
        if principal_id is not None:
            extra["principal_id"] = principal_id
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[RoleGraphConfig] = None,
    json_format: Optional[bool] = None,
) -> None:
    """Configure the root logger for an application embedding rolegraph.

    Args:
        config: RoleGraphConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
    """
    if config is None:
        from .config import load_config_from_env
        config = load_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)
    use_json = config.log_json if json_format is None else json_format

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(RoleGraphFormatter(json_format=use_json))
    root_logger.addHandler(console_handler)


def get_role_graph_logger(
    name: str,
    root_id: Optional[str] = None,
    principal_id: Optional[str] = None,
) -> RoleGraphLoggerAdapter:
    """Get a logger adapter carrying root container / principal context.

    Args:
        name: Logger name (typically __name__)
        root_id: Optional root container id to include in all logs
        principal_id: Optional principal id to include in all logs
    """
    logger = logging.getLogger(name)
    return RoleGraphLoggerAdapter(logger, root_id=root_id, principal_id=principal_id)


__all__ = [
    "safe_preview",
    "RoleGraphFormatter",
    "RoleGraphLoggerAdapter",
    "setup_logging",
    "get_role_graph_logger",
]

"""Logging utilities for search sources.

Provides structured JSON logging option for production environments and a
context-carrying logger that tags every line with the source it came from.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "PollerLogger",
    "get_poller_logger",
]

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

# Record attributes lifted to the top level of a JSON line
TOP_LEVEL_FIELDS = ("source", "query", "metric_name", "metric_value", "metric_unit")


class JSONFormatter(logging.Formatter):
    """Formatter that outputs log records as JSON.

    Search context and metric fields sit at the top level so that log
    aggregators can filter on them; any other ``extra`` lands under "extra".

    Example output:
        {"timestamp": "2025-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "searchfeed.lib.source", "message": "Emitted 12 records",
         "source": "twitter_search", "query": "warpstreamlabs"}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in TOP_LEVEL_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.pathname:
            log_data["source_location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        extra_attrs = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and k not in TOP_LEVEL_FIELDS
        }
        if extra_attrs:
            log_data["extra"] = extra_attrs

        return json.dumps(log_data, default=str)


class PollerLogger(logging.LoggerAdapter):
    """Logger adapter carrying search-source context.

    Example:
        logger = PollerLogger("searchfeed.lib.source")
        logger.set_context(source="twitter_search", query="warpstreamlabs")
        logger.info("Tick complete")  # Includes context automatically
    """

    def __init__(self, name: str):
        super().__init__(logging.getLogger(name), {})
        self.context: Dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        """Set context fields that will be included in all log messages."""
        self.context.update(kwargs)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.context, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def metric(
        self,
        name: str,
        value: Any,
        unit: Optional[str] = None,
        **tags: Any,
    ) -> None:
        """Log a metric value.

        Args:
            name: Metric name (e.g., "records_received")
            value: Metric value
            unit: Optional unit (e.g., "records", "seconds")
            **tags: Additional tags for the metric
        """
        extra: Dict[str, Any] = {"metric_name": name, "metric_value": value, **tags}
        if unit:
            extra["metric_unit"] = unit
        self.info("METRIC %s=%s", name, value, extra=extra)


def get_poller_logger(name: str) -> PollerLogger:
    return PollerLogger(name)


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure logging for a poller process.

    Log lines go to stderr so that stdout stays free for emitted records.

    Args:
        verbose: Enable debug-level logging
        json_format: Use JSON output format (for log aggregation)
        log_file: Optional file path to write logs to
    """
    level = logging.DEBUG if verbose else logging.INFO

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

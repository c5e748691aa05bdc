"""Unit tests for logging utilities and poller metrics."""

import json
import logging
import sys

import pytest

from searchfeed.lib.logging import (
    JSONFormatter,
    PollerLogger,
    get_poller_logger,
    setup_logging,
)
from searchfeed.lib.metrics import PollerMetrics


def _record(msg="hello %s", args=("world",), **extra):
    record = logging.LogRecord(
        name="searchfeed.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ============================================================================
# JSONFormatter
# ============================================================================


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "searchfeed.test"
        assert data["message"] == "hello world"
        assert data["timestamp"].endswith("Z")
        assert data["source_location"]["line"] == 10
        assert "extra" not in data

    def test_search_context_at_top_level(self):
        record = _record(source="twitter_search", query="warpstreamlabs", tick=3)
        data = json.loads(JSONFormatter().format(record))
        assert data["source"] == "twitter_search"
        assert data["query"] == "warpstreamlabs"
        assert data["extra"] == {"tick": 3}

    def test_metric_fields_at_top_level(self):
        record = _record(metric_name="records_received", metric_value=12, metric_unit="records")
        data = json.loads(JSONFormatter().format(record))
        assert data["metric_name"] == "records_received"
        assert data["metric_value"] == 12
        assert data["metric_unit"] == "records"

    def test_timestamp_from_record(self):
        record = _record()
        record.created = 1705314600.5
        data = json.loads(JSONFormatter().format(record))
        assert data["timestamp"] == "2024-01-15T10:30:00.500Z"

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]


# ============================================================================
# PollerLogger
# ============================================================================


class TestPollerLogger:
    def test_context_attached_to_records(self, caplog):
        log = PollerLogger("searchfeed.test.context")
        log.set_context(source="twitter_search", query="warpstreamlabs")

        with caplog.at_level(logging.INFO, logger="searchfeed.test.context"):
            log.info("Emitted %d records", 2)

        record = caplog.records[-1]
        assert record.getMessage() == "Emitted 2 records"
        assert record.source == "twitter_search"
        assert record.query == "warpstreamlabs"

    def test_call_extra_merged_with_context(self, caplog):
        log = get_poller_logger("searchfeed.test.merge")
        log.set_context(query="q")

        with caplog.at_level(logging.WARNING, logger="searchfeed.test.merge"):
            log.warning("careful", extra={"cursor": "41"})

        record = caplog.records[-1]
        assert record.query == "q"
        assert record.cursor == "41"

    def test_instances_do_not_share_context(self, caplog):
        first = get_poller_logger("searchfeed.test.shared")
        second = get_poller_logger("searchfeed.test.shared")
        first.set_context(query="one")
        second.set_context(query="two")

        with caplog.at_level(logging.INFO, logger="searchfeed.test.shared"):
            first.info("a")

        assert caplog.records[-1].query == "one"

    def test_metric(self, caplog):
        log = PollerLogger("searchfeed.test.metric")
        log.set_context(query="q")

        with caplog.at_level(logging.INFO, logger="searchfeed.test.metric"):
            log.metric("records_received", 12, unit="records", tick=3)

        record = caplog.records[-1]
        assert record.getMessage() == "METRIC records_received=12"
        assert record.metric_name == "records_received"
        assert record.metric_value == 12
        assert record.metric_unit == "records"
        assert record.tick == 3
        assert record.query == "q"


# ============================================================================
# setup_logging
# ============================================================================


class TestSetupLogging:
    def test_default_level_and_format(self, restore_root_logger):
        setup_logging()
        root = restore_root_logger
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_verbose_json(self, restore_root_logger):
        setup_logging(verbose=True, json_format=True)
        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_log_file(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "poller.log"
        setup_logging(log_file=str(log_file))
        logging.getLogger("searchfeed.test.file").info("to file")

        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "to file" in log_file.read_text()

    def test_quiets_http_loggers(self, restore_root_logger):
        setup_logging(verbose=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("apscheduler").level == logging.WARNING


# ============================================================================
# PollerMetrics
# ============================================================================


class TestPollerMetrics:
    def test_increment_and_summary(self):
        metrics = PollerMetrics()
        metrics.increment("ticks")
        metrics.increment("records_received", 5)
        metrics.increment("records_received", 2)

        summary = metrics.summary()
        assert summary["ticks"] == 1
        assert summary["records_received"] == 7
        assert summary["errors"] == 0
        assert set(summary) == {
            "ticks",
            "records_received",
            "errors",
            "cursor_resets",
            "cursor_write_failures",
            "cancelled_ticks",
        }

    def test_log_emits_each_counter(self, caplog):
        metrics = PollerMetrics(ticks=4, errors=1)
        log = PollerLogger("searchfeed.test.metrics")

        with caplog.at_level(logging.INFO, logger="searchfeed.test.metrics"):
            metrics.log(log)

        messages = [r.getMessage() for r in caplog.records]
        assert "METRIC ticks=4" in messages
        assert "METRIC errors=1" in messages
        assert len(messages) == 6

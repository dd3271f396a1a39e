"""
Logging configuration tests
"""

import json
import logging

from projectgraph.graph import DependencyScheduler
from projectgraph.logging import (
    JSONFormatter,
    LoggingConfig,
    LogLevel,
    ProjectGraphLogger,
    get_logger,
    init_logging,
)


def make_record(msg="Test message", level=logging.INFO):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestLogLevel:

    def test_to_logging_level(self):
        assert LogLevel.DEBUG.to_logging_level() == logging.DEBUG
        assert LogLevel.INFO.to_logging_level() == logging.INFO
        assert LogLevel.WARNING.to_logging_level() == logging.WARNING
        assert LogLevel.ERROR.to_logging_level() == logging.ERROR
        assert LogLevel.CRITICAL.to_logging_level() == logging.CRITICAL


class TestLoggingConfig:

    def test_default_config(self):
        config = LoggingConfig()
        assert config.level == LogLevel.WARNING
        assert config.console_enabled is True
        assert config.file_enabled is False
        assert config.backup_count == 3


class TestJSONFormatter:

    def test_format_basic_record(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert "timestamp" in data
        assert data["level"] == "INFO"
        assert data["message"] == "Test message"

    def test_graph_fields_included(self):
        record = make_record("Created group")
        record.operation = "create_group"
        record.group_id = 7
        record.node_id = 3

        data = json.loads(JSONFormatter().format(record))
        assert data["operation"] == "create_group"
        assert data["group_id"] == 7
        assert data["node_id"] == 3
        assert "edge_id" not in data


class TestProjectGraphLogger:

    def test_singleton(self):
        assert ProjectGraphLogger() is ProjectGraphLogger()
        assert get_logger() is ProjectGraphLogger()

    def test_file_logging_json(self, temp_dir):
        log_file = temp_dir / "logs" / "graph.log"
        logger = init_logging(level="debug", log_file=log_file, json_format=True, console=False)
        try:
            logger.graph_log("Collapsed group 4", operation="collapse_group", group_id=4)
            for handler in logger.logger.handlers:
                handler.flush()

            line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
            data = json.loads(line)
            assert data["message"] == "Collapsed group 4"
            assert data["operation"] == "collapse_group"
            assert data["group_id"] == 4
        finally:
            init_logging()

    def test_reconfigure_replaces_handlers(self, temp_dir):
        logger = init_logging(log_file=temp_dir / "a.log", console=False)
        try:
            assert len(logger.logger.handlers) == 1
            init_logging(log_file=temp_dir / "b.log", console=False)
            assert len(logger.logger.handlers) == 1
            assert logger.logger.propagate is False
        finally:
            init_logging()

    def test_graph_log_fields(self, log_records):
        logger = get_logger()
        logger.graph_log("quiet", operation="expand_group", group_id=2, level=LogLevel.DEBUG)
        logger.warning("loud", operation="load")

        assert [r.getMessage() for r in log_records] == ["quiet", "loud"]
        assert log_records[0].operation == "expand_group"
        assert log_records[0].group_id == 2
        assert not hasattr(log_records[0], "node_id")
        assert log_records[1].levelname == "WARNING"

    def test_dependency_logs_carry_edge_id(self, graph, chain, log_records):
        outcome = DependencyScheduler(graph).add_dependency(chain[0].id, chain[1].id)
        record = next(r for r in log_records if getattr(r, "operation", None) == "add_dependency")
        assert record.edge_id == outcome.edge_id

"""
Logging for the graph engine

Records go to a rich console on stderr and, optionally, to a rotating
log file. Graph operations attach ``operation``/``node_id``/``group_id``/
``edge_id`` fields, which the JSON formatter writes out as keys.
"""

import json
import logging
import logging.handlers
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

from rich.console import Console
from rich.logging import RichHandler


_console: Optional[Console] = None

GRAPH_FIELDS = ("operation", "node_id", "group_id", "edge_id")
DEFAULT_LOG_FILE = ".projectgraph/projectgraph.log"


def get_console() -> Console:
    """Shared rich console for logging and CLI output."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


class LogLevel(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        return getattr(logging, self.name)


@dataclass
class LoggingConfig:
    level: LogLevel = LogLevel.WARNING
    console_enabled: bool = True
    file_enabled: bool = False
    file_path: str = DEFAULT_LOG_FILE
    max_size_mb: int = 10
    backup_count: int = 3
    json_format: bool = False


class JSONFormatter(logging.Formatter):
    """One JSON object per record, graph fields included when set"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        for name in GRAPH_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class ProjectGraphLogger:
    """Process-wide logger for the graph engine"""

    _instance: Optional["ProjectGraphLogger"] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls) -> "ProjectGraphLogger":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._logger is None:
            self._logger = logging.getLogger("projectgraph")
            self._config: Optional[LoggingConfig] = None

    def configure(self, config: Optional[LoggingConfig] = None) -> None:
        self._config = config or LoggingConfig()
        level = self._config.level.to_logging_level()

        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()
        self._logger.setLevel(level)
        self._logger.propagate = False

        handlers = []
        if self._config.console_enabled:
            handlers.append(self._console_handler())
        if self._config.file_enabled:
            handlers.append(self._file_handler())
        for handler in handlers:
            handler.setLevel(level)
            self._logger.addHandler(handler)

    def _console_handler(self) -> logging.Handler:
        if self._config.json_format:
            handler: logging.Handler = logging.StreamHandler(get_console().file)
            handler.setFormatter(JSONFormatter())
            return handler
        handler = RichHandler(console=get_console(), show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    def _file_handler(self) -> logging.Handler:
        log_path = Path(self._config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=self._config.max_size_mb * 1024 * 1024,
            backupCount=self._config.backup_count,
            encoding="utf-8",
        )
        if self._config.json_format:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        return handler

    @property
    def logger(self) -> logging.Logger:
        if self._config is None:
            self.configure()
        return self._logger

    def debug(self, message: str, **fields) -> None:
        self.logger.debug(message, extra=fields)

    def warning(self, message: str, **fields) -> None:
        self.logger.warning(message, extra=fields)

    def error(self, message: str, **fields) -> None:
        self.logger.error(message, extra=fields)

    def graph_log(
        self,
        message: str,
        operation: str,
        node_id: Optional[int] = None,
        group_id: Optional[int] = None,
        edge_id: Optional[int] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        """
        Log a graph operation with structured fields.

        Args:
            message: log message
            operation: operation name, e.g. ``create_group``
            node_id: node the operation targets
            group_id: group the operation targets
            edge_id: dependency edge the operation targets
            level: log level
        """
        extra: Dict[str, Any] = {"operation": operation}
        for name, value in (("node_id", node_id), ("group_id", group_id), ("edge_id", edge_id)):
            if value is not None:
                extra[name] = value

        self.logger.log(level.to_logging_level(), message, extra=extra)


def get_logger() -> ProjectGraphLogger:
    return ProjectGraphLogger()


def init_logging(
    level: str = "warning",
    log_file: Optional[Path] = None,
    json_format: bool = False,
    console: bool = True,
) -> ProjectGraphLogger:
    """
    Configure the process-wide logger.

    Args:
        level: debug, info, warning, error or critical
        log_file: rotating log file, none when omitted
        json_format: emit JSON records instead of rich/plain text
        console: log to stderr

    Returns:
        The configured logger
    """
    config = LoggingConfig(
        level=LogLevel(level.lower()),
        console_enabled=console,
        file_enabled=log_file is not None,
        file_path=str(log_file) if log_file else DEFAULT_LOG_FILE,
        json_format=json_format,
    )
    logger = get_logger()
    logger.configure(config)
    return logger


log = get_logger()

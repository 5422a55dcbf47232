"""
Logger Service Module
Root logger configuration: colored console, rotating files, JSON records.

Handlers run behind a QueueHandler/QueueListener pair, so a log call from
the engine only enqueues the record and never waits on console or disk.
Structured fields passed with extra={...} are kept by JsonFormatter.
"""

import json
import logging
import queue
import sys
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from typing import Any

import colorlog

# LogRecord attributes that are not user supplied extras
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class LoggerService:
    """
    Owns the root logger handlers for the process.

    Config keys: log_dir, log_level, console_level, file_level, max_bytes,
    backup_count, format, date_format, colored_output, json_logs, file_logs
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = self._default_config()
        self.config.update(config or {})
        self.log_dir = Path(self.config["log_dir"])
        self._queue: queue.Queue = queue.Queue(-1)
        self._handlers: list[logging.Handler] = []
        self._listener: QueueListener | None = None

        self._setup_root_logger()

    @staticmethod
    def _default_config() -> dict[str, Any]:
        return {
            "log_dir": "./logs",
            "log_level": "INFO",
            "console_level": "INFO",
            "file_level": "DEBUG",
            "max_bytes": 5 * 1024 * 1024,  # 5MB
            "backup_count": 3,
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "date_format": "%Y-%m-%d %H:%M:%S",
            "colored_output": True,
            "json_logs": False,
            "file_logs": True,
        }

    def _setup_root_logger(self):
        root_logger = logging.getLogger()
        root_logger.setLevel(self._level(self.config["log_level"]))
        root_logger.handlers = [QueueHandler(self._queue)]

        self._handlers.append(self._create_console_handler())
        if self.config.get("file_logs"):
            try:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                self._handlers.append(self._create_file_handler("monitor.log"))
                self._handlers.append(self._create_file_handler("errors.log", logging.ERROR))
            except OSError as e:
                # Read-only filesystems still get console output
                logging.getLogger(__name__).warning(f"File logging disabled: {e}")

        self._listener = QueueListener(self._queue, *self._handlers, respect_handler_level=True)
        self._listener.start()

    @staticmethod
    def _level(name: str) -> int:
        return getattr(logging, str(name).upper(), logging.INFO)

    def _create_console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self._level(self.config["console_level"]))

        if self.config.get("json_logs"):
            handler.setFormatter(JsonFormatter())
        elif self.config.get("colored_output"):
            handler.setFormatter(
                colorlog.ColoredFormatter(
                    "%(log_color)s" + self.config["format"],
                    datefmt=self.config["date_format"],
                    log_colors={
                        "DEBUG": "cyan",
                        "INFO": "green",
                        "WARNING": "yellow",
                        "ERROR": "red",
                        "CRITICAL": "red,bg_white",
                    },
                )
            )
        else:
            handler.setFormatter(
                logging.Formatter(self.config["format"], datefmt=self.config["date_format"])
            )
        return handler

    def _create_file_handler(self, filename: str, level: int | None = None) -> logging.Handler:
        handler = RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=self.config["max_bytes"],
            backupCount=self.config["backup_count"],
        )
        handler.setLevel(level or self._level(self.config["file_level"]))
        if self.config.get("json_logs"):
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(
                logging.Formatter(self.config["format"], datefmt=self.config["date_format"])
            )
        return handler

    def set_level(self, level: str, logger_name: str | None = None):
        logging.getLogger(logger_name).setLevel(self._level(level))

    def cleanup(self):
        """Flush queued records and close handlers"""
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        for handler in self._handlers:
            handler.close()
        self._handlers.clear()
        logging.getLogger().handlers = []


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


# Global logger service instance
_logger_service: LoggerService | None = None


def setup_logging(config: dict | None = None) -> logging.Logger:
    """
    Configure process logging once and return the root logger.

    Later calls are no-ops until cleanup_logging() runs.
    """
    global _logger_service

    if _logger_service is None:
        _logger_service = LoggerService(config)

    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    if _logger_service is None:
        setup_logging()
    return logging.getLogger(name)


def cleanup_logging():
    global _logger_service

    if _logger_service:
        _logger_service.cleanup()
        _logger_service = None

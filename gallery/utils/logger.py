"""
Logger configuration for the client gallery service.

Configures the root logger once (console and optional rotating files, plain
or JSON) and hands out named loggers. Nothing is configured at import time;
the app factory calls ``setup_logging`` with values from the settings.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName', 'created', 'msecs',
    'relativeCreated', 'thread', 'threadName', 'processName', 'process', 'taskName',
    'message', 'asctime',
}


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # copy so file handlers sharing the record keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # extra= fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class LoggerConfig:
    """Centralized logger configuration."""

    def __init__(self):
        self.config = {
            'level': logging.INFO,
            'console': True,
            'file': False,
            'json_format': False,
            'log_dir': Path("logs"),
            'max_file_size': 10 * 1024 * 1024,  # 10MB
            'backup_count': 5,
            'log_file': 'app.log',
            'error_file': 'error.log'
        }

    def configure(self,
                  level: str = 'INFO',
                  console: bool = True,
                  file: bool = False,
                  json_format: bool = False,
                  log_dir: Optional[Path] = None,
                  max_file_size: int = 10 * 1024 * 1024,
                  backup_count: int = 5) -> None:
        """
        Configure the logging system.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            console: Enable console logging
            file: Enable rotating file logging (app.log plus an ERROR-only error.log)
            json_format: Use JSON format for structured logging
            log_dir: Directory for the log files
            max_file_size: Maximum file size before rotation
            backup_count: Number of backup files to keep
        """
        self.config.update({
            'level': getattr(logging, level.upper()),
            'console': console,
            'file': file,
            'json_format': json_format,
            'log_dir': Path(log_dir) if log_dir else self.config['log_dir'],
            'max_file_size': max_file_size,
            'backup_count': backup_count
        })

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(self.config['level'])

        plain_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        if self.config['console']:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.config['level'])
            if self.config['json_format']:
                console_handler.setFormatter(JSONFormatter())
            else:
                console_handler.setFormatter(ColoredFormatter(plain_format, datefmt='%Y-%m-%d %H:%M:%S'))
            root_logger.addHandler(console_handler)

        if self.config['file']:
            log_dir = self.config['log_dir']
            log_dir.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / self.config['log_file'],
                maxBytes=self.config['max_file_size'],
                backupCount=self.config['backup_count']
            )
            file_handler.setLevel(self.config['level'])

            error_handler = logging.handlers.RotatingFileHandler(
                log_dir / self.config['error_file'],
                maxBytes=self.config['max_file_size'],
                backupCount=self.config['backup_count']
            )
            error_handler.setLevel(logging.ERROR)

            if self.config['json_format']:
                file_handler.setFormatter(JSONFormatter())
                error_handler.setFormatter(JSONFormatter())
            else:
                file_handler.setFormatter(logging.Formatter(plain_format, datefmt='%Y-%m-%d %H:%M:%S'))
                error_handler.setFormatter(logging.Formatter(
                    plain_format + '\n%(pathname)s:%(lineno)d',
                    datefmt='%Y-%m-%d %H:%M:%S'
                ))

            root_logger.addHandler(file_handler)
            root_logger.addHandler(error_handler)


logger_config = LoggerConfig()


def setup_logging(level: str = 'INFO',
                  console: bool = True,
                  file: bool = False,
                  json_format: bool = False,
                  **kwargs) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console: Enable console logging
        file: Enable file logging
        json_format: Use JSON format for structured logging
        **kwargs: Additional configuration options
    """
    logger_config.configure(
        level=level,
        console=console,
        file=file,
        json_format=json_format,
        **kwargs
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_database_operation(logger: logging.Logger, operation: str, table: str,
                           record_id: str = None, **extra):
    """Log database operations."""
    message = f"DB {operation} on {table}"
    if record_id:
        message += f" (ID: {record_id})"
    logger.debug(message, extra=extra)


def log_storage_operation(logger: logging.Logger, operation: str, backend: str,
                          ref: str, **extra):
    """Log blob store operations."""
    logger.debug(f"Storage {operation} on {backend}: {ref}", extra=extra)

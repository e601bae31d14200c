"""
Logging configuration for fswatcher
"""
import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
import json


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        if record.thread:
            log_record['thread'] = record.threadName

        return json.dumps(log_record, default=str)


class ColorFormatter(logging.Formatter):
    """Color formatter for console output"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[41m',   # Red background
        'RESET': '\033[0m',
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        formatted = super().format(record)
        if levelname in self.COLORS:
            colored = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            formatted = formatted.replace(levelname, colored, 1)
        return formatted


TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _make_formatter(log_format: str) -> logging.Formatter:
    log_format = log_format.lower()
    if log_format == "json":
        return JsonFormatter()
    if log_format == "color":
        return ColorFormatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = "text",  # text, json, or color
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Setup logging configuration

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (if None, only console logging)
        log_format: Format of logs (text, json, or color)
        max_file_size: Maximum size of log file before rotation
        backup_count: Number of backup files to keep
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_make_formatter(log_format))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_path,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        # No ANSI colors in files
        file_format = "json" if log_format.lower() == "json" else "text"
        file_handler.setFormatter(_make_formatter(file_format))
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to file: {log_path}")

    # watchdog logs every emitter start/stop at DEBUG
    logging.getLogger('watchdog').setLevel(logging.WARNING)

    root_logger.info(f"Logging configured. Level: {log_level}, Format: {log_format}")

    return root_logger


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a named logger

    Args:
        name: Logger name (usually __name__)
    """
    return logging.getLogger(name)

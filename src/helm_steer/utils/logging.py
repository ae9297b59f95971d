"""Logging setup: stderr console lines and an optional JSON-lines file."""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Record attributes set by LogContext
CONTEXT_FIELDS = ('release', 'operation')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, context fields included."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


class ConsoleFormatter(logging.Formatter):
    """`HH:MM:SS LEVEL [release] message`, level colored on a terminal."""

    LEVEL_COLORS = {
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[31m',
    }

    def __init__(self, use_color: bool = True):
        super().__init__('%(asctime)s %(levelname)-8s %(scope)s%(message)s', datefmt='%H:%M:%S')
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        record.scope = f"[{record.release}] " if hasattr(record, 'release') else ''
        line = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelname) if self.use_color else None
        return f"{color}{line}\033[0m" if color else line


def setup_logging(log_level: str = 'info', log_dir: Optional[str] = None) -> None:
    """Configure the root logger.

    Args:
        log_level: Console level (debug, info, warning, error)
        log_dir: Optional directory receiving a daily JSON-lines file at debug level
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    # stderr keeps stdout clean for `diff --json-output`
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        log_file = path / f"helm-steer-{datetime.now(timezone.utc).strftime('%Y%m%d')}.jsonl"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Attach release and operation fields to every record created inside the block."""

    def __init__(self, **fields: Any):
        self.fields = fields
        self.old_factory = None

    def __enter__(self):
        old_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            for key, value in self.fields.items():
                setattr(record, key, value)
            return record

        self.old_factory = old_factory
        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self.old_factory)

"""
Centralized logging configuration for the quickconvert service.

Every module asks for its logger through ``get_logger()``; the root logger is
configured once, from the environment:

- ``LOG_LEVEL`` (or ``LOGLEVEL``): DEBUG, INFO, WARNING, ERROR, CRITICAL
- ``LOG_FORMAT``: ``standard``, ``dev`` or ``json``
- ``LOG_TO_FILE`` / ``LOG_FILE``: also write to a rotating file
"""

import asyncio
import functools
import logging
import logging.handlers
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Dict, Optional, Union


FORMATS: Dict[str, str] = {
    'standard': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'dev': '%(asctime)s [%(levelname)8s] %(name)s:%(lineno)d - %(message)s',
    'json': '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
}

DEFAULT_LOG_FILE = Path(tempfile.gettempdir()) / "quickconvert" / "logs" / "quickconvert.log"

# Libraries that are chatty at INFO/DEBUG about things users cannot act on
NOISY_LOGGERS: Dict[str, int] = {
    'pypdf': logging.ERROR,
    'PIL': logging.WARNING,
    'multipart': logging.WARNING,
    'python_multipart': logging.WARNING,
    'pytesseract': logging.WARNING,
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def parse_level(value: Union[str, int, None], default: int = logging.INFO) -> int:
    """Turn a level name or number into a logging level."""
    if value is None or value == '':
        return default
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name == 'WARN':
        name = 'WARNING'
    elif name == 'FATAL':
        name = 'CRITICAL'
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def _running_under_pytest() -> bool:
    return 'pytest' in sys.modules or 'PYTEST_CURRENT_TEST' in os.environ


class LogSettings:
    """Logging options read from the environment."""

    def __init__(self):
        # Tests stay quiet unless a level is asked for
        default_level = logging.WARNING if _running_under_pytest() else logging.INFO
        self.level = parse_level(os.getenv('LOG_LEVEL', os.getenv('LOGLEVEL')), default_level)

        format_name = os.getenv('LOG_FORMAT', 'standard').lower()
        if format_name == 'development':
            format_name = 'dev'
        self.format = FORMATS.get(format_name, FORMATS['standard'])

        self.to_file = os.getenv('LOG_TO_FILE', 'false').lower() in ('true', '1', 'yes')
        log_file = os.getenv('LOG_FILE')
        self.file = Path(log_file) if log_file else DEFAULT_LOG_FILE


class LoggerFactory:
    """Configures the root logger once and hands out module loggers."""

    _configured = False

    @classmethod
    def configure_logging(cls, level: Optional[int] = None,
                          format_str: Optional[str] = None,
                          log_to_file: bool = False,
                          log_file: Optional[Union[str, Path]] = None,
                          force: bool = False) -> None:
        if cls._configured and not force:
            return

        env = LogSettings()
        log_level = level or env.level
        formatter = logging.Formatter(format_str or env.format)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

        if log_to_file or env.to_file:
            path = Path(log_file) if log_file else env.file
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        for name, noisy_level in NOISY_LOGGERS.items():
            logging.getLogger(name).setLevel(max(noisy_level, log_level))

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        cls.configure_logging()
        return logging.getLogger(name)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger for ``name``, or for the calling module when omitted.

    Usage:
        logger = get_logger()
    """
    if name is None:
        name = sys._getframe(1).f_globals.get('__name__', 'quickconvert')
    return LoggerFactory.get_logger(name)


def setup_logging(level: Optional[Union[str, int]] = None,
                  format_type: Optional[str] = None,
                  log_to_file: bool = False,
                  log_file: Optional[Union[str, Path]] = None) -> None:
    """Re-apply logging configuration, e.g. from the server entry point."""
    LoggerFactory.configure_logging(
        level=parse_level(level) if level is not None else None,
        format_str=FORMATS.get(format_type) if format_type else None,
        log_to_file=log_to_file,
        log_file=log_file,
        force=True
    )


def log_performance(logger: logging.Logger, level: int = logging.INFO):
    """Log how long a function or coroutine takes, and whether it failed."""
    def decorator(func):
        name = getattr(func, '__qualname__', func.__name__)

        def report(start: float, error: Optional[Exception] = None):
            elapsed = time.perf_counter() - start
            if error is None:
                logger.log(level, f"Completed {name} in {elapsed:.3f}s")
            else:
                logger.log(level, f"Failed {name} after {elapsed:.3f}s: {error}")

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    report(start, e)
                    raise
                report(start)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                report(start, e)
                raise
            report(start)
            return result
        return wrapper
    return decorator


LoggerFactory.configure_logging()

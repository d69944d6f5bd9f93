"""
Logging Configuration

Centralized logging for the harvester: a rotating log file plus console output
on stderr (stdout is left to the host that embeds the harvester). Every record
carries the name of the harvesting operation it was emitted under, so the
interleaved log of concurrent operations stays readable.
"""

import contextvars
import logging
import os
import sys
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

_current_operation: contextvars.ContextVar = contextvars.ContextVar("scholar_operation", default=None)

LOG_FORMAT = '%(asctime)s - [%(operation)s] - %(name)s - %(levelname)s - %(message)s'

_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


@contextmanager
def operation_context(name):
    """Tag log records emitted inside the block with ``name``."""
    token = _current_operation.set(name)
    try:
        yield
    finally:
        _current_operation.reset(token)


def current_operation():
    return _current_operation.get()


class OperationFormatter(logging.Formatter):
    """
    Formatter that includes the current harvesting operation in log messages.
    """

    def format(self, record):
        operation = getattr(record, 'operation', None) or current_operation()
        record.operation = operation or 'no-op'
        return super().format(record)


def setup_logging(log_dir=None, log_level=None):
    """
    Set up logging configuration for the harvester.

    Args:
        log_dir: Directory for the rotating log file. If None, uses LOG_DIR from
            the environment or a 'logs' directory in the project root.
        log_level: Logging level. If None, uses LOG_LEVEL from the environment
            or defaults to INFO.

    Returns:
        Logger: the 'scholar_harvester' package logger
    """
    if log_level is None:
        log_level = _LEVELS.get(os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    if log_dir is None:
        env_log_dir = os.environ.get('LOG_DIR')
        if env_log_dir:
            log_dir = Path(env_log_dir)
        else:
            project_root = Path(os.path.abspath(os.path.join(os.path.dirname(__file__), '../../')))
            log_dir = project_root / 'logs'

    os.makedirs(log_dir, exist_ok=True)

    package_logger = logging.getLogger('scholar_harvester')
    package_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicate logs on repeated setup
    if package_logger.handlers:
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
            handler.close()

    formatter = OperationFormatter(LOG_FORMAT)

    log_file = os.path.join(log_dir, 'scholar_harvester.log')
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding='utf-8',
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    package_logger.addHandler(file_handler)
    package_logger.addHandler(console_handler)
    package_logger.propagate = False

    package_logger.info("Logging initialized. Log file: %s", log_file)
    return package_logger

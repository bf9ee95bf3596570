"""Logging configuration for stagesafe."""

import logging

from .config import SyncConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOGGERS = [
    'stagesafe.config',
    'stagesafe.assignments',
    'stagesafe.git_sync',
]


class StructuredFormatter(logging.Formatter):
    """Prefixes messages with ``[operation]`` when the record carries one."""

    def format(self, record):
        operation = getattr(record, 'operation', None)
        if operation:
            record = logging.makeLogRecord(record.__dict__)
            record.msg = f"[{operation}] {record.msg}"
        return super().format(record)


def setup_logging(config: SyncConfig) -> None:
    """Setup logging with structured output for the package loggers."""
    level = getattr(logging, config.log_level)

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    formatter = StructuredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for logger_name in LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)

        # Add console handler if not already present
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False

    # GitPython logs every command it runs at DEBUG
    logging.getLogger('git').setLevel(max(level, logging.INFO))

"""
Migration logging configuration.

This module sets up the 'dwmigrate' logger hierarchy from the logging
section of the settings and provides an adapter that stamps the dataset
being migrated on every record.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER_NAME = 'dwmigrate'


class SafeFormatter(logging.Formatter):
    """Formatter that provides a default for the dataset context field."""

    def format(self, record):
        if not hasattr(record, 'dataset_context'):
            record.dataset_context = '-'
        return super().format(record)


def setup_migration_logging(settings: Dict[str, Any]) -> logging.Logger:
    """
    Configure the dwmigrate logger.

    The level comes from settings['logging']['level']; a console handler is
    always attached and a file handler is added when settings['logging']['file']
    is set. Existing handlers are replaced so repeated calls do not duplicate
    output.

    Args:
        settings: Settings dictionary with an optional 'logging' section

    Returns:
        Configured 'dwmigrate' logger
    """
    logging_config = settings.get('logging', {}) or {}
    log_level = str(logging_config.get('level', 'INFO')).upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if log_level == 'DEBUG':
        fmt = '%(asctime)s - %(name)s - [%(dataset_context)s] - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    else:
        fmt = '%(asctime)s - [%(dataset_context)s] - %(levelname)s - %(message)s'

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(SafeFormatter(fmt, datefmt='%H:%M:%S'))
    logger.addHandler(console_handler)

    log_file = logging_config.get('file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(SafeFormatter(
            '%(asctime)s.%(msecs)03d - %(name)s - [%(dataset_context)s] - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def get_logger(component: str, dataset_id: Optional[str] = None) -> 'MigrationLoggerAdapter':
    """Return an adapter for the 'dwmigrate.<component>' logger."""
    return MigrationLoggerAdapter(
        logging.getLogger(f'{LOGGER_NAME}.{component}'),
        {'dataset_id': dataset_id}
    )


class MigrationLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds migration context to log messages.

    Records carry a 'dataset_context' attribute so formatters can show which
    dataset a message belongs to when several engines share one process.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        """Add dataset context to log records."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra']['dataset_context'] = self.extra.get('dataset_id') or '-'
        return msg, kwargs

    def query(self, query: str, params: Optional[Dict[str, Any]] = None,
              duration: Optional[float] = None) -> None:
        """Log a bookkeeping statement at DEBUG level."""
        if self.isEnabledFor(logging.DEBUG):
            message = f"Query: {' '.join(query.split())}"
            if params:
                message += f" | Params: {params}"
            if duration is not None:
                message += f" | Duration: {duration:.3f}s"
            self.debug(message)

    def script(self, name: str, direction: str, success: bool,
               duration: Optional[float] = None, error: Optional[str] = None) -> None:
        """Log the outcome of one migration script."""
        if success:
            message = f"Migration {name} {direction} completed"
            if duration is not None:
                message += f" in {duration:.3f}s"
            self.info(message)
        else:
            message = f"Migration {name} {direction} failed"
            if error:
                message += f": {error}"
            self.error(message)

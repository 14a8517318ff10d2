import logging
import os
import re
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ControlCharacterFilter(logging.Filter):
    """Filter that strips control characters from log records.

    Uploaded filenames end up in log lines; a name containing newlines
    must not be able to forge extra log entries.
    """

    PATTERN = re.compile(r'[\x00-\x08\x0a-\x1f\x7f]')

    def filter(self, record: logging.LogRecord) -> bool:
        """Replace control characters in the message and its arguments."""
        if isinstance(record.msg, str):
            record.msg = self._clean(record.msg)

        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._clean(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._clean(arg) for arg in record.args)

        return True

    def _clean(self, value):
        if isinstance(value, str):
            return self.PATTERN.sub('?', value)
        return value


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Handlers are attached to the component logger and to the ``common``
    logger so every module logger obtained through get_logger() inherits
    the same output.

    Args:
        component_name: Name of the component (e.g., 'imagevault')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    level = getattr(logging, log_level, logging.INFO)

    for name in (component_name, 'common'):
        logger = logging.getLogger(name)
        logger.setLevel(level)

        if logger.handlers:
            continue

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        handler.addFilter(ControlCharacterFilter())

        logger.addHandler(handler)
        logger.propagate = False

    return logging.getLogger(component_name)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)

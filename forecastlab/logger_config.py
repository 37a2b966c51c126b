"""
Logging Configuration for the forecastlab package

Centralised logging setup. Library modules only ask for a logger through
get_logger(__name__); the CLI entry point is the single place that calls
configure_logging() and decides on level and log file.
"""

import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path


VALID_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

_logger_instances = {}


def _utc_timestamp(created):
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat(
        timespec='milliseconds'
    ).replace('+00:00', 'Z')


class UTCFormatter(logging.Formatter):
    """Formatter with UTC ISO 8601 timestamps and optional level colors."""

    _COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    _RESET = '\033[0m'

    def __init__(self, use_color=False):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        """
        Format: [TIMESTAMP] [LEVEL] [MODULE] - MESSAGE
        Example: [2026-01-15T18:48:45.262Z] [INFO] [ets_engine] - Selected ETS(A,N,N)
        """
        module_name = record.name.split('.')[-1] if record.name else 'root'
        level = f"[{record.levelname}]"
        if self.use_color and record.levelname in self._COLORS:
            level = f"{self._COLORS[record.levelname]}{level}{self._RESET}"

        message = f"[{_utc_timestamp(record.created)}] {level} [{module_name}] - {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def configure_logging(log_level='INFO', log_file=None):
    """
    Setup centralized logging configuration.

    Installs a colored console handler on the root logger and, when log_file
    is given, a plain UTF-8 file handler as well. Existing root handlers are
    replaced, so calling this twice never duplicates output.

    Args:
        log_level (str): DEBUG, INFO, WARNING, ERROR or CRITICAL. Default: 'INFO'
        log_file (str, optional): Path to a log file. Parent directories are created.

    Returns:
        logging.Logger: Configured root logger instance

    Raises:
        ValueError: If log_level is invalid

    Example:
        >>> logger = configure_logging(log_level='DEBUG', log_file='output/run.log')
        >>> logger.info("System initialized")
    """
    if not isinstance(log_level, str) or log_level.upper() not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log_level '{log_level}'. Must be one of: {', '.join(VALID_LEVELS)}"
        )
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(UTCFormatter(use_color=True))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(UTCFormatter(use_color=False))
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging configured: level={log_level.upper()}, file={log_file}")
    else:
        root_logger.info(f"Logging configured: level={log_level.upper()}, console only")

    return root_logger


def get_logger(module_name):
    """
    Get a module-specific logger.

    Each module calls this at import time:
        logger = get_logger(__name__)

    Loggers propagate to the root logger, so whatever configure_logging()
    installed decides where records end up.

    Args:
        module_name (str): Name of the module (typically __name__)

    Returns:
        logging.Logger: Cached logger instance for the module
    """
    if module_name in _logger_instances:
        return _logger_instances[module_name]

    logger = logging.getLogger(module_name)
    logger.propagate = True

    _logger_instances[module_name] = logger
    return logger


def log_exception(logger, exception):
    """
    Log full exception details including traceback at ERROR level.

    Args:
        logger (logging.Logger): Logger instance to use
        exception (Exception): Exception object to log

    Example:
        >>> try:
        >>>     data = load_data(file_path)
        >>> except Exception as e:
        >>>     log_exception(logger, e)
        >>>     raise
    """
    tb_str = ''.join(
        traceback.format_exception(type(exception), exception, exception.__traceback__)
    )
    logger.error(
        f"Exception occurred: {type(exception).__name__}\n"
        f"Message: {str(exception)}\n"
        f"Traceback:\n{tb_str}"
    )

"""Shared pytest fixtures."""

import logging

import pytest

from forecastlab.logger_config import UTCFormatter


@pytest.fixture(autouse=True)
def remove_configured_handlers():
    """Drop handlers installed by configure_logging() during a test (e.g. via main())."""
    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler.formatter, UTCFormatter):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(logging.WARNING)

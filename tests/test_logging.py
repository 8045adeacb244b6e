"""Tests for logging utilities."""

import logging
from io import StringIO

import pytest

from rcopt.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging(level=logging.WARNING)


def test_get_logger_returns_logger():
    """Test that get_logger returns a logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "rcopt.test_module"


def test_get_logger_keeps_package_prefix():
    logger = get_logger("rcopt.optimize.engine")
    assert logger.name == "rcopt.optimize.engine"
    assert get_logger().name == "rcopt"


def test_get_logger_caching():
    """Test that get_logger caches loggers."""
    logger1 = get_logger("test_module")
    logger2 = get_logger("test_module")
    assert logger1 is logger2


def test_get_logger_different_modules():
    """Test that different modules get different loggers."""
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")
    assert logger1 is not logger2
    assert logger1.name != logger2.name


def test_logger_output():
    """Test that logger outputs messages correctly."""
    captured = StringIO()
    configure_logging(level=logging.INFO, stream=captured)
    logger = get_logger("test_module")
    logger.info("Test message")

    output = captured.getvalue()
    assert "Test message" in output
    assert "[INFO] rcopt.test_module" in output


def test_set_log_level():
    """Test that set_log_level updates logger levels."""
    logger = get_logger("test_module")

    set_log_level(logging.INFO)
    assert logger.level == logging.INFO
    assert all(h.level == logging.INFO for h in logger.handlers)

    set_log_level(logging.WARNING)
    assert logger.level == logging.WARNING


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")

    set_log_level("DEBUG")
    assert logger.level == logging.DEBUG

    set_log_level("error")
    assert logger.level == logging.ERROR


def test_new_loggers_use_current_default_level():
    set_log_level("INFO")
    logger = get_logger("created_after_set_level")
    assert logger.level == logging.INFO


def test_configure_logging():
    """Test configure_logging function."""
    stream = StringIO()
    configure_logging(level=logging.DEBUG, stream=stream, format_string="%(message)s!")

    logger = get_logger("test_module")
    logger.debug("Debug message")

    assert stream.getvalue() == "Debug message!\n"


def test_logger_does_not_propagate():
    """Test that loggers don't propagate to root logger."""
    logger = get_logger("test_module")
    assert logger.propagate is False


def test_optimizer_modules_use_package_loggers():
    from rcopt.optimize import engine, solver

    assert engine.logger.name == "rcopt.optimize.engine"
    assert solver.logger.name == "rcopt.optimize.solver"

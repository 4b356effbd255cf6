"""Tests for logging utilities."""

import logging
from io import StringIO

import numpy as np

from itermin import conjugate_gradient, debug_context
from itermin.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)


def test_get_logger_returns_logger():
    """Test that get_logger returns a logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name.startswith("itermin.")


def test_get_logger_keeps_package_names():
    """Loggers obtained with a module's __name__ are not prefixed twice."""
    assert get_logger("itermin.linear").name == "itermin.linear"
    assert get_logger().name == "itermin"


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
    try:
        configure_logging(level=logging.INFO, stream=captured)
        logger = get_logger("test_module")
        logger.info("Test message")

        output = captured.getvalue()
        assert "Test message" in output
        assert "[INFO] itermin.test_module" in output
    finally:
        configure_logging(level=logging.WARNING)


def test_set_log_level():
    """Test that set_log_level updates logger levels."""
    logger = get_logger("test_module")

    set_log_level(logging.INFO)
    assert logger.level <= logging.INFO

    set_log_level(logging.WARNING)
    assert logger.level <= logging.WARNING


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")

    try:
        set_log_level("DEBUG")
        assert logger.level == logging.DEBUG

        set_log_level("ERROR")
        assert logger.level == logging.ERROR
    finally:
        set_log_level(logging.WARNING)


def test_configure_logging():
    """Test configure_logging function."""
    stream = StringIO()
    try:
        configure_logging(level=logging.DEBUG, stream=stream)

        logger = get_logger("test_module")
        logger.debug("Debug message")

        assert "Debug message" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_logger_does_not_propagate():
    """Test that loggers don't propagate to root logger."""
    logger = get_logger("test_module")
    assert logger.propagate is False


def test_solver_traces_iterations_in_debug_mode():
    """Per-iteration lines appear only while debug mode is on."""
    A = np.diag([1.0, 2.0, 3.0])
    b = np.ones(3)
    stream = StringIO()
    try:
        configure_logging(level=logging.DEBUG, stream=stream)
        conjugate_gradient(A, b)
        quiet = stream.getvalue()
        assert "finished" in quiet
        assert "iteration 1" not in quiet

        with debug_context(True):
            conjugate_gradient(A, b)
        assert "ConjugateGradientSolver iteration 1" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)

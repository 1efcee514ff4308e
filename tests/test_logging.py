"""Tests for logging utilities."""

import logging
from io import StringIO

from critpoint.logging import configure_logging, get_logger, set_log_level


def test_get_logger_returns_namespaced_logger():
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "critpoint.test_module"


def test_get_logger_keeps_package_names():
    logger = get_logger("critpoint.refinement.refiner")
    assert logger.name == "critpoint.refinement.refiner"
    assert get_logger().name == "critpoint"


def test_get_logger_caching():
    assert get_logger("test_module") is get_logger("test_module")


def test_get_logger_different_modules():
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")
    assert logger1 is not logger2
    assert logger1.name != logger2.name


def test_configure_logging_redirects_stream():
    stream = StringIO()
    try:
        configure_logging(level=logging.INFO, stream=stream)
        get_logger("test_module").info("Refining 3 candidates")
        output = stream.getvalue()
        assert "Refining 3 candidates" in output
        assert "[INFO] critpoint.test_module" in output
    finally:
        configure_logging(level=logging.WARNING)


def test_configure_logging_custom_format():
    stream = StringIO()
    try:
        configure_logging(level="DEBUG", format_string="%(levelname)s|%(message)s", stream=stream)
        get_logger("test_module").debug("detail")
        assert "DEBUG|detail" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_set_log_level_string_and_int():
    logger = get_logger("test_module")
    try:
        set_log_level("DEBUG")
        assert logger.level == logging.DEBUG
        set_log_level(logging.ERROR)
        assert logger.level == logging.ERROR
        assert all(handler.level == logging.ERROR for handler in logger.handlers)
    finally:
        set_log_level(logging.WARNING)


def test_logger_does_not_propagate():
    assert get_logger("test_module").propagate is False

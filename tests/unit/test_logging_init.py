from __future__ import annotations

import logging

from vet_import.logging.init import (
    HTTP_LOGGER_NAMES,
    LOGGER_NAME,
    SUMMARY_LEVEL,
    enable_debug,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    """setup_logging configures one stdout handler on the package logger."""
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert len(second.handlers) == 1
    assert get_logger() is first


def test_labeled_prefixes(capsys):
    """Module loggers share the package handler and its INFO|WARN|ERROR|SUMMARY labels."""
    setup_logging()
    module_logger = logging.getLogger("vet_import.services.orchestrator")
    module_logger.info("info message")
    module_logger.warning("warning message")
    module_logger.error("error message")
    module_logger.debug("hidden debug")
    log_summary("records=1")

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "INFO info message",
        "WARN warning message",
        "ERROR error message",
        "SUMMARY records=1",
    ]


def test_enable_debug_shows_debug_lines(capsys):
    enable_debug()
    logging.getLogger("vet_import.api.client").debug("page fetched")
    out = capsys.readouterr().out
    assert "DEBUG verbose mode enabled" in out
    assert "DEBUG page fetched" in out


def test_enable_debug_routes_http_client_logs(capsys):
    enable_debug()
    logging.getLogger(HTTP_LOGGER_NAMES[0]).info("HTTP Request: POST https://api.example.test/graphql")
    assert "INFO HTTP Request: POST" in capsys.readouterr().out


def test_http_client_logs_stay_quiet_without_verbose(capsys):
    setup_logging()
    logging.getLogger(HTTP_LOGGER_NAMES[0]).info("HTTP Request: POST")
    assert capsys.readouterr().out == ""


def test_reset_logging_restores_propagation():
    setup_logging()
    reset_logging()
    logger = logging.getLogger(LOGGER_NAME)
    assert logger.handlers == []
    assert logger.propagate is True
    assert logging.getLogger(HTTP_LOGGER_NAMES[0]).handlers == []
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"

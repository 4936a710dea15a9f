"""
Tests for cachebench.cb_logging module.

Tests cover:
- Custom log levels registered on CBLogger
- setup_logging handler configuration
- apply_logging_options (--verbose, --debug, --stream-log-level)
- Run log file handler
"""

import argparse
import logging

import pytest

from cachebench.cb_logging import (
    CBLogger,
    ColoredDebugFormatter,
    ColoredStandardFormatter,
    LOG_FILENAME,
    DEBUG,
    RESULT,
    STATUS,
    VERBOSE,
    add_run_log,
    apply_logging_options,
    remove_run_log,
    setup_logging,
)


def stream_handler(logger):
    return logger.handlers[0]


class TestCustomLevels:

    @pytest.mark.parametrize("name,level", [
        ('RESULT', RESULT),
        ('STATUS', STATUS),
        ('VERBOSE', VERBOSE),
    ])
    def test_level_names_registered(self, name, level):
        assert logging.getLevelName(level) == name

    def test_logger_has_level_methods(self):
        for method in ('result', 'status', 'verbose', 'verboser', 'ridiculous'):
            assert callable(getattr(CBLogger, method))

    def test_status_message_is_emitted(self):
        logger = CBLogger("cachebench.test.levels")
        logger.setLevel(logging.DEBUG)
        records = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger.addHandler(ListHandler())
        logger.status("phase started")
        logger.verbose("details %s", 1)
        assert [(r.levelname, r.getMessage()) for r in records] == [
            ('STATUS', 'phase started'),
            ('VERBOSE', 'details 1'),
        ]


class TestSetupLogging:

    def test_stream_handler_level(self):
        logger = setup_logging("cachebench.test.setup", stream_log_level="WARNING")
        assert isinstance(logger, CBLogger)
        assert stream_handler(logger).level == logging.WARNING
        assert isinstance(stream_handler(logger).formatter, ColoredStandardFormatter)

    def test_formatter_output(self):
        record = logging.LogRecord("x", STATUS, __file__, 1, "hello", None, None)
        record.levelname = "STATUS"
        assert "|STATUS: hello" in ColoredStandardFormatter().format(record)


class TestApplyLoggingOptions:

    def make_args(self, **kwargs):
        defaults = {'verbose': False, 'debug': False, 'stream_log_level': "INFO"}
        defaults.update(kwargs)
        return argparse.Namespace(**defaults)

    def test_none_args(self):
        logger = setup_logging("cachebench.test.none")
        apply_logging_options(logger, None)
        assert stream_handler(logger).level == logging.INFO

    def test_stream_log_level(self):
        logger = setup_logging("cachebench.test.level")
        apply_logging_options(logger, self.make_args(stream_log_level="warning"))
        assert stream_handler(logger).level == logging.WARNING

    def test_verbose_lowers_default_level(self):
        logger = setup_logging("cachebench.test.verbose")
        apply_logging_options(logger, self.make_args(verbose=True))
        assert stream_handler(logger).level == VERBOSE

    def test_debug_switches_formatter(self):
        logger = setup_logging("cachebench.test.debug")
        apply_logging_options(logger, self.make_args(debug=True))
        assert stream_handler(logger).level == DEBUG
        assert isinstance(stream_handler(logger).formatter, ColoredDebugFormatter)


class TestRunLog:

    def test_records_written_to_file(self, tmp_path):
        logger = setup_logging("cachebench.test.runlog", stream_log_level="ERROR")
        handler = add_run_log(logger, str(tmp_path / "out"))
        try:
            logger.status("load phase started")
            logger.debug("worker detail")
        finally:
            remove_run_log(logger, handler)

        lines = (tmp_path / "out" / LOG_FILENAME).read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("|STATUS:MainThread: load phase started")
        assert "\033[" not in lines[0]

    def test_remove_detaches_and_closes(self, tmp_path):
        logger = setup_logging("cachebench.test.runlog_remove")
        handler = add_run_log(logger, str(tmp_path))
        remove_run_log(logger, handler)
        assert handler not in logger.handlers
        assert handler.stream is None

    def test_file_handler_ignored_by_logging_options(self, tmp_path):
        logger = setup_logging("cachebench.test.runlog_options")
        handler = add_run_log(logger, str(tmp_path))
        try:
            apply_logging_options(logger, argparse.Namespace(verbose=False, debug=False,
                                                              stream_log_level="ERROR"))
            assert handler.level == DEBUG
            assert stream_handler(logger).level == logging.ERROR
        finally:
            remove_run_log(logger, handler)

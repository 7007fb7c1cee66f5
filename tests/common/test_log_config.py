"""Tests for catalog_import/common/log_config.py"""

import logging
import sys

from catalog_import.common.log_config import setup_logging


class TestSetupLogging:
    def teardown_method(self):
        """Reset logger between tests."""
        logger = logging.getLogger("catalog_import")
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_default_level_is_info(self):
        setup_logging()
        logger = logging.getLogger("catalog_import")
        assert logger.level == logging.INFO

    def test_verbose_sets_debug(self):
        setup_logging(verbose=True)
        logger = logging.getLogger("catalog_import")
        assert logger.level == logging.DEBUG

    def test_quiet_sets_warning(self):
        setup_logging(quiet=True)
        logger = logging.getLogger("catalog_import")
        assert logger.level == logging.WARNING

    def test_handler_outputs_to_stderr(self):
        setup_logging()
        logger = logging.getLogger("catalog_import")
        assert len(logger.handlers) == 1
        handler = logger.handlers[0]
        assert handler.stream is sys.stderr

    def test_repeated_calls_do_not_duplicate_handlers(self):
        setup_logging()
        setup_logging(verbose=True)
        logger = logging.getLogger("catalog_import")
        assert len(logger.handlers) == 1

    def test_module_loggers_inherit_level(self):
        setup_logging(quiet=True)
        child = logging.getLogger("catalog_import.importer.orchestrator")
        assert child.getEffectiveLevel() == logging.WARNING

    def test_returns_package_logger(self):
        assert setup_logging() is logging.getLogger("catalog_import")

    def test_library_loggers_held_at_warning(self):
        setup_logging(verbose=True)
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("PIL").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_sql_echo(self):
        setup_logging(sql_echo=True)
        sql_logger = logging.getLogger("sqlalchemy.engine")
        try:
            assert sql_logger.level == logging.INFO
            assert len(sql_logger.handlers) == 1
        finally:
            sql_logger.handlers.clear()
            sql_logger.setLevel(logging.NOTSET)

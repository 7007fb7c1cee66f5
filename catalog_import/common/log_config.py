"""
Logging Configuration

Sets up the ``catalog_import`` logger tree for CLI runs. Records go to
stderr so --json output on stdout stays machine-readable.

Third-party loggers used by the pipeline (urllib3 for fetches and
uploads, PIL for image decoding, SQLAlchemy for the relational store)
are held at WARNING unless explicitly raised.
"""

import logging
import sys
from typing import Iterable

PACKAGE_LOGGER = "catalog_import"

LOG_FORMAT = "%(levelname)-8s %(name)s: %(message)s"

NOISY_LIBRARY_LOGGERS = ("urllib3", "PIL", "sqlalchemy.engine")


def setup_logging(verbose: bool = False, quiet: bool = False,
                  sql_echo: bool = False) -> logging.Logger:
    """
    Configure pipeline logging.

    Args:
        verbose: DEBUG for pipeline modules
        quiet: WARNING for pipeline modules (verbose wins if both are set)
        sql_echo: Log emitted SQL statements (sqlalchemy.engine at INFO)

    Returns:
        The package logger
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)

    _quiet_libraries(NOISY_LIBRARY_LOGGERS)
    if sql_echo:
        sql_logger = logging.getLogger("sqlalchemy.engine")
        sql_logger.setLevel(logging.INFO)
        sql_logger.handlers.clear()
        sql_logger.addHandler(handler)

    return logger


def _quiet_libraries(names: Iterable[str]) -> None:
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)

"""
Logging configuration for the application.

Handlers are attached to the `claimdesk` package logger so every module logger
(logging.getLogger(__name__)) inherits them.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from flask import Flask

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(app: Flask) -> logging.Logger:
    logger = logging.getLogger("claimdesk")
    logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # create_app() may run many times in one process (tests)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file = app.config.get("LOG_FILE")
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=app.config.get("LOG_MAX_BYTES", 5 * 1024 * 1024),
            backupCount=app.config.get("LOG_BACKUP_COUNT", 5),
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

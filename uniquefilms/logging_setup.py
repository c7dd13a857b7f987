from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: dict) -> logging.Logger:
    """Configure the `uniquefilms` logger tree from the `logging` config section."""
    log_config = config.get("logging", {})
    log_level = getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO)

    logger = logging.getLogger("uniquefilms")
    logger.setLevel(log_level)
    # Reconfiguring (tests, app factory called twice) must not duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_config.get("file")
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=log_config.get("max_bytes", 10485760),
            backupCount=log_config.get("backup_count", 5),
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

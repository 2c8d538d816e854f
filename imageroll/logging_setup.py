"""Logging to a rotating file in the per-user data directory."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Handlers installed by setup_logging, so a second call replaces them
_handlers = []


def get_app_data_dir() -> Path:
    """Where settings and logs live: %APPDATA%/imageroll, else ~/.imageroll."""
    app_data = os.getenv("APPDATA")
    if app_data:
        return Path(app_data) / "imageroll"
    return Path.home() / ".imageroll"


def setup_logging(debug: bool = False):
    """Logs INFO and up to ``logs/imageroll.log``; ``debug`` adds DEBUG records and a stderr copy."""
    log_dir = get_app_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / "imageroll.log", maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
    )
    file_handler.setFormatter(formatter)
    handlers = [file_handler]
    if debug:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        handlers.append(console)

    root_logger = logging.getLogger()
    for handler in _handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _handlers[:] = handlers
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Third-party chatter
    logging.getLogger("PIL").setLevel(logging.INFO)
    logging.getLogger("watchdog").setLevel(logging.WARNING)

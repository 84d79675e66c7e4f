"""
Logging setup for the Singr back office.

Every module asks for its logger through ``get_logger(__name__)``; this
module owns the handlers those loggers propagate to. The console level
follows ``SINGR_LOG_LEVEL`` while an optional file handler under
``LOG_FILE_DIR`` keeps everything down to DEBUG, which is what support
staff read when an OpenKJ client or a Stripe webhook misbehaves.

Environment:
- ``LOG_FORMAT``: ``simple``, ``detailed`` (default) or ``json``
- ``LOG_FILE_DIR``: directory for ``singr_backoffice.log`` (default ``logs``)
- ``ENABLE_FILE_LOGGING``: ``true``/``false`` (default ``true``)
"""

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "singr_backoffice.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _configured_level() -> str:
    # Settings may not be importable yet when a migration or script imports us first.
    try:
        from singr_backoffice.server.core.config import settings
    except ImportError:
        return os.getenv("SINGR_LOG_LEVEL", "INFO").upper()
    return settings.log_level.upper()


LOG_LEVEL = _configured_level()
LOG_FORMAT = os.getenv("LOG_FORMAT", "detailed")
LOG_FILE_DIR = os.getenv("LOG_FILE_DIR", "logs")
ENABLE_FILE_LOGGING = _env_flag("ENABLE_FILE_LOGGING", "true")


SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

_FORMATS = {"simple": SIMPLE_FORMAT, "detailed": DETAILED_FORMAT, "json": JSON_FORMAT}


MODULE_LOG_LEVELS = {
    "singr_backoffice.server": "INFO",
    "singr_backoffice.server.api": "DEBUG",
    "singr_backoffice.server.services": "DEBUG",
    # desktop clients poll getSerial constantly
    "singr_backoffice.server.services.openkj": "INFO",
    "singr_backoffice.server.services.stripe_webhooks": "DEBUG",
    "singr_backoffice.server.core": "INFO",
    "singr_backoffice.core.database": "INFO",
    # third party
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "httpx": "WARNING",
    "stripe": "WARNING",
    "asyncio": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
}


def _file_handler(formatter: logging.Formatter) -> logging.Handler:
    log_dir = Path(LOG_FILE_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: bool = True,
) -> None:
    """
    (Re)configure the root logger.

    Existing root handlers are dropped first, so calling this again (the
    server does on startup) never duplicates output.

    Args:
        log_level: Console level; defaults to ``SINGR_LOG_LEVEL``
        log_format: ``simple``, ``detailed`` or ``json``; unknown values fall back to ``detailed``
        enable_file: Also write to the log file, if ``ENABLE_FILE_LOGGING`` allows it
    """
    level = (log_level or LOG_LEVEL).upper()
    fmt = log_format or LOG_FORMAT
    formatter = logging.Formatter(_FORMATS.get(fmt, DETAILED_FORMAT), datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    write_file = enable_file and ENABLE_FILE_LOGGING
    if write_file:
        root_logger.addHandler(_file_handler(formatter))

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={write_file}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


setup_logging()

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"


def configure_logging() -> None:
    """Configure logging for storage and import runs from ``POLYGLOTTOS_*`` flags.

    ``POLYGLOTTOS_LOG_LEVEL`` sets the root level, ``POLYGLOTTOS_LOG_FILE``
    mirrors output to a file, ``POLYGLOTTOS_DEBUG_HTTP=1`` traces remote
    storage requests and ``POLYGLOTTOS_DEBUG_SQL=1`` echoes local SQL.
    """
    level = os.getenv("POLYGLOTTOS_LOG_LEVEL", "INFO").upper()
    log_file = os.getenv("POLYGLOTTOS_LOG_FILE")

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
        "telemetry": {
            "class": "logging.StreamHandler",
            "formatter": "telemetry",
        },
    }
    root_handlers = ["console"]
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "encoding": "utf-8",
        }
        root_handlers.append("file")

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": DEFAULT_LOG_FORMAT},
                "telemetry": {"format": TELEMETRY_LOG_FORMAT},
            },
            "handlers": handlers,
            "loggers": {
                # TELEMETRY lines carry their own JSON payload.
                "polyglottos.telemetry": {
                    "handlers": ["telemetry"] + root_handlers[1:],
                    "level": "INFO",
                    "propagate": False,
                },
                "sqlalchemy.engine": {"level": "WARNING"},
            },
            "root": {
                "handlers": root_handlers,
                "level": level,
            },
        }
    )

    if os.getenv("POLYGLOTTOS_DEBUG_HTTP", "0") == "1":
        logging.getLogger("httpx").setLevel(logging.DEBUG)
        logging.getLogger("polyglottos.storage.remote").setLevel(logging.DEBUG)
    if os.getenv("POLYGLOTTOS_DEBUG_SQL", "0") == "1":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

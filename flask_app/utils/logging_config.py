# flask_app/utils/logging_config.py
"""
Application logging setup: console and rotating-file handlers with text or
JSON formatting, driven by the monitoring config.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys() | {"message", "asctime"}
)

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
HANDLER_MARKER = "_hostfully_importer_handler"


class JSONFormatter(logging.Formatter):
    """Render records as one JSON object per line, including ``extra`` fields"""

    def __init__(self, app_name=None, app_version=None):
        super().__init__()
        self.app_name = app_name
        self.app_version = app_version

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.app_name:
            payload["app"] = self.app_name
        if self.app_version:
            payload["version"] = self.app_version
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(app):
    if str(app.config.get("LOG_FORMAT", "text")).lower() == "json":
        return JSONFormatter(app.config.get("APP_NAME"), app.config.get("APP_VERSION"))
    return logging.Formatter(TEXT_FORMAT)


def _remove_own_handlers(logger):
    for handler in list(logger.handlers):
        if getattr(handler, HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app):
    """Configure the Flask app logger and the importer package logger.

    Safe to call more than once; handlers installed by a previous call are
    replaced.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = _build_formatter(app)
    handlers = []

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        handlers.append(console)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "app.log"),
            maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
            backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for logger in (app.logger, logging.getLogger("flask_app")):
        _remove_own_handlers(logger)
        logger.setLevel(level)
        for handler in handlers:
            setattr(handler, HANDLER_MARKER, True)
            logger.addHandler(handler)

    app.logger.debug("Logging configured", extra={"log_level": logging.getLevelName(level)})
    return app.logger

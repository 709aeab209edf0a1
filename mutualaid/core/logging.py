from logging.config import dictConfig
from typing import Dict, Literal

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

JSON_FORMATTER_CLASS = "pythonjsonlogger.json.JsonFormatter"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Third-party loggers that are noisy at INFO; they follow the app level only when debugging.
QUIET_LOGGERS = ("sqlalchemy.engine", "passlib", "multipart")


def _formatter(json_output: bool) -> Dict[str, str]:
    if json_output:
        return {"class": JSON_FORMATTER_CLASS, "format": LOG_FORMAT}
    return {"format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"}


def configure_logging(level: LogLevel = "INFO", json_output: bool = True) -> None:
    """Route app and uvicorn logs through one console handler."""
    level = level.upper()
    quiet_level = "DEBUG" if level == "DEBUG" else "WARNING"
    loggers = {name: {"level": quiet_level} for name in QUIET_LOGGERS}
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        loggers[name] = {"handlers": [], "propagate": True}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"console": _formatter(json_output)},
            "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "console"}},
            "loggers": loggers,
            "root": {"handlers": ["console"], "level": level},
        }
    )

"""Logging setup: structlog events rendered as JSON lines by python-json-logger.

Layout under the log directory::

    harvester.log           every INFO+ event
    error.log               ERROR+ only
    datasets/<name>.log     events of one dataset's harvests
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

LOGGER_NAME = "bucket_harvester"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_LOGGING_INITIALISED = False
_dataset_handlers: dict[str, logging.Handler] = {}


def log_dir() -> Path:
    env_root = os.environ.get("BUCKET_HARVESTER_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def harvester_log_path() -> Path:
    return log_dir() / "harvester.log"


def dataset_log_path(dataset_name: str) -> Path:
    return log_dir() / "datasets" / f"{dataset_name}.log"


def _json_formatter() -> logging.Formatter:
    return jsonlogger.JsonFormatter(LOG_FORMAT)


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def _logging_dict(directory: Path, level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": _json_formatter}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "harvester_file": _file_handler(directory / "harvester.log", "INFO"),
            "error_file": _file_handler(directory / "error.log", "ERROR"),
        },
        "loggers": {
            LOGGER_NAME: {
                "handlers": ["console", "harvester_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install handlers once and return the application logger.

    Later calls only raise the level to DEBUG when ``verbose`` is asked for.
    """

    global _LOGGING_INITIALISED
    level = "DEBUG" if verbose else "INFO"
    if _LOGGING_INITIALISED:
        if verbose:
            logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG)
        return structlog.get_logger(LOGGER_NAME)

    directory = log_dir()
    (directory / "datasets").mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(_logging_dict(directory, level))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_INITIALISED = True
    return structlog.get_logger(LOGGER_NAME)


def dataset_logger(dataset_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``dataset``; its events also go to the dataset's own file."""

    configure_logging(verbose)
    logger_name = f"{LOGGER_NAME}.dataset.{dataset_name}"
    if dataset_name not in _dataset_handlers:
        path = dataset_log_path(dataset_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(_json_formatter())
        handler.setLevel(logging.INFO)
        logging.getLogger(logger_name).addHandler(handler)
        _dataset_handlers[dataset_name] = handler
    return structlog.get_logger(logger_name).bind(dataset=dataset_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_dataset_logs() -> list[Path]:
    datasets_dir = log_dir() / "datasets"
    if not datasets_dir.exists():
        return []
    return sorted(datasets_dir.glob("*.log"))


__all__ = [
    "LOGGER_NAME",
    "available_dataset_logs",
    "configure_logging",
    "dataset_log_path",
    "dataset_logger",
    "harvester_log_path",
    "log_dir",
    "tail_log",
]

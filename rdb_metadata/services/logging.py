"""structlog setup for the command line and library users.

Console output goes to stderr so that stdout stays reserved for command
output. With a log directory, everything is also written as JSON lines to
``rdb-metadata.log`` and errors additionally to ``error.log``.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

ENVIRONMENT_VARIABLE = "RDB_METADATA_ENV"
APP_LOG_NAME = "rdb-metadata.log"
ERROR_LOG_NAME = "error.log"

# (file name, max bytes, backups, minimum level or None for the configured one)
LOG_FILES: tuple[tuple[str, int, int, int | None], ...] = (
    (APP_LOG_NAME, 5 * 1024 * 1024, 3, None),
    (ERROR_LOG_NAME, 1024 * 1024, 3, logging.ERROR),
)


class LoggingService:
    """Configures structlog on top of the standard library logging module."""

    def __init__(self, log_level: str = "INFO", log_dir: Path | None = None) -> None:
        """
        Args:
            log_level: Minimum level name; unknown names fall back to INFO
            log_dir: Directory for log files, None for console only
        """
        self.log_level = log_level.upper()
        self.log_dir = log_dir
        self.is_development = os.getenv(ENVIRONMENT_VARIABLE, "development") == "development"

    @property
    def numeric_level(self) -> int:
        level = logging.getLevelName(self.log_level)
        return level if isinstance(level, int) else logging.INFO

    def configure(self) -> None:
        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(self.numeric_level)

        root.addHandler(self._console_handler())
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            for name, max_bytes, backups, level in LOG_FILES:
                root.addHandler(self._file_handler(self.log_dir / name, max_bytes, backups, level))

        structlog.configure(
            processors=self._processors(),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _console_handler(self) -> logging.Handler:
        # Both renderers already carry the timestamp and level
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(self.numeric_level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    def _file_handler(self, path: Path, max_bytes: int, backups: int, level: int | None) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            filename=path,
            maxBytes=max_bytes,
            backupCount=backups,
            encoding="utf-8",
        )
        handler.setLevel(level if level is not None else self.numeric_level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    def _processors(self) -> list[Any]:
        processors: list[Any] = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        # Files always get JSON, so the console renderer is only used
        # when nothing is written to disk
        if self.is_development and self.log_dir is None:
            processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
        else:
            processors.append(structlog.processors.JSONRenderer())
        return processors


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    environment: str | None = None,
) -> LoggingService:
    """Configure logging for the process and return the service.

    ``environment`` ("development" or "production") overrides
    ``RDB_METADATA_ENV`` when given.
    """
    if environment:
        os.environ[ENVIRONMENT_VARIABLE] = environment

    service = LoggingService(log_level=log_level, log_dir=log_dir)
    service.configure()
    return service

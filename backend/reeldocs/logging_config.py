"""
Logging setup.

Environment variables (via Settings):
- LOG_LEVEL: root level (default INFO)
- LOG_FORMAT: "structured" (default) or "simple"
- LOG_LEVEL_<AREA>: per-area override, e.g. LOG_LEVEL_PIPELINE=DEBUG
  (areas: ai_client, pipeline, stages, jobs, db)
"""

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reeldocs.config import Settings


# Settings suffix -> logger
AREA_LOGGERS = {
    "ai_client": "reeldocs.services.ai_clients",
    "pipeline": "reeldocs.services.pipeline",
    "stages": "reeldocs.services.stages",
    "jobs": "reeldocs.services.job_manager",
    "db": "reeldocs.db",
}

# Longest prefix first
NAME_PREFIXES = (
    ("reeldocs.services.", ""),
    ("reeldocs.api.", "api."),
    ("reeldocs.", ""),
)

NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "google_genai", "aiosqlite", "uvicorn.access")


def short_logger_name(name: str) -> str:
    """
    Drop the package prefix from a logger name.

    Example:
        >>> short_logger_name("reeldocs.services.pipeline.orchestrator")
        'pipeline.orchestrator'
    """
    for prefix, replacement in NAME_PREFIXES:
        if name.startswith(prefix):
            return replacement + name[len(prefix):]
    return name


class StructuredFormatter(logging.Formatter):
    """``timestamp | level | logger | message`` lines, traceback appended."""

    def format(self, record: logging.LogRecord) -> str:
        line = " | ".join([
            self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            f"{record.levelname:8}",
            f"{short_logger_name(record.name):28}",
            record.getMessage(),
        ])
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _level(value: str | None, default: int) -> int:
    if not value:
        return default
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def setup_logging(settings: "Settings") -> None:
    """
    Install one stdout handler on the root logger.

    Calling it again replaces the handler instead of adding another.
    """
    root_level = _level(settings.log_level, logging.INFO)

    if settings.log_format == "structured":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(root_level)

    for area, logger_name in AREA_LOGGERS.items():
        override = getattr(settings, f"log_level_{area}", None)
        if override:
            logging.getLogger(logger_name).setLevel(_level(override, root_level))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

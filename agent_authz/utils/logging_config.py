"""Centralized logging configuration.

Agents embedding the authorization engine call setup_logging() once at
startup, usually with the level and file from Settings.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Transport libraries log full request lines, query strings included
NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_level(level: str | None) -> int:
    level = level or os.getenv("AGENT_AUTHZ_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(
    name: str = "agent_authz",
    level: str | None = None,
    log_file: Path | None = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Configure logging with consistent format.

    Args:
        name: Logger name to return (typically __name__ of the caller)
        level: Log level (defaults to AGENT_AUTHZ_LOG_LEVEL, then LOG_LEVEL, then INFO)
        log_file: Optional file path for logging output
        quiet_loggers: Loggers capped at WARNING so tokens in URLs stay out of logs

    Returns:
        Configured logger instance

    Raises:
        ValueError: If the level name is unknown
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=_resolve_level(level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for logger_name in quiet_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return logging.getLogger(name)

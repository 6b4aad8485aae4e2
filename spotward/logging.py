"""Logging configuration for spotward.

Structured logging via loguru. The library stays silent until
``setup_logging`` is called; the Lambda entry point does so on cold start
and emits JSON lines to stderr, which CloudWatch picks up.

Example:
    from spotward.logging import LogConfig, setup_logging

    setup_logging(LogConfig(level="DEBUG", serialize=False))
"""

from __future__ import annotations

import contextlib
import sys
from dataclasses import dataclass
from typing import Literal

from loguru import logger

# Disable by default (library behavior)
logger.disable("spotward")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> "
    "<magenta>{extra[request_id]}</magenta> - "
    "<level>{message}</level>"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum log level.
        serialize: Emit one JSON object per line instead of colored text.
        console: Whether to log to stderr.
    """

    level: LogLevel = "INFO"
    serialize: bool = True
    console: bool = True


def setup_logging(config: LogConfig) -> list[int]:
    """Configure logging and return handler IDs for cleanup."""
    logger.enable("spotward")
    with contextlib.suppress(ValueError):
        logger.remove(0)  # loguru's default stderr handler
    logger.configure(extra={"component": "-", "request_id": "-"})
    handler_ids: list[int] = []

    if config.console:
        hid = logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            serialize=config.serialize,
            colorize=not config.serialize,
            diagnose=False,  # Don't expose credentials in tracebacks
            filter="spotward",
        )
        handler_ids.append(hid)

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("spotward")

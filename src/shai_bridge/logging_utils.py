"""Runtime logging helpers."""

from __future__ import annotations

import inspect
import logging
import os
import sys
from logging import Handler
from typing import Literal

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "interactive"]

LOG_FILTER_ENV = "SHAI_LOG_FILTER"
DEFAULT_LOG_LEVEL = "warning"

_DEFAULT_FORMAT = "{time:HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {extra[session]} | {message}"
_CONFIGURED_PROFILE: LogProfile | None = None


class InterceptHandler(logging.Handler):
    """Handler that forwards stdlib logging messages to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame:
            filename = frame.f_code.co_filename
            is_logging = filename == logging.__file__
            is_frozen = "importlib" in filename and "_bootstrap" in filename
            if depth > 0 and not (is_logging or is_frozen):
                break
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _stderr_sink(message: str) -> None:
    # Resolved per write: the CLI runs under redirected streams.
    sys.stderr.write(message)


def _build_interactive_handler() -> Handler:
    return RichHandler(
        console=Console(stderr=True),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def parse_log_filter(raw: str | None = None) -> tuple[str, dict[str | None, str | int | bool]]:
    """Parse a SHAI_LOG_FILTER value.

    Format: "level" or "level,module=level,module=false"
    Examples:
        - "info" - global INFO level
        - "warning,shai_bridge.exchange=debug" - exchange internals at DEBUG
        - "info,shai_bridge.exchange.storage=false" - storage logs disabled

    Returns:
        (global_level, module_filter_dict)
    """
    filter_env = (raw if raw is not None else os.getenv(LOG_FILTER_ENV, DEFAULT_LOG_LEVEL)).lower()
    parts = [p.strip() for p in filter_env.split(",") if p.strip()]

    filter_dict: dict[str | None, str | int | bool] = {}
    global_level = DEFAULT_LOG_LEVEL

    for part in parts:
        if "=" in part:
            module, level = part.split("=", 1)
            module = module.strip()
            level = level.strip()
            filter_dict[module] = False if level == "false" else level.upper()
        else:
            global_level = part

    # Module levels may be lower than the sink level; the filter decides.
    filter_dict.setdefault("", global_level.upper())
    return global_level, filter_dict


def _setup_stdlib_intercept() -> None:
    """Forward stdlib logging to loguru."""
    root_logger = logging.getLogger()
    if not any(isinstance(handler, InterceptHandler) for handler in root_logger.handlers):
        root_logger.addHandler(InterceptHandler())


def configure_logging(*, profile: LogProfile = "default") -> None:
    """Configure process-level logging once.

    Logs go to stderr so they never mix with the buffer the bridge prints on
    stdout. Levels are controlled by SHAI_LOG_FILTER.
    """
    from shai_bridge.exchange.coordinator import current_session

    def inject_context(record) -> None:
        record["extra"]["session"] = current_session()

    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    _global_level, module_filter = parse_log_filter()

    logger.remove()
    logger.configure(patcher=inject_context)

    if profile == "interactive":
        logger.add(
            _build_interactive_handler(),
            level="TRACE",
            format="{message}",
            backtrace=False,
            diagnose=False,
            filter=module_filter,
        )
    else:
        logger.add(
            _stderr_sink,
            level="TRACE",
            format=_DEFAULT_FORMAT,
            backtrace=False,
            diagnose=False,
            filter=module_filter,
        )

    _setup_stdlib_intercept()

    _CONFIGURED_PROFILE = profile

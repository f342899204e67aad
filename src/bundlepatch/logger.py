from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

_handler: Optional[logging.Handler] = None


def configure_logging(
    level: int = logging.INFO,
    *,
    log_file: Optional[Path] = None,
    overrides: Optional[dict[str, int]] = None,
) -> None:
    """
    Route log output to stderr (or to log_file when given) and set levels for
    the package logger and any per-logger overrides.

    Calling it again replaces the handler installed by the previous call.
    """
    global _handler
    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
        _handler.close()

    handler: logging.Handler
    if log_file is not None:
        handler = logging.FileHandler(log_file, mode="w", encoding="utf-8", delay=True)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    _handler = handler
    logging.captureWarnings(True)
    root_logger.setLevel(level)
    logging.getLogger("bundlepatch").setLevel(level)

    for logger_name, override_level in (overrides or {}).items():
        logging.getLogger(logger_name).setLevel(override_level)


structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        structlog.dev.ConsoleRenderer(colors=False),
    ],
)

logger: structlog.BoundLogger = structlog.get_logger("bundlepatch")

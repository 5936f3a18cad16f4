"""
structlog configuration for the library API.

Every event carries the request context bound by the HTTP middleware
(request id, method, path) in addition to its own key-value pairs.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.stdlib import LoggerFactory
from structlog.types import Processor

LOG_FORMATS = ("json", "console")


def _processors(debug: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder({
            structlog.processors.CallsiteParameter.MODULE,
            structlog.processors.CallsiteParameter.FUNC_NAME,
            structlog.processors.CallsiteParameter.LINENO,
        }))
    return processors


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Route structlog events through the standard logging module.

    Args:
        log_level: Minimum level name, e.g. ``INFO``
        log_format: ``json`` for one object per line, ``console`` for humans
        log_file: Also append rendered events to this file
        debug: Tag events with module, function and line
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"log_format must be one of {LOG_FORMATS}")
    level = logging.getLevelName(log_level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    root = logging.getLogger()
    root.setLevel(level)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not any(isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path.resolve()
                   for h in root.handlers):
            handler = logging.FileHandler(path)
            handler.setFormatter(logging.Formatter("%(message)s"))
            root.addHandler(handler)

    structlog.configure(
        processors=_processors(debug) + [_renderer(log_format)],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).debug("Logging configured", level=log_level, format=log_format, file=log_file)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module; pass ``__name__``."""
    return structlog.get_logger(name)


def bind_request_context(**kwargs) -> None:
    """Replace the context attached to every event of the current request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)

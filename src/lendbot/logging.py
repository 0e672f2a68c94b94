"""Structured logging for the lending bot, built on structlog and stdlib logging.

Events are snake_case names with keyword context. Decimal values are
rendered as plain strings so rates such as ``0.00025`` never show up in
scientific notation. Each lending cycle binds a ``cycle`` number through
structlog.contextvars, which tags every event emitted while it runs.
"""

import logging
import os
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from decimal import Decimal
from typing import Any

import structlog

# Third-party loggers that log every HTTP request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "ccxt")


def _render_decimals(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = format(value, "f")
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog and route it through the root stdlib logger.

    ``LOG_FORMAT=json`` selects machine-readable output; anything else
    (default ``console``) selects the human-readable renderer.
    """
    json_output = os.environ.get("LOG_FORMAT", "console").lower() == "json"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _render_decimals,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def cycle_context(cycle: int, **extra: Any) -> Iterator[None]:
    """Tag every event logged inside the block with the cycle number."""
    with structlog.contextvars.bound_contextvars(cycle=cycle, **extra):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

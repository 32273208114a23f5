"""Structured logging for perpwatch using structlog.

Every metric in the pipeline is a Decimal, so a processor renders Decimal
fields as plain numeric strings ("0.0005", not "Decimal('0.0005')") before
either renderer sees them. Cycle context (profile, cycle_id) is carried in
structlog contextvars by ``bind_cycle`` and merged into every event logged
while the cycle runs, including events from tasks spawned inside it.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

import structlog

#: Third-party loggers that are chatty at DEBUG.
_NOISY_LOGGERS = ("aiohttp", "ccxt")


def stringify_decimals(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Render top-level and list-valued Decimal fields with ``str()``."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, (list, tuple)) and any(isinstance(v, Decimal) for v in value):
            event_dict[key] = [str(v) if isinstance(v, Decimal) else v for v in value]
    return event_dict


@contextmanager
def bind_cycle(profile: str, cycle_id: str) -> Iterator[None]:
    """Attach ``profile`` and ``cycle_id`` to every event logged in the block."""
    with structlog.contextvars.bound_contextvars(profile=profile, cycle_id=cycle_id):
        yield


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog over stdlib logging.

    Args:
        log_level: Root level name, e.g. "INFO" or "DEBUG".
        log_format: "json" for machine-readable lines, anything else for
            the human-readable console renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        stringify_decimals,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
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

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)

"""
Structured logging configuration
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from dutytrack.config import Settings


class EngineContext:
    """Stamps every event with the deployment it came from."""

    def __init__(self, service_name: str, settings: Settings) -> None:
        self.service_name = service_name
        self.environment = settings.environment
        self.timezone = settings.timezone

    def __call__(
        self, logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", self.service_name)
        event_dict.setdefault("environment", self.environment)
        event_dict.setdefault("day_timezone", self.timezone)
        return event_dict


def build_processors(service_name: str, settings: Settings) -> list[Processor]:
    """Processor chain: bound subject context first, renderer last."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        EngineContext(service_name, settings),
    ]
    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def setup_logging(
    service_name: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> structlog.stdlib.BoundLogger:
    """
    Route engine logs through structlog and the stdlib root logger

    Args:
        service_name: Tag for every event (defaults to settings.service_name)
        settings: Engine settings (log level, format, environment)

    Returns:
        Logger bound to the service name
    """
    settings = settings or Settings()
    service_name = service_name or settings.service_name

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.getLevelName(settings.log_level.upper()),
    )

    structlog.configure(
        processors=build_processors(service_name, settings),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    return structlog.get_logger(service_name)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

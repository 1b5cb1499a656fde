"""
Logging configuration for the Log Shipper.

Log lines are rendered by structlog. While a pipeline runs, its provider,
container and watched directory are bound as context variables so that every
line logged by the controller and its upload workers carries them.
"""

import logging
import sys
from pathlib import Path
from typing import Any, ContextManager, Dict, Optional, Union

import structlog
from structlog.stdlib import LoggerFactory
from structlog.types import Processor

from log_shipper.config import Environment, LogLevel, Settings, settings as default_settings

# Storage SDKs and watchdog log every request or inotify call at INFO/DEBUG.
NOISY_LOGGERS = ("azure", "botocore", "boto3", "urllib3", "google", "watchdog")


def configure_logging(
        log_level: Optional[LogLevel] = None,
        config: Optional[Settings] = None,
) -> None:
    """
    Configure structured logging for the service.

    Args:
        log_level: Logging level to use, defaults to ``LOG_LEVEL``
        config: Settings to read service information from
    """
    config = config or default_settings
    level = log_level or config.LOG_LEVEL
    if isinstance(level, LogLevel):
        level = level.value

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level.upper(),
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    def add_service_info(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Add service information to the event dict."""
        event_dict["service"] = config.PROJECT_NAME
        event_dict["version"] = config.VERSION
        event_dict["environment"] = config.ENVIRONMENT
        return event_dict

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_info,
        structlog.processors.format_exc_info,
    ]

    if config.ENVIRONMENT == Environment.DEVELOPMENT:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def pipeline_context(
        provider: str, container: str, watch_dir: Union[str, Path]
) -> ContextManager[Dict[str, Any]]:
    """
    Bind a pipeline's destination to the logging context.

    Tasks created inside the block inherit the binding, so upload workers
    log it too. The previous values are restored on exit.
    """
    return structlog.contextvars.bound_contextvars(
        provider=provider,
        container=container,
        watch_dir=str(watch_dir),
    )

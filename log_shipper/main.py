"""
Main module for the Log Shipper service.

This module serves as the entry point for the log shipper, which watches a
directory for rotated log files and uploads each new file to the configured
storage provider. When no new file has been created for the idle threshold,
the last file is uploaded once more with the end-of-stream trailer and the
process exits.
"""

import asyncio
import signal
import sys
from typing import Optional

import structlog

from log_shipper.config import Settings, settings as default_settings
from log_shipper.exceptions import LogShipperError
from log_shipper.models import PipelineResult
from log_shipper.pipeline import PipelineController
from log_shipper.storage.registry import ProviderRegistry, build_default_registry
from log_shipper.utils.logging import configure_logging, pipeline_context
from log_shipper.utils.metrics import start_metrics_server

logger = structlog.get_logger(__name__)


def build_controller(
        config: Settings, registry: Optional[ProviderRegistry] = None
) -> PipelineController:
    """
    Create a pipeline controller from settings.

    Args:
        config: Service settings
        registry: Storage providers, defaults to every bundled backend

    Returns:
        Configured controller
    """
    return PipelineController(
        config.WATCH_DIR,
        registry or build_default_registry(config),
        max_workers=config.MAX_WORKERS,
        block_on_full=config.BLOCK_ON_FULL,
        tick_interval=config.TICK_INTERVAL,
        idle_threshold=config.IDLE_THRESHOLD,
        ignore_suffixes=config.IGNORE_SUFFIXES,
        sentinel=config.SENTINEL_TRAILER,
        create_container=config.CREATE_CONTAINER,
    )


async def run_service(config: Optional[Settings] = None) -> PipelineResult:
    """Run the log shipper until it is stopped or finishes."""
    config = config or default_settings
    controller = build_controller(config)

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    installed = []
    for signal_name in ("SIGINT", "SIGTERM"):
        try:
            sig = getattr(signal, signal_name)
            loop.add_signal_handler(sig, controller.stop)
            installed.append(sig)
        except (NotImplementedError, AttributeError):
            # Signal handling is not available on Windows
            pass

    try:
        with pipeline_context(config.STORAGE_PROVIDER, config.CONTAINER_NAME, config.WATCH_DIR):
            while True:
                result = await controller.start(config.STORAGE_PROVIDER, config.CONTAINER_NAME)
                if result == PipelineResult.FINISHED and not config.EXIT_ON_IDLE:
                    logger.info("Log rotation went idle, starting a new watch session")
                    continue
                return result
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main() -> None:
    """Entry point for the service."""
    config = default_settings
    configure_logging(config=config)
    start_metrics_server(config.METRICS_PORT)

    try:
        result = asyncio.run(run_service(config))
    except KeyboardInterrupt:
        logger.info("Service interrupted")
        return
    except LogShipperError as e:
        logger.error("Log shipper failed", error=str(e))
        sys.exit(1)

    if result == PipelineResult.FINISHED:
        logger.info("No more rotated log files, exiting")
    else:
        logger.info("Log shipper stopped")


if __name__ == "__main__":
    main()

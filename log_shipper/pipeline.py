"""
Pipeline controller for shipping rotated log files.

The controller ties the directory watcher, the upload dispatcher, a periodic
idle check and the stop signal together in a single event loop. A run ends
when it is stopped, when the watcher fails, or when no new file has shown up
for longer than the idle threshold. In the last case the most recent file is
uploaded once more with the sentinel trailer and the run reports
:attr:`PipelineResult.FINISHED`; exiting the process is left to the caller.
"""

import asyncio
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import structlog

from log_shipper.config import DEFAULT_SENTINEL_TRAILER
from log_shipper.dispatcher import UploadDispatcher
from log_shipper.exceptions import StorageConnectionError, WatcherError
from log_shipper.models import PipelineResult, PipelineState, UploadTask
from log_shipper.storage.base import StorageBackend
from log_shipper.storage.registry import ProviderRegistry
from log_shipper.watcher import DEFAULT_IGNORE_SUFFIXES, DirectoryWatcher

logger = structlog.get_logger(__name__)

_CONFLICT = 409


class PipelineController:
    """Event loop driving uploads of newly created files."""

    def __init__(
            self,
            watch_dir: Union[str, Path],
            registry: ProviderRegistry,
            *,
            max_workers: int = 1,
            block_on_full: bool = True,
            tick_interval: float = 2.0,
            idle_threshold: float = 5.0,
            ignore_suffixes: Iterable[str] = DEFAULT_IGNORE_SUFFIXES,
            sentinel: str = DEFAULT_SENTINEL_TRAILER,
            create_container: bool = False,
            watcher_factory: Callable[..., DirectoryWatcher] = DirectoryWatcher,
    ) -> None:
        """
        Initialize the pipeline controller.

        Args:
            watch_dir: Directory receiving rotated log files
            registry: Storage providers available to :meth:`start`
            max_workers: Maximum number of concurrent uploads
            block_on_full: Wait for a free upload worker instead of failing
            tick_interval: Seconds between idle checks
            idle_threshold: Seconds without a new file before the run finishes
            ignore_suffixes: File name suffixes that are never uploaded
            sentinel: Trailer appended to the final upload
            create_container: Create the container before watching; an
                existing container is accepted
            watcher_factory: Callable building the directory watcher
        """
        self.watch_dir = watch_dir
        self.registry = registry
        self.max_workers = max_workers
        self.block_on_full = block_on_full
        self.tick_interval = tick_interval
        self.idle_threshold = idle_threshold
        self.ignore_suffixes = tuple(ignore_suffixes)
        self.sentinel = sentinel
        self.create_container = create_container
        self.watcher_factory = watcher_factory

        self._state = PipelineState.STOPPED
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> PipelineState:
        return self._state

    async def start(self, provider_name: str, container_name: str) -> PipelineResult:
        """
        Run the pipeline until it is stopped or finishes.

        Args:
            provider_name: Registered storage provider to upload to
            container_name: Destination container

        Returns:
            How the run ended

        Raises:
            UnknownProviderError: If the provider is not registered
            StorageConnectionError: If the backend or container cannot be set up
            WatcherSetupError: If the directory cannot be watched
            WatcherError: If the directory watch fails while running
            PoolExhaustedError: If fail-fast submission finds no free worker
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError("Pipeline is already running")
        self._stop_event.clear()

        logger.info(
            "Starting file uploader",
            provider=provider_name,
            container=container_name,
            directory=str(self.watch_dir),
        )

        backend = self.registry.lookup(provider_name)
        if self.create_container:
            await self._ensure_container(backend, container_name)

        dispatcher = UploadDispatcher(
            backend,
            container_name,
            max_workers=self.max_workers,
            block_on_full=self.block_on_full,
            sentinel=self.sentinel,
            provider_name=provider_name,
        )

        watcher = self.watcher_factory(self.watch_dir, ignore_suffixes=self.ignore_suffixes)
        watcher.start()

        self._state = PipelineState.RUNNING
        try:
            return await self._run(watcher, dispatcher)
        finally:
            self._state = PipelineState.STOPPING
            await watcher.stop()
            await dispatcher.join()
            self._state = PipelineState.STOPPED
            logger.info("File uploader stopped")

    def stop(self) -> None:
        """Ask a running pipeline to unwind. Safe to call more than once."""
        if self._state == PipelineState.RUNNING:
            logger.info("Stopping file uploader")
            self._state = PipelineState.STOPPING
        self._stop_event.set()

    async def _ensure_container(self, backend: StorageBackend, container_name: str) -> None:
        outcome = await backend.create_container(container_name)
        if outcome.succeeded:
            logger.info("Created container", container=container_name)
        elif outcome.status_code == _CONFLICT:
            logger.info("Container already exists", container=container_name)
        else:
            raise StorageConnectionError(
                f"Failed to create container {container_name} "
                f"(status {outcome.status_code}): {outcome.error}"
            )

    async def _run(self, watcher: DirectoryWatcher, dispatcher: UploadDispatcher) -> PipelineResult:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.tick_interval
        last_event_at: Optional[float] = None
        last_path: Optional[str] = None

        next_event = asyncio.ensure_future(watcher.events.get())
        next_error = asyncio.ensure_future(watcher.errors.get())
        stop_requested = asyncio.ensure_future(self._stop_event.wait())
        try:
            while True:
                done, _ = await asyncio.wait(
                    {next_event, next_error, stop_requested},
                    timeout=max(0.0, next_tick - loop.time()),
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if stop_requested in done:
                    return PipelineResult.STOPPED

                if next_error in done:
                    raise next_error.result()

                if next_event in done:
                    event = next_event.result()
                    next_event = asyncio.ensure_future(watcher.events.get())
                    logger.info("New file detected", file=event.path)
                    await dispatcher.submit(UploadTask(file_path=event.path))
                    last_event_at = loop.time()
                    last_path = event.path

                now = loop.time()
                if now < next_tick:
                    continue
                next_tick = now + self.tick_interval

                logger.debug("Idle check", last_file=last_path)
                if not watcher.is_alive():
                    raise WatcherError(f"Directory watcher for {watcher.directory} stopped unexpectedly")

                if last_event_at is None:
                    continue
                idle = now - last_event_at
                if idle > self.idle_threshold:
                    logger.info(
                        "No rotated log file created, uploading the last file again",
                        idle_seconds=round(idle, 3),
                        file=last_path,
                    )
                    # The last file may still be uploading from the pool.
                    await dispatcher.join()
                    await dispatcher.run(UploadTask(file_path=last_path, is_final=True))
                    logger.info("File uploader finished", file=last_path)
                    return PipelineResult.FINISHED
        finally:
            for pending in (next_event, next_error, stop_requested):
                pending.cancel()

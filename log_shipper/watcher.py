"""
Directory watcher for newly created log files.

This module wraps watchdog's OS notifications for a single directory into an
asyncio queue of :class:`FileEvent` values. Files created in the directory or
renamed into it are reported at most once per watch session, and editor swap
files are ignored.
"""

import asyncio
import concurrent.futures
import os
import threading
from pathlib import Path
from typing import Iterable, Optional, Set, Union

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from log_shipper.exceptions import WatcherError, WatcherSetupError
from log_shipper.models import FileEvent
from log_shipper.utils.metrics import FILE_EVENTS

logger = structlog.get_logger(__name__)

DEFAULT_IGNORE_SUFFIXES = (".swp",)

# How often a blocked delivery re-checks for shutdown.
_DELIVERY_POLL = 0.1


class _CreatedFileHandler(FileSystemEventHandler):
    """Watchdog handler turning create and rename-in events into queued file events.

    Runs on the observer thread, which is the only place the seen-path set
    is touched.
    """

    def __init__(self, watcher: "DirectoryWatcher") -> None:
        super().__init__()
        self.watcher = watcher
        self.seen: Set[str] = set()

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._report(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # A rename into the directory (log rotation) counts as a new file.
        if event.is_directory:
            return
        dest_path = os.path.abspath(os.fsdecode(event.dest_path))
        if os.path.dirname(dest_path) == self.watcher.directory:
            self._report(dest_path)

    def _report(self, src_path) -> None:
        if self.watcher.closed:
            return

        path = os.path.abspath(os.fsdecode(src_path))
        if path in self.seen:
            return
        if path.endswith(self.watcher.ignore_suffixes):
            logger.debug("Ignoring transient file", path=path)
            return

        self.seen.add(path)
        FILE_EVENTS.inc()
        self.watcher.deliver(FileEvent(path=path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            return
        if os.path.abspath(os.fsdecode(event.src_path)) == self.watcher.directory:
            self.watcher.report_error(
                WatcherError(f"Watched directory was removed: {self.watcher.directory}")
            )


class DirectoryWatcher:
    """Watcher for a single local directory (not recursive)."""

    def __init__(
            self,
            directory: Union[str, Path],
            ignore_suffixes: Iterable[str] = DEFAULT_IGNORE_SUFFIXES,
            queue_size: int = 1,
    ) -> None:
        """
        Initialize the directory watcher.

        Args:
            directory: Directory to watch
            ignore_suffixes: File name suffixes that never produce an event
            queue_size: Capacity of the event queue; a full queue blocks the
                observer thread until the consumer catches up
        """
        self.directory = os.path.abspath(os.fspath(directory))
        self.ignore_suffixes = tuple(ignore_suffixes)
        self.queue_size = queue_size

        self.events: Optional[asyncio.Queue] = None
        self.errors: Optional[asyncio.Queue] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Optional[Observer] = None
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> None:
        """
        Start watching the directory.

        Must be called from a coroutine running on the event loop that will
        consume :attr:`events` and :attr:`errors`.

        Raises:
            WatcherSetupError: If the directory cannot be watched
        """
        if not os.path.isdir(self.directory):
            raise WatcherSetupError(f"Not a directory: {self.directory}")

        self._loop = asyncio.get_running_loop()
        self.events = asyncio.Queue(maxsize=self.queue_size)
        self.errors = asyncio.Queue()

        observer = Observer()
        try:
            observer.schedule(_CreatedFileHandler(self), self.directory, recursive=False)
            observer.start()
        except OSError as e:
            raise WatcherSetupError(
                f"Failed to watch directory {self.directory}: {str(e)}"
            ) from e

        self._observer = observer
        logger.info("Watching directory", directory=self.directory)

    async def stop(self) -> None:
        """Release the OS watch and wait for the observer thread to exit."""
        if self._closed.is_set():
            return
        self._closed.set()

        observer, self._observer = self._observer, None
        if observer is None:
            return

        logger.info("Shutting down directory watcher", directory=self.directory)
        observer.stop()
        await asyncio.get_running_loop().run_in_executor(None, observer.join)

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def deliver(self, event: FileEvent) -> None:
        """
        Hand an event to the event loop, blocking while the queue is full.

        Called from the observer thread. Gives up only when the watcher is
        shut down.
        """
        try:
            future = asyncio.run_coroutine_threadsafe(self.events.put(event), self._loop)
        except RuntimeError:
            # Loop already closed
            return

        while True:
            try:
                future.result(timeout=_DELIVERY_POLL)
                return
            except concurrent.futures.TimeoutError:
                if self._closed.is_set():
                    future.cancel()
                    return
            except concurrent.futures.CancelledError:
                return

    def report_error(self, error: WatcherError) -> None:
        """Forward an error to the event loop. Called from the observer thread."""
        logger.warning("Error watching directory", directory=self.directory, error=str(error))
        try:
            self._loop.call_soon_threadsafe(self.errors.put_nowait, error)
        except RuntimeError:
            # Loop already closed, nobody is left to receive the error
            pass

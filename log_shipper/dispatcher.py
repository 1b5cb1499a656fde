"""
Upload dispatcher.

This module runs uploads of local files through a bounded pool of asyncio
workers. Each task reads a file, optionally appends the sentinel trailer,
and hands the bytes to the storage backend. Failures are logged per file and
never retried.
"""

import asyncio
import os
import time
from typing import Optional, Set

import aiofiles
import structlog

from log_shipper.config import DEFAULT_SENTINEL_TRAILER
from log_shipper.exceptions import PoolExhaustedError
from log_shipper.models import UploadOutcome, UploadTask
from log_shipper.storage.base import StorageBackend
from log_shipper.utils.metrics import UPLOAD_TIME, UPLOADS, UPLOADS_IN_FLIGHT

logger = structlog.get_logger(__name__)


class UploadDispatcher:
    """Bounded-concurrency runner for upload tasks."""

    def __init__(
            self,
            backend: StorageBackend,
            container: str,
            max_workers: int = 1,
            block_on_full: bool = True,
            sentinel: str = DEFAULT_SENTINEL_TRAILER,
            provider_name: str = "",
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            backend: Storage backend receiving the uploads
            container: Destination container name
            max_workers: Maximum number of concurrent uploads
            block_on_full: Wait for a free worker on submit instead of
                raising :class:`PoolExhaustedError`
            sentinel: Trailer appended to final uploads
            provider_name: Provider name used in logs and metrics
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.backend = backend
        self.container = container
        self.max_workers = max_workers
        self.block_on_full = block_on_full
        self.sentinel = sentinel.encode("utf-8")
        self.provider_name = provider_name or backend.provider_name or type(backend).__name__

        self._slots = asyncio.Semaphore(max_workers)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, task: UploadTask) -> None:
        """
        Schedule a task on a free worker.

        Raises:
            PoolExhaustedError: If no worker is free and blocking is disabled
        """
        if not self.block_on_full and self._slots.locked():
            raise PoolExhaustedError(
                f"all {self.max_workers} upload workers are busy, "
                f"cannot upload {task.file_path}"
            )

        await self._slots.acquire()
        worker = asyncio.create_task(self._work(task))
        self._tasks.add(worker)
        worker.add_done_callback(self._tasks.discard)

    async def run(self, task: UploadTask) -> Optional[UploadOutcome]:
        """
        Run a task inline, outside the worker pool.

        Unexpected backend exceptions are logged and reported as a failed
        outcome so one bad file never takes the pipeline down.
        """
        try:
            return await self.upload(task)
        except Exception as e:
            logger.exception("Unexpected error uploading file", file=task.file_path)
            UPLOADS.labels(provider=self.provider_name, status="failure").inc()
            return UploadOutcome(status_code=0, error=e)

    async def join(self) -> None:
        """Wait until every scheduled upload has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _work(self, task: UploadTask) -> None:
        try:
            await self.run(task)
        finally:
            self._slots.release()

    async def upload(self, task: UploadTask) -> Optional[UploadOutcome]:
        """
        Read a file and upload its contents.

        The object name is the file's base name. Final tasks get the
        sentinel trailer appended.

        Args:
            task: Task to execute

        Returns:
            The backend outcome, or None if the file could not be read
        """
        object_name = os.path.basename(task.file_path)
        log = logger.bind(
            file=task.file_path,
            container=self.container,
            object_name=object_name,
            final=task.is_final,
        )

        try:
            async with aiofiles.open(task.file_path, "rb") as f:
                data = await f.read()
        except OSError as e:
            log.error("Failed to read file", error=str(e))
            UPLOADS.labels(provider=self.provider_name, status="read_error").inc()
            return None

        if task.is_final:
            data += self.sentinel

        start_time = time.time()
        UPLOADS_IN_FLIGHT.inc()
        try:
            outcome = await self.backend.upload_object(self.container, object_name, data)
        finally:
            UPLOADS_IN_FLIGHT.dec()
            UPLOAD_TIME.labels(provider=self.provider_name).observe(time.time() - start_time)

        if outcome.error is not None:
            log.error(
                "Upload file failed",
                status_code=outcome.status_code,
                error=str(outcome.error),
            )
        elif not outcome.succeeded:
            log.error("Upload returned unexpected status", status_code=outcome.status_code)
        else:
            log.info("Upload file succeeded", status_code=outcome.status_code, size=len(data))

        UPLOADS.labels(
            provider=self.provider_name,
            status="success" if outcome.succeeded else "failure",
        ).inc()
        return outcome

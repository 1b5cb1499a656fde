"""
Unit tests for the upload dispatcher.

This module checks how files are read and named, the sentinel trailer on
final uploads, per-file failure handling, and the worker pool limits.
"""

import asyncio
import os
import tempfile
import unittest

from log_shipper.config import DEFAULT_SENTINEL_TRAILER
from log_shipper.dispatcher import UploadDispatcher
from log_shipper.exceptions import PoolExhaustedError
from log_shipper.models import UploadOutcome, UploadTask
from tests.fakes import RecordingBackend


class BrokenBackend(RecordingBackend):
    """Backend that breaks its contract by raising."""

    async def upload_object(self, container_name, object_name, data):
        raise RuntimeError("unexpected")


class TestUploadDispatcher(unittest.IsolatedAsyncioTestCase):
    """Unit tests for the UploadDispatcher class."""

    def setUp(self):
        """Set up the test environment."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.backend = RecordingBackend()

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_file(self, name: str, content: bytes = b"line 1\nline 2\n") -> str:
        path = os.path.join(self.temp_dir.name, name)
        with open(path, "wb") as f:
            f.write(content)
        return path

    async def test_upload_uses_base_name(self):
        """Test that the object is named after the file and holds its bytes."""
        path = self.write_file("app.log")
        dispatcher = UploadDispatcher(self.backend, "logs")

        outcome = await dispatcher.run(UploadTask(file_path=path))

        self.assertTrue(outcome.succeeded)
        self.assertEqual(len(self.backend.uploads), 1)
        upload = self.backend.uploads[0]
        self.assertEqual(upload.container, "logs")
        self.assertEqual(upload.object_name, "app.log")
        self.assertEqual(upload.data, b"line 1\nline 2\n")

    async def test_final_upload_appends_sentinel(self):
        """Test that final uploads end with the trailer."""
        path = self.write_file("app.log.1")
        dispatcher = UploadDispatcher(self.backend, "logs")

        await dispatcher.run(UploadTask(file_path=path, is_final=True))

        self.assertEqual(
            self.backend.uploads[0].data,
            b"line 1\nline 2\n" + DEFAULT_SENTINEL_TRAILER.encode(),
        )

    async def test_custom_sentinel(self):
        """Test that the trailer can be configured."""
        path = self.write_file("app.log")
        dispatcher = UploadDispatcher(self.backend, "logs", sentinel="EOF\n")

        await dispatcher.run(UploadTask(file_path=path, is_final=True))

        self.assertTrue(self.backend.uploads[0].data.endswith(b"EOF\n"))

    async def test_missing_file_is_skipped(self):
        """Test that an unreadable file aborts only that task."""
        dispatcher = UploadDispatcher(self.backend, "logs")
        path = self.write_file("present.log")

        missing = await dispatcher.run(UploadTask(file_path=os.path.join(self.temp_dir.name, "gone.log")))
        present = await dispatcher.run(UploadTask(file_path=path))

        self.assertIsNone(missing)
        self.assertTrue(present.succeeded)
        self.assertEqual([u.object_name for u in self.backend.uploads], ["present.log"])

    async def test_non_success_status_is_reported(self):
        """Test that a 5xx status is a failed outcome, not an exception."""
        backend = RecordingBackend(status_code=503)
        dispatcher = UploadDispatcher(backend, "logs")

        outcome = await dispatcher.run(UploadTask(file_path=self.write_file("app.log")))

        self.assertEqual(outcome.status_code, 503)
        self.assertFalse(outcome.succeeded)

    async def test_transport_error_is_reported(self):
        """Test that an error with a 2xx status still counts as a failure."""
        backend = RecordingBackend(status_code=201, error=ConnectionResetError("reset"))
        dispatcher = UploadDispatcher(backend, "logs")

        outcome = await dispatcher.run(UploadTask(file_path=self.write_file("app.log")))

        self.assertFalse(outcome.succeeded)
        self.assertIsInstance(outcome.error, ConnectionResetError)

    async def test_unexpected_exception_is_contained(self):
        """Test that a raising backend yields a failed outcome."""
        dispatcher = UploadDispatcher(BrokenBackend(), "logs")

        outcome = await dispatcher.run(UploadTask(file_path=self.write_file("app.log")))

        self.assertIsInstance(outcome, UploadOutcome)
        self.assertEqual(outcome.status_code, 0)
        self.assertIsInstance(outcome.error, RuntimeError)

    async def test_single_worker_never_overlaps(self):
        """Test that one worker runs uploads strictly one after another."""
        backend = RecordingBackend(delay=0.05)
        dispatcher = UploadDispatcher(backend, "logs", max_workers=1)

        for i in range(4):
            await dispatcher.submit(UploadTask(file_path=self.write_file(f"app.log.{i}")))
        await dispatcher.join()

        self.assertEqual(len(backend.uploads), 4)
        self.assertEqual(backend.max_active, 1)
        uploads = sorted(backend.uploads, key=lambda u: u.started)
        for earlier, later in zip(uploads, uploads[1:]):
            self.assertLessEqual(earlier.finished, later.started)
        self.assertEqual(
            [u.object_name for u in uploads],
            ["app.log.0", "app.log.1", "app.log.2", "app.log.3"],
        )

    async def test_wider_pool_runs_concurrently(self):
        """Test that several workers upload different files at once."""
        backend = RecordingBackend(delay=0.1)
        dispatcher = UploadDispatcher(backend, "logs", max_workers=3)

        for i in range(3):
            await dispatcher.submit(UploadTask(file_path=self.write_file(f"app.log.{i}")))
        self.assertEqual(dispatcher.in_flight, 3)
        await dispatcher.join()

        self.assertEqual(dispatcher.in_flight, 0)
        self.assertGreater(backend.max_active, 1)
        self.assertLessEqual(backend.max_active, 3)

    async def test_fail_fast_when_pool_exhausted(self):
        """Test that non-blocking submission raises when all workers are busy."""
        backend = RecordingBackend(delay=0.2)
        dispatcher = UploadDispatcher(backend, "logs", max_workers=1, block_on_full=False)

        await dispatcher.submit(UploadTask(file_path=self.write_file("a.log")))
        with self.assertRaises(PoolExhaustedError):
            await dispatcher.submit(UploadTask(file_path=self.write_file("b.log")))
        await dispatcher.join()

        self.assertEqual([u.object_name for u in backend.uploads], ["a.log"])

    async def test_blocking_submit_waits_for_slot(self):
        """Test that blocking submission waits instead of failing."""
        backend = RecordingBackend(delay=0.05)
        dispatcher = UploadDispatcher(backend, "logs", max_workers=1)

        await dispatcher.submit(UploadTask(file_path=self.write_file("a.log")))
        await asyncio.wait_for(
            dispatcher.submit(UploadTask(file_path=self.write_file("b.log"))), timeout=2
        )
        await dispatcher.join()

        self.assertEqual(len(backend.uploads), 2)

    def test_invalid_worker_count(self):
        """Test that the pool needs at least one worker."""
        with self.assertRaises(ValueError):
            UploadDispatcher(self.backend, "logs", max_workers=0)


if __name__ == "__main__":
    unittest.main()

"""
Tests for the service entry point.
"""

import asyncio
import os
import tempfile
import unittest

from log_shipper.config import DEFAULT_SENTINEL_TRAILER, Settings
from log_shipper.main import build_controller, run_service
from log_shipper.models import PipelineResult
from log_shipper.storage.local import LocalDirectoryBackend


class TestBuildController(unittest.TestCase):
    """Unit tests for build_controller."""

    def test_settings_are_applied(self):
        """Test that the controller is configured from settings."""
        config = Settings(
            _env_file=None,
            WATCH_DIR="/tmp/logs",
            MAX_WORKERS=4,
            BLOCK_ON_FULL=False,
            TICK_INTERVAL=1.0,
            IDLE_THRESHOLD=30.0,
            IGNORE_SUFFIXES=[".swp", ".swx"],
        )

        controller = build_controller(config)

        self.assertEqual(str(controller.watch_dir), "/tmp/logs")
        self.assertEqual(controller.max_workers, 4)
        self.assertFalse(controller.block_on_full)
        self.assertEqual(controller.tick_interval, 1.0)
        self.assertEqual(controller.idle_threshold, 30.0)
        self.assertEqual(controller.ignore_suffixes, (".swp", ".swx"))
        self.assertIn("azureBlob", controller.registry)


class TestRunService(unittest.IsolatedAsyncioTestCase):
    """End to end run into the local storage provider."""

    def setUp(self):
        """Set up the test environment."""
        self.watch_dir = tempfile.TemporaryDirectory()
        self.storage_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.watch_dir.cleanup()
        self.storage_dir.cleanup()

    async def test_ships_and_finishes(self):
        """Test that a log file is shipped and the run finishes when idle."""
        config = Settings(
            _env_file=None,
            WATCH_DIR=self.watch_dir.name,
            STORAGE_PROVIDER="local",
            CONTAINER_NAME="logs",
            CREATE_CONTAINER=True,
            LOCAL_STORAGE_PATH=self.storage_dir.name,
            TICK_INTERVAL=0.05,
            IDLE_THRESHOLD=0.5,
        )

        run = asyncio.create_task(run_service(config))
        await asyncio.sleep(0.3)
        with open(os.path.join(self.watch_dir.name, "importer.log"), "w") as f:
            f.write("imported 10 rows\n")

        result = await asyncio.wait_for(run, timeout=10)

        self.assertEqual(result, PipelineResult.FINISHED)
        stored = await LocalDirectoryBackend(self.storage_dir.name).get_object("logs", "importer.log")
        self.assertEqual(stored, b"imported 10 rows\n" + DEFAULT_SENTINEL_TRAILER.encode())


if __name__ == "__main__":
    unittest.main()

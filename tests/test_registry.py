"""
Unit tests for the storage provider registry.
"""

import tempfile
import unittest

from log_shipper.config import Settings
from log_shipper.exceptions import StorageConnectionError, UnknownProviderError
from log_shipper.storage.local import LocalDirectoryBackend
from log_shipper.storage.registry import ProviderRegistry, build_default_registry
from tests.fakes import RecordingBackend


class TestProviderRegistry(unittest.TestCase):
    """Unit tests for the ProviderRegistry class."""

    def setUp(self):
        """Set up the test environment."""
        self.registry = ProviderRegistry()

    def test_lookup_builds_new_backend(self):
        """Test that lookup calls the registered factory every time."""
        self.registry.register("fake", RecordingBackend)

        first = self.registry.lookup("fake")
        second = self.registry.lookup("fake")

        self.assertIsInstance(first, RecordingBackend)
        self.assertIsNot(first, second)

    def test_first_registration_wins(self):
        """Test that a duplicate registration is ignored."""
        original = RecordingBackend()
        replacement = RecordingBackend()

        self.assertTrue(self.registry.register("fake", lambda: original))
        self.assertFalse(self.registry.register("fake", lambda: replacement))

        self.assertIs(self.registry.lookup("fake"), original)
        self.assertEqual(self.registry.names(), ["fake"])

    def test_unknown_provider(self):
        """Test that looking up an unregistered name fails."""
        with self.assertRaises(UnknownProviderError) as ctx:
            self.registry.lookup("gcs")

        self.assertEqual(str(ctx.exception), "storage provider gcs not found")
        self.assertIsInstance(ctx.exception, LookupError)

    def test_contains(self):
        """Test membership checks."""
        self.registry.register("fake", RecordingBackend)

        self.assertIn("fake", self.registry)
        self.assertNotIn("other", self.registry)


class TestDefaultRegistry(unittest.TestCase):
    """Unit tests for build_default_registry."""

    def setUp(self):
        """Set up the test environment."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config = Settings(LOCAL_STORAGE_PATH=self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_bundled_providers(self):
        """Test that every bundled backend is registered."""
        registry = build_default_registry(self.config)

        self.assertEqual(registry.names(), ["azureBlob", "gcs", "local", "s3"])

    def test_local_provider(self):
        """Test that the local provider uses the configured directory."""
        backend = build_default_registry(self.config).lookup("local")

        self.assertIsInstance(backend, LocalDirectoryBackend)
        self.assertEqual(str(backend.root), self.temp_dir.name)

    def test_azure_provider_requires_credentials(self):
        """Test that an unconfigured Azure account fails at lookup."""
        registry = build_default_registry(self.config)

        with self.assertRaises(StorageConnectionError):
            registry.lookup("azureBlob")


if __name__ == "__main__":
    unittest.main()

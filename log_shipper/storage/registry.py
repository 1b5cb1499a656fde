"""
Registry of storage providers.

Providers are registered by name with a zero-argument factory. The registry
is an explicit object handed to the pipeline controller; the first
registration of a name wins.
"""

import threading
from typing import Callable, Dict, List, Optional

import structlog

from log_shipper.config import Settings, settings as default_settings
from log_shipper.exceptions import UnknownProviderError
from log_shipper.storage.base import StorageBackend

logger = structlog.get_logger(__name__)

AZURE_BLOB = "azureBlob"
S3 = "s3"
GCS = "gcs"
LOCAL = "local"

Factory = Callable[[], StorageBackend]


class ProviderRegistry:
    """Name-keyed registry of storage backend factories."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: Dict[str, Factory] = {}

    def register(self, name: str, factory: Factory) -> bool:
        """
        Register a storage provider.

        A name that is already registered keeps its first factory; the
        duplicate is logged and ignored.

        Args:
            name: Provider name
            factory: Zero-argument callable building the backend

        Returns:
            Whether the factory was registered
        """
        with self._lock:
            if name in self._providers:
                logger.error("Storage provider was registered twice", provider=name)
                return False
            self._providers[name] = factory
        logger.info("Registered storage provider", provider=name)
        return True

    def lookup(self, name: str) -> StorageBackend:
        """
        Build the backend registered under a name.

        Args:
            name: Provider name

        Returns:
            A new backend instance

        Raises:
            UnknownProviderError: If no provider has that name
        """
        with self._lock:
            factory = self._providers.get(name)
        if factory is None:
            raise UnknownProviderError(name)
        return factory()

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._providers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._providers


def build_default_registry(config: Optional[Settings] = None) -> ProviderRegistry:
    """
    Create a registry with every bundled backend.

    Backend modules are imported lazily by the factories so a deployment
    only needs the SDK of the provider it actually uses.

    Args:
        config: Settings holding provider credentials

    Returns:
        Populated registry
    """
    config = config or default_settings
    registry = ProviderRegistry()

    def azure_blob() -> StorageBackend:
        from log_shipper.storage.azure_blob import AzureBlobBackend

        return AzureBlobBackend.connect(
            config.AZURE_STORAGE_ACCOUNT,
            config.AZURE_STORAGE_ACCESS_KEY.get_secret_value(),
            content_type=config.AZURE_CONTENT_TYPE,
        )

    def s3() -> StorageBackend:
        from log_shipper.storage.s3 import S3Backend

        return S3Backend.connect(
            region=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
        )

    def gcs() -> StorageBackend:
        from log_shipper.storage.gcs import GCSBackend

        return GCSBackend.connect(project_id=config.GCS_PROJECT_ID)

    def local() -> StorageBackend:
        from log_shipper.storage.local import LocalDirectoryBackend

        return LocalDirectoryBackend(config.LOCAL_STORAGE_PATH)

    registry.register(AZURE_BLOB, azure_blob)
    registry.register(S3, s3)
    registry.register(GCS, gcs)
    registry.register(LOCAL, local)
    return registry

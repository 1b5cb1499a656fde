"""
Storage package for different object storage destinations.

This package provides the storage backend interface, the provider
registry, and implementations for Azure Blob Storage, Amazon S3,
Google Cloud Storage and a local directory.
"""

from log_shipper.storage.base import StorageBackend
from log_shipper.storage.registry import ProviderRegistry, build_default_registry

__all__ = ["StorageBackend", "ProviderRegistry", "build_default_registry"]

"""
Base storage backend for abstracting object storage destinations.

This module defines the abstract base class for storage backends,
ensuring a consistent interface across different storage implementations.
"""

import abc
import asyncio
import functools
from typing import Any, Callable, TypeVar

from log_shipper.models import UploadOutcome

T = TypeVar("T")


class StorageBackend(abc.ABC):
    """Abstract base class for storage backends."""

    #: Name the backend is registered under.
    provider_name: str = ""

    @abc.abstractmethod
    async def create_container(self, container_name: str) -> UploadOutcome:
        """
        Create a container (bucket) in the storage backend.

        A container that already exists is not treated specially; it is
        reported as a failed outcome (usually status 409) and the caller
        decides whether to tolerate it.

        Args:
            container_name: Name of the container to create

        Returns:
            Outcome of the call
        """
        pass

    @abc.abstractmethod
    async def upload_object(
            self, container_name: str, object_name: str, data: bytes
    ) -> UploadOutcome:
        """
        Upload bytes as an object.

        Args:
            container_name: Destination container
            object_name: Destination object name
            data: Object contents

        Returns:
            Outcome of the call, with the raw status code and any error
        """
        pass

    async def _run_blocking(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking SDK call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(func, *args, **kwargs)
        )

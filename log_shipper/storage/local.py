"""
Local directory storage backend.

Containers are subdirectories of a root directory and objects are files
inside them. Useful for development and for checking uploads end to end.
"""

import os
from pathlib import Path
from typing import Union

import aiofiles
import structlog

from log_shipper.models import UploadOutcome
from log_shipper.storage.base import StorageBackend

logger = structlog.get_logger(__name__)


class LocalDirectoryBackend(StorageBackend):
    """Storage backend writing objects to the local filesystem."""

    provider_name = "local"

    def __init__(self, root: Union[str, Path]) -> None:
        """
        Initialize the local storage backend.

        Args:
            root: Directory holding one subdirectory per container
        """
        self.root = Path(root)

        # Ensure the directory exists
        os.makedirs(self.root, exist_ok=True)

    async def create_container(self, container_name: str) -> UploadOutcome:
        try:
            path = self._container_path(container_name)
            path.mkdir()
        except ValueError as e:
            return UploadOutcome(status_code=400, error=e)
        except FileExistsError as e:
            return UploadOutcome(status_code=409, error=e)
        except OSError as e:
            return UploadOutcome(status_code=0, error=e)
        return UploadOutcome(status_code=201)

    async def upload_object(
            self, container_name: str, object_name: str, data: bytes
    ) -> UploadOutcome:
        try:
            container = self._container_path(container_name)
            self._check_name(object_name)
        except ValueError as e:
            return UploadOutcome(status_code=400, error=e)

        if not container.is_dir():
            return UploadOutcome(
                status_code=404,
                error=FileNotFoundError(f"Container not found: {container_name}"),
            )

        try:
            async with aiofiles.open(container / object_name, "wb") as f:
                await f.write(data)
        except OSError as e:
            return UploadOutcome(status_code=0, error=e)
        return UploadOutcome(status_code=201)

    async def get_object(self, container_name: str, object_name: str) -> bytes:
        """
        Read a stored object back.

        Raises:
            FileNotFoundError: If the object does not exist
        """
        self._check_name(object_name)
        async with aiofiles.open(self._container_path(container_name) / object_name, "rb") as f:
            return await f.read()

    def _container_path(self, container_name: str) -> Path:
        self._check_name(container_name)
        return self.root / container_name

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or name in (".", "..") or "/" in name or os.sep in name:
            raise ValueError(f"Invalid name: {name!r}")

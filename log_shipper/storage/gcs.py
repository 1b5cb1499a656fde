"""
Google Cloud Storage backend.

This module uploads objects to GCS buckets. Containers map to buckets.
"""

from typing import Any, Optional

import structlog
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from log_shipper.exceptions import StorageConnectionError
from log_shipper.models import UploadOutcome
from log_shipper.storage.base import StorageBackend

logger = structlog.get_logger(__name__)

_OK = 200


class GCSBackend(StorageBackend):
    """Storage backend for Google Cloud Storage."""

    provider_name = "gcs"

    def __init__(self, gcs_client: storage.Client, content_type: str = "text/plain") -> None:
        self.gcs_client = gcs_client
        self.content_type = content_type

    @classmethod
    def connect(
            cls,
            project_id: Optional[str] = None,
            credentials_path: Optional[str] = None,
            content_type: str = "text/plain",
    ) -> "GCSBackend":
        """
        Create the GCS client.

        Args:
            project_id: GCP project ID (optional, can use default from credentials)
            credentials_path: Path to GCP service account credentials JSON (optional)
            content_type: Content type set on every uploaded object

        Returns:
            Connected backend

        Raises:
            StorageConnectionError: If the client cannot be created
        """
        try:
            if credentials_path:
                gcs_client = storage.Client.from_service_account_json(credentials_path)
            else:
                gcs_client = storage.Client(project=project_id)
        except (GoogleAuthError, OSError, ValueError) as e:
            raise StorageConnectionError(f"Failed to create GCS client: {str(e)}") from e

        logger.info("Created GCS client", project=gcs_client.project)
        return cls(gcs_client, content_type=content_type)

    async def create_container(self, container_name: str) -> UploadOutcome:
        return await self._call(self.gcs_client.create_bucket, container_name)

    async def upload_object(
            self, container_name: str, object_name: str, data: bytes
    ) -> UploadOutcome:
        blob = self.gcs_client.bucket(container_name).blob(object_name)
        return await self._call(
            blob.upload_from_string, data, content_type=self.content_type
        )

    async def _call(self, method, *args: Any, **kwargs: Any) -> UploadOutcome:
        try:
            await self._run_blocking(method, *args, **kwargs)
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            status = getattr(e, "code", None)
            return UploadOutcome(status_code=status if isinstance(status, int) else 0, error=e)

        return UploadOutcome(status_code=_OK)

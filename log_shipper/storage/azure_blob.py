"""
Azure Blob Storage backend.

This module uploads objects to Azure Blob Storage containers using a shared
account key.
"""

from typing import Any, Dict, Optional

import structlog
from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import AzureError
from azure.storage.blob import BlobServiceClient, ContentSettings

from log_shipper.exceptions import StorageConnectionError
from log_shipper.models import UploadOutcome
from log_shipper.storage.base import StorageBackend

logger = structlog.get_logger(__name__)

# Status used when the SDK call succeeded but no response was observed.
_CREATED = 201


class AzureBlobBackend(StorageBackend):
    """Storage backend for Azure Blob Storage."""

    provider_name = "azureBlob"

    def __init__(
            self,
            service_client: BlobServiceClient,
            content_type: str = "text/plain",
            public_access: Optional[str] = None,
    ) -> None:
        """
        Initialize the backend around a connected service client.

        Use :meth:`connect` to build one from account credentials.

        Args:
            service_client: Connected blob service client
            content_type: Content type set on every uploaded blob
            public_access: Public access level for created containers
                ('container', 'blob' or None for private)
        """
        self.service_client = service_client
        self.content_type = content_type
        self.public_access = public_access

    @classmethod
    def connect(
            cls,
            account_name: str,
            account_key: str,
            *,
            endpoint: Optional[str] = None,
            content_type: str = "text/plain",
            public_access: Optional[str] = None,
    ) -> "AzureBlobBackend":
        """
        Build the signing credential and service client for an account.

        Args:
            account_name: Storage account name
            account_key: Storage account access key
            endpoint: Service URL, defaults to the public blob endpoint
            content_type: Content type set on every uploaded blob
            public_access: Public access level for created containers

        Returns:
            Connected backend

        Raises:
            StorageConnectionError: If the credential or client cannot be built
        """
        if not account_name or not account_key:
            raise StorageConnectionError(
                "Azure storage account name and access key are required"
            )

        account_url = endpoint or f"https://{account_name}.blob.core.windows.net"
        try:
            credential = AzureNamedKeyCredential(account_name, account_key)
            service_client = BlobServiceClient(account_url, credential=credential)
        except (TypeError, ValueError, AzureError) as e:
            raise StorageConnectionError(
                f"Failed to set up Azure blob client for {account_url}: {str(e)}"
            ) from e

        logger.info("Connected to Azure Blob Storage", account_url=account_url)
        return cls(service_client, content_type=content_type, public_access=public_access)

    async def create_container(self, container_name: str) -> UploadOutcome:
        return await self._call(
            self.service_client.create_container,
            container_name,
            public_access=self.public_access,
        )

    async def upload_object(
            self, container_name: str, object_name: str, data: bytes
    ) -> UploadOutcome:
        blob_client = self.service_client.get_blob_client(
            container=container_name, blob=object_name
        )
        return await self._call(
            blob_client.upload_blob,
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=self.content_type),
        )

    async def _call(self, method, *args: Any, **kwargs: Any) -> UploadOutcome:
        """
        Invoke an SDK method and capture the raw HTTP status.

        Args:
            method: Blocking SDK method
            *args: Positional arguments for the method
            **kwargs: Keyword arguments for the method

        Returns:
            Outcome with the response status and any error
        """
        seen: Dict[str, int] = {}

        def capture_status(response) -> None:
            seen["status"] = response.http_response.status_code

        try:
            await self._run_blocking(method, *args, raw_response_hook=capture_status, **kwargs)
        except AzureError as e:
            status = getattr(e, "status_code", None) or seen.get("status", 0)
            return UploadOutcome(status_code=status, error=e)

        return UploadOutcome(status_code=seen.get("status", _CREATED))

"""
Amazon S3 storage backend.

This module uploads objects to S3 buckets (or any S3 compatible endpoint).
Containers map to buckets.
"""

from typing import Any, Dict, Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from log_shipper.exceptions import StorageConnectionError
from log_shipper.models import UploadOutcome
from log_shipper.storage.base import StorageBackend

logger = structlog.get_logger(__name__)


class S3Backend(StorageBackend):
    """Storage backend for Amazon S3."""

    provider_name = "s3"

    def __init__(
            self, s3_client: Any, region: Optional[str] = None, content_type: str = "text/plain"
    ) -> None:
        self.s3_client = s3_client
        self.region = region
        self.content_type = content_type

    @classmethod
    def connect(
            cls,
            region: Optional[str] = None,
            endpoint_url: Optional[str] = None,
            aws_access_key_id: Optional[str] = None,
            aws_secret_access_key: Optional[str] = None,
            content_type: str = "text/plain",
    ) -> "S3Backend":
        """
        Create the S3 client.

        Credentials default to the usual AWS environment and config files.

        Args:
            region: AWS region (optional, defaults to us-east-1)
            endpoint_url: Custom endpoint for S3 compatible services
            aws_access_key_id: AWS access key ID (optional)
            aws_secret_access_key: AWS secret access key (optional)
            content_type: Content type set on every uploaded object

        Returns:
            Connected backend

        Raises:
            StorageConnectionError: If the client cannot be created
        """
        region = region or "us-east-1"
        try:
            s3_client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
            )
        except (BotoCoreError, ValueError) as e:
            raise StorageConnectionError(f"Failed to create S3 client: {str(e)}") from e

        logger.info("Created S3 client", region=region, endpoint_url=endpoint_url)
        return cls(s3_client, region=region, content_type=content_type)

    async def create_container(self, container_name: str) -> UploadOutcome:
        kwargs: Dict[str, Any] = {"Bucket": container_name}
        # us-east-1 rejects an explicit location constraint
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        return await self._call(self.s3_client.create_bucket, **kwargs)

    async def upload_object(
            self, container_name: str, object_name: str, data: bytes
    ) -> UploadOutcome:
        return await self._call(
            self.s3_client.put_object,
            Bucket=container_name,
            Key=object_name,
            Body=data,
            ContentType=self.content_type,
        )

    async def _call(self, method, **kwargs: Any) -> UploadOutcome:
        try:
            response = await self._run_blocking(method, **kwargs)
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
            return UploadOutcome(status_code=status, error=e)
        except BotoCoreError as e:
            return UploadOutcome(status_code=0, error=e)

        return UploadOutcome(status_code=response["ResponseMetadata"]["HTTPStatusCode"])

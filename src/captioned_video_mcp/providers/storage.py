"""S3 storage provider using boto3."""

import asyncio
import io
import logging
from functools import partial

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from captioned_video_mcp.errors import StorageError
from .base import StorageProvider

logger = logging.getLogger(__name__)


class S3StorageProvider(StorageProvider):
    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        access_key: str = "",
        secret_key: str = "",
        endpoint_url: str | None = None,
    ):
        self.bucket = bucket
        self.region = region
        self.s3_client = boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            config=Config(signature_version="s3v4"),
        )

    def durable_reference(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, data: bytes, key: str, content_type: str) -> str:
        await self._run(
            self.s3_client.upload_fileobj,
            io.BytesIO(data),
            self.bucket,
            key,
            ExtraArgs={"ContentType": content_type},
        )
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")
        return self.durable_reference(key)

    async def presign(self, key: str, ttl: int) -> str:
        return await self._run(
            self.s3_client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=ttl,
        )

    async def _run(self, fn, *args, **kwargs):
        """Run a blocking boto3 call in the default executor."""
        if not self.bucket:
            raise StorageError("S3 bucket not configured")
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args, **kwargs))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 operation failed: {e}") from e

"""Storage backends that docgate forwards documents to."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO, Protocol, runtime_checkable
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from docgate.core.exceptions import BackendError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


@dataclass(frozen=True)
class UploadArtifact:
    """What the backend hands back for a stored document.

    Attributes:
        public_id: Opaque reference used later to delete the document
        url: Where the document can be retrieved
    """

    public_id: str
    url: str

    def to_dict(self) -> dict:
        return {"url": self.url, "public_id": self.public_id}


@runtime_checkable
class StorageBackend(Protocol):
    """The contract docgate needs from an object store."""

    async def upload(
        self,
        stream: BinaryIO,
        resource_type: str,
        filename: str | None = None,
    ) -> UploadArtifact:
        """Store ``stream`` as-is and return its reference."""
        ...

    async def destroy(self, public_id: str, resource_type: str) -> dict:
        """Delete a stored document and return the backend's result."""
        ...


@runtime_checkable
class S3ClientProtocol(Protocol):
    """The S3 operations used by :class:`S3StorageBackend`."""

    async def put_object(self, Bucket: str, Key: str, Body: Any, **kwargs) -> dict[str, Any]:
        ...

    async def head_object(self, Bucket: str, Key: str, **kwargs) -> dict[str, Any]:
        ...

    async def delete_object(self, Bucket: str, Key: str, **kwargs) -> dict[str, Any]:
        ...


class S3StorageBackend:
    """Stores documents in an S3-compatible bucket.

    Objects are written opaquely (``application/octet-stream``) under a key
    namespaced by resource type, so a ``raw`` document is never processed as
    anything but bytes. Deletion answers with ``{"result": "ok"}`` or
    ``{"result": "not found"}``.

    Example:
        async with manager.get_async_client() as s3_client:
            backend = S3StorageBackend(s3_client, "my-bucket")
            artifact = await backend.upload(fileobj, "raw", "report.pdf")
    """

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket_name: str,
        prefix: str = "",
        public_url: str | None = None,
        endpoint_url: str | None = None,
        region: str = "us-east-1",
    ):
        """Initialize the backend.

        Args:
            s3_client: An open async S3 client
            bucket_name: Bucket that receives the documents
            prefix: Key prefix for every stored document
            public_url: Base URL documents are served from, if not the bucket
            endpoint_url: Custom S3 endpoint (LocalStack, MinIO)
            region: Bucket region, used to build default URLs
        """
        self.s3_client = s3_client
        self.bucket_name = bucket_name
        self.prefix = prefix
        self.public_url = public_url
        self.endpoint_url = endpoint_url
        self.region = region

    def _generate_key(self, resource_type: str, filename: str | None) -> str:
        """Generate a unique key for a new document."""
        ext = ""
        if filename and "." in filename:
            ext = "." + filename.rsplit(".", 1)[-1].lower()

        date_prefix = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        return f"{self.prefix}{resource_type}/{date_prefix}/{uuid.uuid4().hex}{ext}"

    def _namespace(self, resource_type: str) -> str:
        return f"{self.prefix}{resource_type}/"

    def url_for(self, key: str) -> str:
        quoted = quote(key)
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{quoted}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{quoted}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quoted}"

    async def upload(
        self,
        stream: BinaryIO,
        resource_type: str,
        filename: str | None = None,
    ) -> UploadArtifact:
        key = self._generate_key(resource_type, filename)
        metadata = {"resource-type": resource_type}
        if filename:
            metadata["original-filename"] = quote(filename)

        try:
            await self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=stream,
                ContentType="application/octet-stream",
                Metadata=metadata,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"put_object failed for {key}: {e}")
            raise BackendError(str(e), operation="put_object", original_error=e)

        return UploadArtifact(public_id=key, url=self.url_for(key))

    async def destroy(self, public_id: str, resource_type: str) -> dict:
        # References outside this resource type's namespace are not ours
        if not public_id.startswith(self._namespace(resource_type)):
            return {"result": "not found"}

        try:
            await self.s3_client.head_object(Bucket=self.bucket_name, Key=public_id)
        except ClientError as e:
            if e.response["Error"]["Code"] in NOT_FOUND_CODES:
                return {"result": "not found"}
            logger.error(f"head_object failed for {public_id}: {e}")
            raise BackendError(str(e), operation="head_object", original_error=e)
        except BotoCoreError as e:
            logger.error(f"head_object failed for {public_id}: {e}")
            raise BackendError(str(e), operation="head_object", original_error=e)

        try:
            await self.s3_client.delete_object(Bucket=self.bucket_name, Key=public_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"delete_object failed for {public_id}: {e}")
            raise BackendError(str(e), operation="delete_object", original_error=e)

        return {"result": "ok"}

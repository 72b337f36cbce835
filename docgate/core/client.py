"""S3 client manager for the storage backend connection."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from aiobotocore.client import AioBaseClient
from aiobotocore.session import get_session
from boto3.session import Session
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from docgate.core.exceptions import ConfigurationError
from docgate.core.settings import DocGateSettings

logger = logging.getLogger(__name__)


def adjust_endpoint_url(
    endpoint_url: str | None, bucket_name: str | None
) -> str | None:
    """Adjust endpoint URL for path-style addressing if needed.

    Args:
        endpoint_url: The S3 endpoint URL
        bucket_name: The S3 bucket name

    Returns:
        Adjusted endpoint URL or None
    """
    if not endpoint_url:
        return None
    if bucket_name and f"{bucket_name}." in endpoint_url:
        return endpoint_url.replace(f"{bucket_name}.", "")
    return endpoint_url


class StorageClientManager:
    """Creates S3 clients for the configured backend.

    The async client serves the request path; a short-lived sync client is
    only used to check credentials before the service starts accepting
    traffic.
    """

    def __init__(self, settings: DocGateSettings):
        self.settings = settings
        self.endpoint_url = adjust_endpoint_url(
            settings.aws_url, settings.aws_bucket_name
        )
        # Uploads are attempted once; only the startup check may retry
        self._request_config = Config(
            s3={"addressing_style": "path"},
            retries={"max_attempts": 1, "mode": "standard"},
        )
        self._startup_config = Config(
            s3={"addressing_style": "path"},
            retries={
                "max_attempts": settings.aws_startup_retry_attempts,
                "mode": "standard",
            },
        )
        self._async_session = None

    def _client_kwargs(self, config: Config) -> dict:
        return {
            "region_name": self.settings.aws_default_region,
            "aws_access_key_id": self.settings.aws_access_key_id,
            "aws_secret_access_key": self.settings.aws_secret_access_key,
            "endpoint_url": self.endpoint_url,
            "config": config,
        }

    def get_sync_client(self) -> BaseClient:
        return Session().client("s3", **self._client_kwargs(self._startup_config))

    def verify_backend(self) -> None:
        """Check that the credentials can reach the configured bucket.

        Raises:
            ConfigurationError: If the bucket is missing or unreachable
        """
        bucket = self.settings.aws_bucket_name
        client = self.get_sync_client()
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("404", "NoSuchBucket", "NotFound"):
                raise ConfigurationError(f"Bucket '{bucket}' not found")
            if error_code in ("403", "AccessDenied"):
                raise ConfigurationError(
                    f"Access denied to bucket '{bucket}'; check AWS_ACCESS_KEY_ID "
                    "and AWS_SECRET_ACCESS_KEY"
                )
            raise ConfigurationError(f"Error checking bucket '{bucket}': {e}")
        except BotoCoreError as e:
            raise ConfigurationError(
                f"Could not reach storage at {self.endpoint_url or 'AWS'}: {e}"
            )
        finally:
            client.close()

        logger.info(f"Storage backend reachable (bucket={bucket})")

    @asynccontextmanager
    async def get_async_client(self) -> AsyncGenerator[AioBaseClient, None]:
        """Open an aiobotocore S3 client for the duration of the context."""
        if self._async_session is None:
            self._async_session = get_session()

        async with self._async_session.create_client(
            "s3", **self._client_kwargs(self._request_config)
        ) as client:
            yield client

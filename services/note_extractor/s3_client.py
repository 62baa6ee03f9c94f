"""S3 client for reading the Joplin export bucket."""

import asyncio
import logging
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from services.note_extractor.retry import retry_with_exponential_backoff
from shared.exceptions import ConfigMissing, NotFound, TransientIO
from shared.models import ObjectListing, RawObject

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


class S3Client:
    """Lists and fetches objects of an S3 or S3-compatible bucket."""

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        connect_timeout: int = 10,
        read_timeout: int = 30
    ):
        """
        Initialize S3 client.

        Args:
            bucket_name: S3 bucket name
            region: AWS region
            access_key_id: AWS access key ID (optional, uses default credentials if not provided)
            secret_access_key: AWS secret access key (optional)
            endpoint_url: Custom endpoint for S3-compatible services (optional)
            connect_timeout: Seconds to wait for a connection
            read_timeout: Seconds to wait for a response
        """
        self.bucket_name = bucket_name
        self.region = region

        client_config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            # Most S3-compatible services only support path-style addressing
            s3={"addressing_style": "path"} if endpoint_url else None
        )

        client_kwargs = {
            "region_name": region,
            "config": client_config,
        }
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url

        # Initialize boto3 S3 client
        if access_key_id and secret_access_key:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                **client_kwargs
            )
        else:
            # Use default credentials (from environment or IAM role)
            self.s3_client = boto3.client('s3', **client_kwargs)

    async def list_objects(self, prefix: str = "") -> List[ObjectListing]:
        """
        List every object under a prefix.

        Args:
            prefix: Key prefix to restrict the listing to

        Returns:
            Listing entries in the order the provider returns them

        Raises:
            TransientIO: If the bucket cannot be listed
        """
        try:
            listings = await asyncio.to_thread(self._list_all, prefix)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list bucket {self.bucket_name}: {e}", exc_info=True)
            raise TransientIO(f"Failed to list bucket {self.bucket_name}: {e}") from e

        logger.info(f"Listed {len(listings)} objects under '{prefix}' in {self.bucket_name}")
        return listings

    def _list_all(self, prefix: str) -> List[ObjectListing]:
        paginator = self.s3_client.get_paginator('list_objects_v2')
        listings = []
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            for item in page.get('Contents', []):
                key = item.get('Key')
                if key:
                    listings.append(ObjectListing(key=key, size_bytes=item.get('Size', 0)))
        return listings

    @retry_with_exponential_backoff(
        max_retries=2,
        initial_delay=0.5,
        exponential_base=2.0,
        exceptions=(TransientIO,)
    )
    async def get_object(self, key: str) -> RawObject:
        """
        Fetch one object.

        Args:
            key: S3 object key

        Returns:
            The object's bytes and size

        Raises:
            NotFound: If the key no longer exists
            TransientIO: If the fetch failed for any other reason
        """
        try:
            return await asyncio.to_thread(self._get, key)
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            if code in _MISSING_KEY_CODES:
                raise NotFound(f"Object {key} not found", key=key) from e
            raise TransientIO(f"Failed to fetch {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise TransientIO(f"Failed to fetch {key}: {e}", key=key) from e

    def _get(self, key: str) -> RawObject:
        response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        body = response['Body'].read()
        return RawObject(key=key, body=body, size_bytes=response.get('ContentLength', len(body)))

    async def test_connection(self) -> bool:
        """
        Check that the bucket is reachable with the configured credentials.

        Returns:
            True if successful, False otherwise
        """
        try:
            await asyncio.to_thread(self.s3_client.head_bucket, Bucket=self.bucket_name)
            logger.info(f"S3 connection to {self.bucket_name} successful")
            return True

        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 connection test failed: {e}", exc_info=True)
            return False


def build_s3_client(aws_config: dict) -> S3Client:
    """
    Create an S3 client from get_aws_config() output.

    Raises:
        ConfigMissing: If the bucket or credentials are not configured
    """
    if not aws_config.get("s3_bucket"):
        raise ConfigMissing("No S3 bucket configured (AWS_S3_BUCKET)")
    if not aws_config.get("access_key_id") or not aws_config.get("secret_access_key"):
        raise ConfigMissing(
            "No S3 credentials configured (AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY)"
        )

    return S3Client(
        bucket_name=aws_config["s3_bucket"],
        region=aws_config.get("region") or "us-east-1",
        access_key_id=aws_config["access_key_id"],
        secret_access_key=aws_config["secret_access_key"],
        endpoint_url=aws_config.get("endpoint_url"),
        connect_timeout=aws_config.get("connect_timeout", 10),
        read_timeout=aws_config.get("read_timeout", 30)
    )

"""Unit tests for the S3 client."""

import io
import pytest
from unittest.mock import AsyncMock, Mock, patch
from botocore.exceptions import ClientError, EndpointConnectionError

from services.note_extractor.s3_client import S3Client, build_s3_client
from shared.exceptions import ConfigMissing, NotFound, TransientIO
from shared.models import ObjectListing


def client_error(code, operation="GetObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestS3Client:
    """Tests for S3Client class."""

    @pytest.fixture
    def mock_boto_client(self):
        """Create a mock boto3 S3 client."""
        return Mock()

    @pytest.fixture
    def client(self, mock_boto_client):
        """Create an S3Client instance with a mocked boto3 client."""
        with patch('services.note_extractor.s3_client.boto3.client', return_value=mock_boto_client):
            return S3Client(
                bucket_name="notes",
                access_key_id="key",
                secret_access_key="secret"
            )

    @pytest.fixture
    def no_sleep(self):
        """Skip the backoff delays."""
        with patch('services.note_extractor.retry.asyncio.sleep', new_callable=AsyncMock) as sleep:
            yield sleep

    def test_endpoint_uses_path_addressing(self):
        """Test the S3-compatible endpoint configuration."""
        with patch('services.note_extractor.s3_client.boto3.client') as boto_client:
            S3Client(
                bucket_name="notes",
                access_key_id="key",
                secret_access_key="secret",
                endpoint_url="https://minio.local:9000"
            )

        kwargs = boto_client.call_args.kwargs
        assert kwargs["endpoint_url"] == "https://minio.local:9000"
        assert kwargs["aws_access_key_id"] == "key"
        assert kwargs["config"].s3 == {"addressing_style": "path"}

    @pytest.mark.asyncio
    async def test_list_objects_across_pages(self, client, mock_boto_client):
        """Test that every page of the listing is collected in order."""
        paginator = Mock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "export/a.md", "Size": 10}, {"Key": "export/b.md", "Size": 20}]},
            {"Contents": [{"Key": "export/c.png", "Size": 30}]},
            {},
        ]
        mock_boto_client.get_paginator.return_value = paginator

        listings = await client.list_objects("export/")

        assert listings == [
            ObjectListing(key="export/a.md", size_bytes=10),
            ObjectListing(key="export/b.md", size_bytes=20),
            ObjectListing(key="export/c.png", size_bytes=30),
        ]
        mock_boto_client.get_paginator.assert_called_once_with('list_objects_v2')
        paginator.paginate.assert_called_once_with(Bucket="notes", Prefix="export/")

    @pytest.mark.asyncio
    async def test_list_objects_failure(self, client, mock_boto_client):
        """Test that a listing error becomes TransientIO."""
        mock_boto_client.get_paginator.return_value.paginate.side_effect = client_error(
            "AccessDenied", "ListObjectsV2"
        )

        with pytest.raises(TransientIO):
            await client.list_objects()

    @pytest.mark.asyncio
    async def test_get_object(self, client, mock_boto_client):
        """Test fetching an object's bytes."""
        mock_boto_client.get_object.return_value = {
            "Body": io.BytesIO(b"Title\n\nid: n1\ntype_: 1"),
            "ContentLength": 22
        }

        raw = await client.get_object("export/n1.md")

        assert raw.key == "export/n1.md"
        assert raw.body == b"Title\n\nid: n1\ntype_: 1"
        assert raw.size_bytes == 22
        mock_boto_client.get_object.assert_called_once_with(Bucket="notes", Key="export/n1.md")

    @pytest.mark.asyncio
    async def test_get_object_missing_key_not_retried(self, client, mock_boto_client, no_sleep):
        """Test that a vanished key raises NotFound straight away."""
        mock_boto_client.get_object.side_effect = client_error("NoSuchKey")

        with pytest.raises(NotFound) as exc_info:
            await client.get_object("export/gone.md")

        assert exc_info.value.key == "export/gone.md"
        assert mock_boto_client.get_object.call_count == 1
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_object_retries_transient_errors(self, client, mock_boto_client, no_sleep):
        """Test the backoff on transient failures."""
        mock_boto_client.get_object.side_effect = [
            EndpointConnectionError(endpoint_url="https://s3.amazonaws.com"),
            {"Body": io.BytesIO(b"ok"), "ContentLength": 2},
        ]

        raw = await client.get_object("export/n1.md")

        assert raw.body == b"ok"
        assert mock_boto_client.get_object.call_count == 2
        no_sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_get_object_gives_up(self, client, mock_boto_client, no_sleep):
        """Test that TransientIO surfaces after the last attempt."""
        mock_boto_client.get_object.side_effect = client_error("SlowDown")

        with pytest.raises(TransientIO):
            await client.get_object("export/n1.md")

        assert mock_boto_client.get_object.call_count == 3
        assert [call.args[0] for call in no_sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_connection_success(self, client, mock_boto_client):
        """Test a reachable bucket."""
        assert await client.test_connection() is True
        mock_boto_client.head_bucket.assert_called_once_with(Bucket="notes")

    @pytest.mark.asyncio
    async def test_connection_failure(self, client, mock_boto_client):
        """Test an unreachable bucket."""
        mock_boto_client.head_bucket.side_effect = client_error("403", "HeadBucket")

        assert await client.test_connection() is False


class TestBuildS3Client:
    """Tests for build_s3_client."""

    def test_missing_bucket(self):
        with pytest.raises(ConfigMissing):
            build_s3_client({"access_key_id": "key", "secret_access_key": "secret"})

    def test_missing_credentials(self):
        with pytest.raises(ConfigMissing):
            build_s3_client({"s3_bucket": "notes", "access_key_id": "key"})

    def test_builds_client(self):
        with patch('services.note_extractor.s3_client.boto3.client'):
            client = build_s3_client({
                "s3_bucket": "notes",
                "region": "eu-west-1",
                "access_key_id": "key",
                "secret_access_key": "secret",
                "endpoint_url": None,
            })

        assert client.bucket_name == "notes"
        assert client.region == "eu-west-1"

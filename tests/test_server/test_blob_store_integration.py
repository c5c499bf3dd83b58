"""Integration tests for the S3-compatible blob store.

These tests talk to a running MinIO (e.g. from Docker Compose) and are
deselected by default. Run them with ``pytest -m integration``.
"""
import os
from typing import Final

import boto3
import pytest
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from server.apps.drive.infrastructure.storage import DriveStorage

_TEST_BUCKET: Final = 'drive-integration'
_TEST_BLOB_REF: Final = 'blobs/integration.bin'
_TEST_BLOB_CONTENT: Final = b'drive integration blob'


def _connection_options() -> dict[str, str]:
    return {
        'endpoint_url': os.getenv('MINIO_ENDPOINT', 'http://minio:9000'),
        'access_key': os.getenv('MINIO_ROOT_USER', 'minioadmin'),
        'secret_key': os.getenv('MINIO_ROOT_PASSWORD', 'minioadmin'),
    }


@pytest.fixture
def s3_client() -> BaseClient:
    """Create S3 client for MinIO.

    Returns:
        Configured boto3 S3 client for MinIO.
    """
    options = _connection_options()
    return boto3.client(
        's3',
        endpoint_url=options['endpoint_url'],
        aws_access_key_id=options['access_key'],
        aws_secret_access_key=options['secret_key'],
        region_name='us-east-1',
    )


@pytest.fixture
def test_bucket(s3_client: BaseClient) -> str:
    """Ensure test bucket exists.

    Args:
        s3_client: boto3 S3 client.

    Returns:
        Name of the test bucket.
    """
    try:
        s3_client.head_bucket(Bucket=_TEST_BUCKET)
    except ClientError:
        s3_client.create_bucket(Bucket=_TEST_BUCKET)

    return _TEST_BUCKET


@pytest.fixture
def drive_storage(test_bucket: str) -> DriveStorage:
    """Drive storage backend bound to the MinIO test bucket.

    Args:
        test_bucket: Name of the test bucket.

    Returns:
        DriveStorage instance.
    """
    return DriveStorage(
        bucket_name=test_bucket,
        region_name='us-east-1',
        **_connection_options(),
    )


@pytest.mark.integration
def test_storage_sees_uploaded_blob(
    s3_client: BaseClient,
    drive_storage: DriveStorage,
    test_bucket: str,
) -> None:
    """Test a blob uploaded outside the core is visible to the backend.

    Args:
        s3_client: boto3 S3 client.
        drive_storage: Storage under test.
        test_bucket: Name of the test bucket.
    """
    s3_client.put_object(
        Bucket=test_bucket,
        Key=_TEST_BLOB_REF,
        Body=_TEST_BLOB_CONTENT,
    )

    assert drive_storage.exists(_TEST_BLOB_REF)
    assert drive_storage.size(_TEST_BLOB_REF) == len(_TEST_BLOB_CONTENT)


@pytest.mark.integration
def test_storage_deletes_blob(
    s3_client: BaseClient,
    drive_storage: DriveStorage,
    test_bucket: str,
) -> None:
    """Test deleting a blob through the drive storage backend.

    Args:
        s3_client: boto3 S3 client.
        drive_storage: Storage under test.
        test_bucket: Name of the test bucket.
    """
    s3_client.put_object(
        Bucket=test_bucket,
        Key=_TEST_BLOB_REF,
        Body=_TEST_BLOB_CONTENT,
    )

    drive_storage.delete(_TEST_BLOB_REF)

    with pytest.raises(ClientError) as exc_info:
        s3_client.head_object(Bucket=test_bucket, Key=_TEST_BLOB_REF)

    assert exc_info.value.response['Error']['Code'] == '404'

"""Shared fixtures for drive app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.drive.models import UserQuota

User = get_user_model()

_BUCKET = 'drive'
_MB = 1024 * 1024


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture(autouse=True)
def mock_s3():
    """Mock S3 service with drive bucket.

    Autouse: purges delete blobs, no test may reach real S3.

    Yields:
        boto3 S3 resource with drive bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=_BUCKET)
        yield conn


@pytest.fixture
def bucket(mock_s3):
    """Drive bucket inside the mocked S3.

    Returns:
        boto3 Bucket resource.
    """
    return mock_s3.Bucket(_BUCKET)


@pytest.fixture
def quota_100mb(user):
    """Give the test user a 100 MB quota.

    Returns:
        UserQuota instance.
    """
    return UserQuota.objects.create(
        user=user,
        quota_bytes=100 * _MB,
        used_bytes=0,
    )

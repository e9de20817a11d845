"""Shared fixtures for vault app tests."""

import boto3
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from moto import mock_aws

from server.apps.vault.models import UserQuota

User = get_user_model()


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


@pytest.fixture
def set_quota(db):
    """Overwrite a user's ledger.

    Returns:
        Function (user, quota_bytes, used_bytes) -> UserQuota.
    """
    def factory(user, quota_bytes, used_bytes=0):
        quota, _ = UserQuota.objects.get_or_create(user=user)
        quota.quota_bytes = quota_bytes
        quota.used_bytes = used_bytes
        quota.save()
        return quota
    return factory


@pytest.fixture
def used_bytes():
    """Read a user's used bytes straight from the database.

    Returns:
        Function (user) -> int.
    """
    def reader(user):
        return UserQuota.objects.get(user=user).used_bytes
    return reader


@pytest.fixture
def mock_s3():
    """Mock S3 service with the vault bucket.

    Yields:
        boto3 S3 resource with the configured bucket created.
    """
    bucket_name = settings.STORAGES['default']['OPTIONS']['bucket_name']
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=bucket_name)
        yield conn


@pytest.fixture
def bucket(mock_s3):
    """Mocked vault bucket.

    Returns:
        boto3 Bucket resource.
    """
    return mock_s3.Bucket(settings.STORAGES['default']['OPTIONS']['bucket_name'])


@pytest.fixture
def image_upload():
    """Small PNG upload.

    Returns:
        SimpleUploadedFile with 100 bytes of data.
    """
    return SimpleUploadedFile(
        'photo.png',
        b'\x89PNG' + b'x' * 96,
        content_type='image/png',
    )


@pytest.fixture
def pdf_upload():
    """Small PDF upload.

    Returns:
        SimpleUploadedFile with 300 bytes of data.
    """
    return SimpleUploadedFile(
        'report.pdf',
        b'%PDF' + b'y' * 296,
        content_type='application/pdf',
    )

"""Integration tests for the blob storage against MinIO.

These tests need a running MinIO (e.g. from Docker Compose) and are
selected with ``-m integration``. They exercise ``FileStorage`` over
the real S3 API instead of the mocked one.
"""
import os
from typing import Final

import boto3
import pytest
from botocore.client import BaseClient
from botocore.exceptions import ClientError
from django.core.files.base import ContentFile

from server.apps.vault.infrastructure.storage import FileStorage

_TEST_BUCKET: Final = 'vault-integration'
_SOURCE_KEY: Final = '1/pdf/integration.pdf'
_COPY_KEY: Final = '1/pdf/integration-copy.pdf'
_TEST_CONTENT: Final = b'%PDF-1.7 integration test'


def _minio_settings() -> dict[str, str]:
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
    minio = _minio_settings()
    return boto3.client(
        's3',
        endpoint_url=minio['endpoint_url'],
        aws_access_key_id=minio['access_key'],
        aws_secret_access_key=minio['secret_key'],
        region_name='us-east-1',
    )


@pytest.fixture
def file_storage(s3_client: BaseClient) -> FileStorage:
    """Storage backend pointed at a MinIO test bucket.

    Args:
        s3_client: boto3 S3 client.

    Returns:
        FileStorage using the test bucket.
    """
    try:
        s3_client.head_bucket(Bucket=_TEST_BUCKET)
    except ClientError:
        s3_client.create_bucket(Bucket=_TEST_BUCKET)

    return FileStorage(
        bucket_name=_TEST_BUCKET,
        region_name='us-east-1',
        file_overwrite=True,
        **_minio_settings(),
    )


@pytest.mark.integration
def test_save_and_read(file_storage: FileStorage, s3_client: BaseClient) -> None:
    """Test a saved blob is readable through the S3 API."""
    saved_name = file_storage.save(_SOURCE_KEY, ContentFile(_TEST_CONTENT))

    response = s3_client.get_object(Bucket=_TEST_BUCKET, Key=saved_name)
    assert response['Body'].read() == _TEST_CONTENT


@pytest.mark.integration
def test_server_side_copy(
    file_storage: FileStorage,
    s3_client: BaseClient,
) -> None:
    """Test copy_object duplicates a blob inside MinIO."""
    file_storage.save(_SOURCE_KEY, ContentFile(_TEST_CONTENT))

    file_storage.copy_object(_SOURCE_KEY, _COPY_KEY)

    response = s3_client.get_object(Bucket=_TEST_BUCKET, Key=_COPY_KEY)
    assert response['Body'].read() == _TEST_CONTENT
    assert file_storage.exists(_SOURCE_KEY)


@pytest.mark.integration
def test_rollback_upload(
    file_storage: FileStorage,
    s3_client: BaseClient,
) -> None:
    """Test rollback deletes the blob from MinIO."""
    file_storage.save(_SOURCE_KEY, ContentFile(_TEST_CONTENT))

    file_storage.rollback_upload(_SOURCE_KEY)

    with pytest.raises(ClientError) as exc_info:
        s3_client.head_object(Bucket=_TEST_BUCKET, Key=_SOURCE_KEY)

    assert exc_info.value.response['Error']['Code'] == '404'

"""Tests for the S3 storage backend extensions."""

import pytest
from botocore.exceptions import ClientError
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage, storages

from server.apps.vault.infrastructure.storage import FileStorage


def test_default_storage_is_file_storage():
    """Test the project storage backend is configured."""
    assert isinstance(storages['default'], FileStorage)


def test_save_and_delete(mock_s3, bucket):
    """Test saving and deleting go through to the bucket."""
    saved_name = default_storage.save('7/image/a.png', ContentFile(b'abc'))

    assert bucket.Object(saved_name).get()['Body'].read() == b'abc'

    default_storage.delete(saved_name)

    assert not default_storage.exists(saved_name)


def test_save_keeps_existing_blob(mock_s3):
    """Test a second upload under the same name gets a new key."""
    first = default_storage.save('7/image/a.png', ContentFile(b'one'))
    second = default_storage.save('7/image/a.png', ContentFile(b'two'))

    assert first != second
    assert default_storage.exists(first)


def test_copy_object(mock_s3, bucket):
    """Test a server-side copy leaves source and copy in place."""
    default_storage.save('7/pdf/doc.pdf', ContentFile(b'%PDF'))

    default_storage.copy_object('7/pdf/doc.pdf', '7/pdf/doc-copy.pdf')

    assert bucket.Object('7/pdf/doc-copy.pdf').get()['Body'].read() == b'%PDF'
    assert default_storage.exists('7/pdf/doc.pdf')


def test_copy_object_missing_source(mock_s3):
    """Test copying a missing key raises."""
    with pytest.raises(ClientError):
        default_storage.copy_object('7/pdf/none.pdf', '7/pdf/copy.pdf')


def test_rollback_upload(mock_s3):
    """Test rollback removes the blob."""
    default_storage.save('7/image/tmp.png', ContentFile(b'tmp'))

    default_storage.rollback_upload('7/image/tmp.png')

    assert not default_storage.exists('7/image/tmp.png')


def test_rollback_upload_never_raises(mock_s3, monkeypatch):
    """Test a failing rollback is swallowed."""
    def broken_delete(name):
        raise OSError('storage down')

    monkeypatch.setattr(default_storage, 'delete', broken_delete)

    default_storage.rollback_upload('7/image/tmp.png')


def test_rollback_upload_logs_orphan(mock_s3, monkeypatch, caplog):
    """Test a blob that can't be removed is reported as orphaned."""
    def broken_delete(name):
        raise OSError('storage down')

    monkeypatch.setattr(default_storage, 'delete', broken_delete)

    default_storage.rollback_upload('7/image/tmp.png')

    assert 'Orphaned blob left in storage: 7/image/tmp.png' in caplog.text


def test_failed_copy_is_logged(mock_s3, caplog):
    """Test a failing S3 call is logged with both keys before raising."""
    with pytest.raises(ClientError):
        default_storage.copy_object('7/pdf/none.pdf', '7/pdf/copy.pdf')

    assert 'Blob copy failed: 7/pdf/none.pdf -> 7/pdf/copy.pdf' in caplog.text

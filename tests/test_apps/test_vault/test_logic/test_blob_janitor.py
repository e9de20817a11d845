"""Tests for best-effort blob lifecycle."""

import logging

import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.vault.exceptions import InternalStorageError
from server.apps.vault.logic import blob_janitor


def test_generate_copy_name_stays_in_directory():
    """Test copy names keep the directory and the extension."""
    copy_name = blob_janitor.generate_copy_name('7/image/cat.png')

    assert copy_name.startswith('7/image/cat__')
    assert copy_name.endswith('.png')


def test_generate_copy_name_is_unique():
    """Test two copies of one blob get different names."""
    first = blob_janitor.generate_copy_name('7/pdf/report.pdf')
    second = blob_janitor.generate_copy_name('7/pdf/report.pdf')

    assert first != second


def test_store_blob(mock_s3):
    """Test storing returns the name the blob was saved under."""
    saved_name = blob_janitor.store_blob('7/image/a.png', ContentFile(b'abc'))

    assert saved_name.startswith('7/image/a')
    assert default_storage.exists(saved_name)


def test_store_blob_failure(mock_s3, monkeypatch):
    """Test storage errors surface as InternalStorageError."""
    def broken_save(*args, **kwargs):
        raise OSError('connection reset')

    monkeypatch.setattr(default_storage, 'save', broken_save)

    with pytest.raises(InternalStorageError):
        blob_janitor.store_blob('7/image/a.png', ContentFile(b'abc'))


def test_copy_blob(mock_s3, bucket):
    """Test a copy is a new object with the same bytes."""
    default_storage.save('7/pdf/doc.pdf', ContentFile(b'%PDF-data'))

    copy_name = blob_janitor.copy_blob('7/pdf/doc.pdf')

    assert copy_name != '7/pdf/doc.pdf'
    assert bucket.Object(copy_name).get()['Body'].read() == b'%PDF-data'
    assert default_storage.exists('7/pdf/doc.pdf')


def test_copy_blob_missing_source(mock_s3):
    """Test copying a missing blob fails instead of creating nothing."""
    with pytest.raises(InternalStorageError, match='not found'):
        blob_janitor.copy_blob('7/pdf/missing.pdf')


def test_copy_blob_storage_failure(mock_s3, monkeypatch):
    """Test a failing server-side copy surfaces as InternalStorageError."""
    default_storage.save('7/pdf/doc.pdf', ContentFile(b'%PDF-data'))

    def broken_copy(source, destination):
        raise OSError('copy failed')

    monkeypatch.setattr(default_storage, 'copy_object', broken_copy)

    with pytest.raises(InternalStorageError):
        blob_janitor.copy_blob('7/pdf/doc.pdf')


def test_remove_blob(mock_s3):
    """Test an existing blob is removed."""
    default_storage.save('7/image/old.png', ContentFile(b'old'))

    assert blob_janitor.remove_blob('7/image/old.png') is True
    assert not default_storage.exists('7/image/old.png')


def test_remove_blob_missing(mock_s3, caplog):
    """Test removing a missing blob only logs a warning."""
    with caplog.at_level(logging.WARNING):
        assert blob_janitor.remove_blob('7/image/gone.png') is False

    assert 'already deleted' in caplog.text


def test_remove_blob_swallows_storage_errors(mock_s3, monkeypatch, caplog):
    """Test a failing delete is logged and never raised."""
    default_storage.save('7/image/stuck.png', ContentFile(b'stuck'))

    def broken_delete(name):
        raise OSError('delete failed')

    monkeypatch.setattr(default_storage, 'delete', broken_delete)

    with caplog.at_level(logging.ERROR):
        assert blob_janitor.remove_blob('7/image/stuck.png') is False

    assert 'orphaned' in caplog.text


def test_remove_blob_empty_path():
    """Test an empty path is a no-op."""
    assert blob_janitor.remove_blob('') is False


@pytest.mark.django_db
def test_schedule_removal_waits_for_commit(
    mock_s3,
    django_capture_on_commit_callbacks,
):
    """Test the blob survives until the transaction commits."""
    default_storage.save('7/image/later.png', ContentFile(b'later'))

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        blob_janitor.schedule_removal('7/image/later.png')
        assert default_storage.exists('7/image/later.png')

    assert len(callbacks) == 1
    assert not default_storage.exists('7/image/later.png')


@pytest.mark.django_db(transaction=True)
def test_schedule_removal_skipped_on_rollback(mock_s3):
    """Test a rolled back transaction keeps the blob."""
    default_storage.save('7/image/kept.png', ContentFile(b'kept'))

    with pytest.raises(RuntimeError):
        with transaction.atomic():
            blob_janitor.schedule_removal('7/image/kept.png')
            raise RuntimeError('abort')

    assert default_storage.exists('7/image/kept.png')


def test_rollback_blob(mock_s3):
    """Test rolling back deletes the uploaded blob."""
    default_storage.save('7/image/tmp.png', ContentFile(b'tmp'))

    blob_janitor.rollback_blob('7/image/tmp.png')

    assert not default_storage.exists('7/image/tmp.png')

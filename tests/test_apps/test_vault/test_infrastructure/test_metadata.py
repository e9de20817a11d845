"""Tests for upload metadata utilities."""

import hashlib
from io import BytesIO

import pytest
from django.core.exceptions import ValidationError
from django.core.files.base import ContentFile

from server.apps.vault.infrastructure.metadata import (
    build_storage_path,
    calculate_checksum,
    default_title,
    detect_mime_type,
    get_file_size,
    validate_storage_path,
)


def test_detect_mime_type():
    """Test MIME type detection from filename."""
    assert detect_mime_type('scan.pdf') == 'application/pdf'
    assert detect_mime_type('photo.jpg') == 'image/jpeg'
    assert detect_mime_type('photo.PNG') == 'image/png'


def test_detect_mime_type_prefers_extension():
    """Test the extension wins over what the client declared."""
    assert detect_mime_type('scan.pdf', 'image/png') == 'application/pdf'


def test_detect_mime_type_unknown():
    """Test unknown extensions fall back to the declared type."""
    assert detect_mime_type('blob.unknown', 'image/webp') == 'image/webp'
    assert detect_mime_type('blob.unknown') == 'application/octet-stream'


def test_calculate_checksum():
    """Test SHA256 checksum calculation rewinds the file."""
    file_obj = ContentFile(b'test content')
    file_obj.read(4)

    checksum = calculate_checksum(file_obj)

    assert checksum == hashlib.sha256(b'test content').hexdigest()
    assert file_obj.tell() == 0


def test_get_file_size_from_upload():
    """Test the size attribute of uploads is used."""
    assert get_file_size(ContentFile(b'12345')) == 5


def test_get_file_size_from_stream():
    """Test plain streams are measured and rewound."""
    stream = BytesIO(b'1234567')

    assert get_file_size(stream) == 7
    assert stream.tell() == 0


def test_default_title():
    """Test titles come from the filename without extension."""
    assert default_title('holiday photo.jpeg') == 'holiday photo'
    assert default_title('archive.tar.gz') == 'archive.tar'
    assert len(default_title('a' * 300 + '.png')) == 200


def test_build_storage_path():
    """Test storage keys live under the owner and the kind."""
    assert build_storage_path(7, 'image', 'cat.png') == '7/image/cat.png'
    assert build_storage_path(7, 'pdf', '../../etc/doc.pdf') == '7/pdf/doc.pdf'


def test_validate_storage_path_valid():
    """Test storage path validation with valid path."""
    validate_storage_path(7, '7/image/cat.png')


def test_validate_storage_path_wrong_user():
    """Test storage path validation with wrong user ID."""
    with pytest.raises(ValidationError, match='does not match owner'):
        validate_storage_path(7, '8/image/cat.png')


def test_validate_storage_path_no_user_id():
    """Test storage path validation without user ID."""
    with pytest.raises(ValidationError, match='must start with user ID'):
        validate_storage_path(7, 'image/cat.png')


def test_validate_storage_path_outside_user_folder():
    """Test a bare user ID is not a blob path."""
    with pytest.raises(ValidationError, match='inside a user folder'):
        validate_storage_path(7, '7')


def test_validate_storage_path_empty():
    """Test storage path validation with empty path."""
    with pytest.raises(ValidationError, match='cannot be empty'):
        validate_storage_path(7, '')

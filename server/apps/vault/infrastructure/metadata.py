"""Metadata extraction utilities for uploaded blobs."""

import hashlib
import mimetypes
from pathlib import Path
from typing import BinaryIO, Final

from django.core.exceptions import ValidationError

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_FALLBACK_MIME_TYPE: Final = 'application/octet-stream'
_TITLE_MAX_LENGTH: Final = 200


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type of an upload.

    The type guessed from the filename extension wins; the type the
    client declared is only used when the extension is unknown.

    Args:
        filename: Filename with extension.
        declared: Content type sent by the client, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is not None:
        return mime_type
    return declared or _FALLBACK_MIME_TYPE


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_file_size(file_obj: BinaryIO) -> int:
    """Get size of an upload in bytes.

    Django uploads know their size; plain file objects are measured
    by seeking to the end.

    Args:
        file_obj: File-like object.

    Returns:
        File size in bytes.
    """
    size = getattr(file_obj, 'size', None)
    if size is not None:
        return size
    file_obj.seek(0, 2)
    size = file_obj.tell()
    file_obj.seek(0)
    return size


def default_title(filename: str, max_length: int = _TITLE_MAX_LENGTH) -> str:
    """Derive an item title from an upload filename.

    Example: 'holiday photo.jpeg' -> 'holiday photo'
    """
    return Path(filename).stem[:max_length]


def build_storage_path(user_id: int, kind: str, filename: str) -> str:
    """Build the storage key for a new upload.

    Example: (7, 'image', 'cat.png') -> '7/image/cat.png'

    Args:
        user_id: Owner's user ID.
        kind: Item kind the blob belongs to.
        filename: Uploaded filename; directories are stripped.

    Returns:
        Storage path inside the user's prefix.
    """
    return f'{user_id}/{kind}/{Path(filename).name}'


def validate_storage_path(user_id: int, storage_path: str) -> None:
    """Validate storage path follows user isolation rules.

    Ensures the storage path starts with the user's ID to maintain
    multi-user isolation. This is a critical security check.

    Args:
        user_id: Owner's user ID.
        storage_path: Proposed storage path.

    Raises:
        ValidationError: If path doesn't start with user_id or is invalid.
    """
    if not storage_path:
        raise ValidationError('Storage path cannot be empty')

    path_parts = Path(storage_path).parts
    if len(path_parts) < 2:
        raise ValidationError('Storage path must point inside a user folder')

    try:
        path_user_id = int(path_parts[0])
    except ValueError as error:
        raise ValidationError(
            'Storage path must start with user ID',
        ) from error

    if path_user_id != user_id:
        raise ValidationError(
            f'Storage path user ID ({path_user_id}) does not match '
            f'owner ({user_id})',
        )

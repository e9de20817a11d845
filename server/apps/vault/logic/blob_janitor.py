"""Best-effort lifecycle of item blobs in storage.

Removing a blob never fails the caller: a blob that can't be reclaimed
is logged and left orphaned, and the logical delete still succeeds.
Copying is different. A duplicate without its bytes is useless, so a
failed copy raises ``InternalStorageError`` before the caller has
written anything else.
"""

import logging
import secrets
from datetime import UTC, datetime
from functools import partial
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any, Final

from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.vault.exceptions import InternalStorageError

if TYPE_CHECKING:
    from server.apps.vault.infrastructure.storage import FileStorage

_RANDOM_SUFFIX_BYTES: Final = 4

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def generate_copy_name(storage_path: str) -> str:
    """Generate a fresh key next to an existing blob.

    Args:
        storage_path: Existing storage path (e.g., '7/image/cat.png').

    Returns:
        Unique sibling path with the same extension
        (e.g., '7/image/cat__20260131T143052123456-9f2c01ab.png').
    """
    path = PurePosixPath(storage_path)
    timestamp = datetime.now(tz=UTC).strftime('%Y%m%dT%H%M%S%f')
    random_suffix = secrets.token_hex(_RANDOM_SUFFIX_BYTES)
    return str(
        path.with_name(f'{path.stem}__{timestamp}-{random_suffix}{path.suffix}'),
    )


def store_blob(storage_path: str, file_obj: Any) -> str:
    """Upload bytes for a new item.

    Args:
        storage_path: Requested storage path.
        file_obj: File-like object to upload.

    Returns:
        Actual storage path used (storage renames on conflicts).

    Raises:
        InternalStorageError: If the upload fails.
    """
    try:
        return _get_storage().save(storage_path, file_obj)
    except Exception as error:
        raise InternalStorageError(
            f'Failed to store file: {storage_path}',
        ) from error


def copy_blob(storage_path: str) -> str:
    """Duplicate a blob under a fresh name in the same directory.

    Args:
        storage_path: Storage path of the blob to copy.

    Returns:
        Storage path of the copy.

    Raises:
        InternalStorageError: If the source is missing or the copy fails.
    """
    storage = _get_storage()

    try:
        source_exists = storage.exists(storage_path)
    except Exception as error:
        logger.exception('Failed to check blob before copy: %s', storage_path)
        raise InternalStorageError('Failed to duplicate file') from error

    if not source_exists:
        logger.error('Blob to copy not found in storage: %s', storage_path)
        raise InternalStorageError('Original file not found in storage')

    new_path = generate_copy_name(storage_path)
    try:
        storage.copy_object(storage_path, new_path)
    except Exception as error:
        raise InternalStorageError('Failed to duplicate file') from error

    return new_path


def remove_blob(storage_path: str) -> bool:
    """Delete a blob if it exists, never raising.

    Args:
        storage_path: Storage path of the blob.

    Returns:
        True if the blob was deleted, False if it was missing or
        the delete failed.
    """
    if not storage_path:
        return False

    storage = _get_storage()
    try:
        if not storage.exists(storage_path):
            logger.warning(
                'Blob not found in storage (already deleted?): %s',
                storage_path,
            )
            return False
        storage.delete(storage_path)
    except Exception:
        # Orphaned blob can be cleaned up by a background sweep
        logger.exception(
            'Failed to delete blob from storage (orphaned): %s',
            storage_path,
        )
        return False

    logger.info('Blob deleted from storage: %s', storage_path)
    return True


def schedule_removal(storage_path: str) -> None:
    """Remove a blob once the current transaction commits.

    Outside a transaction the removal runs immediately. If the
    transaction rolls back, the blob is kept.

    Args:
        storage_path: Storage path of the blob.
    """
    if not storage_path:
        return
    logger.debug('Scheduling blob removal after commit: %s', storage_path)
    transaction.on_commit(partial(remove_blob, storage_path))


def rollback_blob(storage_path: str) -> None:
    """Delete a blob written for a transaction that then failed.

    Args:
        storage_path: Storage path of the blob.
    """
    _get_storage().rollback_upload(storage_path)

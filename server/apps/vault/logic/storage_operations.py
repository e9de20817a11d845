"""Storage operations: every change that moves a user's quota ledger.

This is the only module allowed to write ``UserQuota.used_bytes``.

Transaction safety: each mutating operation runs in one
``transaction.atomic()`` block that locks the owner's ledger row with
``select_for_update()`` and re-reads it before checking the quota. The
item change and the ledger delta commit together, and two requests of
the same user can't both spend the same free bytes.

Blobs sit outside the database transaction:
- uploads and copies happen before rows are written and are rolled
  back (best effort) if the transaction fails
- removals are deferred until after commit and never fail the caller
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, BinaryIO, Final

from django.conf import settings
from django.db import IntegrityError, transaction

from server.apps.vault.exceptions import (
    FolderNameConflictError,
    InvalidInputError,
    QuotaExceededError,
)
from server.apps.vault.infrastructure import metadata
from server.apps.vault.logic import blob_janitor, item_store, quota_ledger
from server.apps.vault.models import Folder, Item, UserQuota

# User type for Django's dynamic user model
_User = Any

# Field name constant to avoid string literal over-use
_USED_BYTES_FIELD: Final = 'used_bytes'  # noqa: WPS226

_TITLE_MAX_LENGTH: Final = 200
_FOLDER_NAME_MAX_LENGTH: Final = 100
_ITEM_COPY_SUFFIX: Final = ' (Copy)'
_FOLDER_COPY_SUFFIX: Final = ' (copy)'

_FILE_KINDS: Final = frozenset((Item.Kind.IMAGE.value, Item.Kind.PDF.value))

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FolderDeletion:
    """Outcome of a cascading folder delete."""

    deleted_item_count: int
    freed_bytes: int
    deleted_folder_count: int


@dataclass(frozen=True, slots=True)
class FolderDuplication:
    """Outcome of a folder duplicate."""

    folder: Folder
    duplicated_item_count: int
    required_bytes: int


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(
        user=user,
        defaults={'quota_bytes': settings.VAULT_DEFAULT_QUOTA_BYTES},
    )
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.username,
            quota.quota_bytes,
        )
    return quota


def _lock_quota(user: _User) -> UserQuota:
    """Lock and re-read the user's ledger row.

    Must be called inside ``transaction.atomic()``.
    """
    get_or_create_quota(user)
    return UserQuota.objects.select_for_update().get(user=user)


def _require_space(quota: UserQuota, size_bytes: int) -> None:
    """Raise unless ``size_bytes`` more bytes fit into the ledger.

    A user already over the limit is rejected even for zero bytes.
    """
    if not quota_ledger.fits(quota.used_bytes, quota.quota_bytes, size_bytes):
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            quota.user.username,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=quota.used_bytes,
            required_bytes=size_bytes,
        )


def _commit_usage(quota: UserQuota, delta: int) -> None:
    """Apply a signed delta to a locked ledger row, clamping at zero."""
    old_usage = quota.used_bytes
    quota.used_bytes = quota_ledger.apply_delta(old_usage, delta)
    quota.save(update_fields=[_USED_BYTES_FIELD])
    logger.debug(
        'Usage for user %s: %d -> %d bytes (delta %d)',
        quota.user.username,
        old_usage,
        quota.used_bytes,
        delta,
    )


def _require_text(text: str | None, field_label: str, max_length: int) -> str:
    cleaned = (text or '').strip()
    if not cleaned:
        raise InvalidInputError(f'{field_label} is required')
    if len(cleaned) > max_length:
        raise InvalidInputError(
            f'{field_label} cannot exceed {max_length} characters',
        )
    return cleaned


def _with_suffix(text: str, suffix: str, max_length: int) -> str:
    """Append a suffix, shortening the text so the result still fits."""
    return text[:max_length - len(suffix)] + suffix


def check_quota(user: _User, size_bytes: int) -> None:
    """Check if user has enough quota, without locking the ledger.

    Used to reject work early (before an upload reaches storage); the
    locked check inside the transaction stays authoritative.

    Args:
        user: User to check quota for.
        size_bytes: Size of the upload in bytes.

    Raises:
        QuotaExceededError: If the bytes would exceed quota.
    """
    _require_space(get_or_create_quota(user), size_bytes)


def get_storage_info(user: _User) -> quota_ledger.StorageInfo:
    """Get the user's ledger summary."""
    quota = get_or_create_quota(user)
    return quota_ledger.storage_info(quota.used_bytes, quota.quota_bytes)


def get_storage_stats(user: _User) -> dict[str, Any]:
    """Get ledger summary plus a per-kind breakdown.

    Args:
        user: User to describe.

    Returns:
        Storage info with a 'breakdown' mapping of kind to item count,
        bytes and formatted bytes.
    """
    stats: dict[str, Any] = dict(get_storage_info(user))
    stats['breakdown'] = {
        kind: {
            'count': item_count,
            'bytes': total_bytes,
            'formatted': quota_ledger.format_bytes(total_bytes),
        }
        for kind, (item_count, total_bytes) in item_store.usage_by_kind(
            user,
        ).items()
    }
    return stats


def open_item(user: _User, item_id: int, kind: str | None = None) -> Item:
    """Get an item and record the access time."""
    item = item_store.get_item(user, item_id, kind)
    item_store.touch_item(item)
    return item


def create_note(
    user: _User,
    title: str,
    content: str = '',
    folder_id: int | None = None,
) -> Item:
    """Create a text note charged by the UTF-8 size of title and content.

    Args:
        user: Owner of the note.
        title: Note title.
        content: Note text.
        folder_id: Optional folder to put the note in.

    Returns:
        Created note.

    Raises:
        InvalidInputError: If the title is blank.
        QuotaExceededError: If the note doesn't fit; nothing is written.
        NotFoundError: If the folder doesn't belong to the user.
    """
    title = _require_text(title, 'Title', _TITLE_MAX_LENGTH)
    content = content or ''
    size_bytes = quota_ledger.note_size(title, content)

    with transaction.atomic():
        quota = _lock_quota(user)
        _require_space(quota, size_bytes)
        note = item_store.create_item(
            user,
            kind=Item.Kind.NOTE,
            title=title,
            content=content,
            folder_id=folder_id,
            size_bytes=size_bytes,
        )
        _commit_usage(quota, size_bytes)

    logger.info(
        'Note created for user %s: ID=%d, %d bytes',
        user.username,
        note.id,
        size_bytes,
    )
    return note


def _validate_upload(kind: str, mime_type: str, size_bytes: int) -> None:
    if kind not in _FILE_KINDS:
        raise InvalidInputError(f'Cannot upload files of kind: {kind}')

    if kind == Item.Kind.IMAGE:
        allowed_types = settings.VAULT_ALLOWED_IMAGE_TYPES
    else:
        allowed_types = settings.VAULT_ALLOWED_PDF_TYPES
    if mime_type not in allowed_types:
        raise InvalidInputError(
            f'File type {mime_type} is not allowed for {kind} uploads',
        )

    max_bytes = settings.VAULT_MAX_UPLOAD_BYTES
    if size_bytes > max_bytes:
        raise InvalidInputError(
            'File is too large: {size}, maximum is {limit}'.format(
                size=quota_ledger.format_bytes(size_bytes),
                limit=quota_ledger.format_bytes(max_bytes),
            ),
        )


def upload_file(  # noqa: WPS210
    user: _User,
    kind: str,
    file_obj: BinaryIO,
    title: str | None = None,
    folder_id: int | None = None,
) -> Item:
    """Upload an image or PDF and charge its byte count.

    Transaction safety: the quota is checked before anything reaches
    storage. The blob is uploaded next, then the row is created and
    the ledger updated under the ledger lock. If that transaction
    fails, the uploaded blob is deleted again (rollback).

    Args:
        user: Owner of the file.
        kind: 'image' or 'pdf'.
        file_obj: Uploaded file (must carry a name).
        title: Item title, defaults to the filename without extension.
        folder_id: Optional folder to put the file in.

    Returns:
        Created item.

    Raises:
        InvalidInputError: If type, size or name are unacceptable.
        QuotaExceededError: If the file doesn't fit.
        NotFoundError: If the folder doesn't belong to the user.
        InternalStorageError: If the upload to storage fails.
    """
    filename = getattr(file_obj, 'name', None) or ''
    if not filename:
        raise InvalidInputError('Uploaded file must have a name')

    mime_type = metadata.detect_mime_type(
        filename,
        getattr(file_obj, 'content_type', None),
    )
    size_bytes = metadata.get_file_size(file_obj)
    _validate_upload(kind, mime_type, size_bytes)
    title = _require_text(
        title or metadata.default_title(filename),
        'Title',
        _TITLE_MAX_LENGTH,
    )

    # Fail before anything reaches storage
    if folder_id is not None:
        item_store.get_folder(user, folder_id)
    check_quota(user, size_bytes)

    checksum = metadata.calculate_checksum(file_obj)
    storage_path = metadata.build_storage_path(user.id, kind, filename)
    metadata.validate_storage_path(user.id, storage_path)
    saved_name = blob_janitor.store_blob(storage_path, file_obj)

    try:
        with transaction.atomic():
            quota = _lock_quota(user)
            _require_space(quota, size_bytes)
            item = item_store.create_item(
                user,
                kind=kind,
                title=title,
                folder_id=folder_id,
                blob_name=saved_name,
                mime_type=mime_type,
                checksum=checksum,
                size_bytes=size_bytes,
            )
            _commit_usage(quota, size_bytes)
    except Exception:
        logger.warning(
            'Upload transaction failed, rolling back blob: %s',
            saved_name,
        )
        blob_janitor.rollback_blob(saved_name)
        raise

    logger.info(
        'File uploaded for user %s: %s (ID: %d, %d bytes)',
        user.username,
        saved_name,
        item.id,
        size_bytes,
    )
    return item


def update_item(
    user: _User,
    item_id: int,
    patch: Mapping[str, Any],
    kind: str | None = None,
) -> Item:
    """Update an item, re-charging notes whose text changed.

    Only the growth of a note is checked against the quota: the old
    size is already part of the used bytes. Shrinking frees space.
    Images and PDFs can be renamed, moved or favorited; their bytes
    never change.

    Args:
        user: Owner of the item.
        item_id: Item primary key.
        patch: Fields to change ('title', 'content', 'folder_id',
            'is_favorite').
        kind: Restrict the lookup to one kind.

    Returns:
        Updated item.

    Raises:
        InvalidInputError: If the patch is not acceptable for the item.
        QuotaExceededError: If a grown note doesn't fit.
        NotFoundError: If the item or target folder isn't the user's.
    """
    patch = dict(patch)
    if 'size_bytes' in patch:
        raise InvalidInputError('size_bytes is derived and cannot be set')
    if 'title' in patch:
        patch['title'] = _require_text(patch['title'], 'Title', _TITLE_MAX_LENGTH)
    if 'content' in patch:
        patch['content'] = patch['content'] or ''

    with transaction.atomic():
        quota = _lock_quota(user)
        item = item_store.get_item(user, item_id, kind)

        if item.kind != Item.Kind.NOTE:
            if 'content' in patch:
                raise InvalidInputError(
                    'Only text notes have content; files cannot be modified',
                )
            return item_store.update_item(user, item.id, patch)

        new_size = quota_ledger.note_size(
            patch.get('title', item.title),
            patch.get('content', item.content),
        )
        size_delta = new_size - item.size_bytes
        if size_delta > 0:
            _require_space(quota, size_delta)
        item = item_store.update_item(
            user,
            item.id,
            patch,
            size_bytes=new_size,
        )
        if size_delta:
            _commit_usage(quota, size_delta)

    return item


def delete_item(user: _User, item_id: int, kind: str | None = None) -> Item:
    """Delete an item and free its bytes.

    The blob (if any) is removed after the transaction commits, on a
    best-effort basis; failing to reclaim storage never blocks the
    delete.

    Args:
        user: Owner of the item.
        item_id: Item primary key.
        kind: Restrict the lookup to one kind.

    Returns:
        The deleted item (no longer in the database).

    Raises:
        NotFoundError: If no such item belongs to the user.
    """
    with transaction.atomic():
        quota = _lock_quota(user)
        item = item_store.get_item(user, item_id, kind)
        # post_delete schedules the blob removal for after commit
        item_store.delete_item(user, item.id)
        _commit_usage(quota, -item.size_bytes)

    logger.info(
        'Item deleted for user %s: ID=%d, freed %d bytes',
        user.username,
        item_id,
        item.size_bytes,
    )
    return item


def duplicate_item(user: _User, item_id: int, kind: str | None = None) -> Item:
    """Duplicate an item, blob included, as '<title> (Copy)'.

    All-or-nothing with respect to quota: the check happens before the
    blob is touched, and a failed copy leaves no row and no ledger
    change behind.

    Args:
        user: Owner of the item.
        item_id: Item primary key.
        kind: Restrict the lookup to one kind.

    Returns:
        The new item.

    Raises:
        NotFoundError: If no such item belongs to the user.
        QuotaExceededError: If the copy doesn't fit.
        InternalStorageError: If the blob can't be copied.
    """
    copied_blob = ''
    try:
        with transaction.atomic():
            quota = _lock_quota(user)
            original = item_store.get_item(user, item_id, kind)
            _require_space(quota, original.size_bytes)

            if original.has_blob:
                copied_blob = blob_janitor.copy_blob(original.blob.name)

            duplicate = item_store.create_item(
                user,
                kind=original.kind,
                title=_with_suffix(
                    original.title,
                    _ITEM_COPY_SUFFIX,
                    _TITLE_MAX_LENGTH,
                ),
                content=original.content,
                folder_id=original.folder_id,
                blob_name=copied_blob,
                mime_type=original.mime_type,
                checksum=original.checksum_sha256,
                size_bytes=original.size_bytes,
            )
            _commit_usage(quota, original.size_bytes)
    except Exception:
        if copied_blob:
            logger.warning(
                'Duplicate failed, rolling back copied blob: %s',
                copied_blob,
            )
            blob_janitor.rollback_blob(copied_blob)
        raise

    logger.info(
        'Item duplicated for user %s: ID=%d -> ID=%d',
        user.username,
        item_id,
        duplicate.id,
    )
    return duplicate


def toggle_item_favorite(
    user: _User,
    item_id: int,
    kind: str | None = None,
) -> Item:
    """Flip an item's favorite flag."""
    item = item_store.get_item(user, item_id, kind)
    return item_store.update_item(
        user,
        item.id,
        {'is_favorite': not item.is_favorite},
    )


def create_folder(
    user: _User,
    name: str,
    parent_id: int | None = None,
) -> Folder:
    """Create a folder; folders cost no quota.

    Raises:
        InvalidInputError: If the name is blank.
        FolderNameConflictError: If a sibling has the same name.
        NotFoundError: If the parent doesn't belong to the user.
    """
    name = _require_text(name, 'Folder name', _FOLDER_NAME_MAX_LENGTH)
    try:
        with transaction.atomic():
            return item_store.create_folder(user, name, parent_id)
    except IntegrityError as error:
        # Lost a race with a concurrent create of the same name
        raise FolderNameConflictError(name) from error


def update_folder(
    user: _User,
    folder_id: int,
    patch: Mapping[str, Any],
) -> Folder:
    """Rename a folder and/or change its favorite flag.

    Raises:
        InvalidInputError: If the name is blank.
        FolderNameConflictError: If a sibling has the same name.
        NotFoundError: If no such folder belongs to the user.
    """
    patch = dict(patch)
    if 'name' in patch:
        patch['name'] = _require_text(
            patch['name'],
            'Folder name',
            _FOLDER_NAME_MAX_LENGTH,
        )
    try:
        with transaction.atomic():
            return item_store.update_folder(user, folder_id, patch)
    except IntegrityError as error:
        raise FolderNameConflictError(patch.get('name', '')) from error


def rename_folder(user: _User, folder_id: int, name: str) -> Folder:
    """Rename a folder."""
    return update_folder(user, folder_id, {'name': name})


def toggle_folder_favorite(user: _User, folder_id: int) -> Folder:
    """Flip a folder's favorite flag."""
    folder = item_store.get_folder(user, folder_id)
    return item_store.update_folder(
        user,
        folder.id,
        {'is_favorite': not folder.is_favorite},
    )


def delete_folder(user: _User, folder_id: int) -> FolderDeletion:
    """Delete a folder with everything inside it and free the bytes.

    The cascade covers the whole subtree: items of nested folders are
    deleted and reconciled too, so no item outlives its folder without
    being accounted for. Blobs are removed after commit, each one
    independently and best effort.

    Args:
        user: Owner of the folder.
        folder_id: Folder primary key.

    Returns:
        Number of deleted items and folders and the bytes freed.

    Raises:
        NotFoundError: If no such folder belongs to the user.
    """
    with transaction.atomic():
        quota = _lock_quota(user)
        item_store.get_folder(user, folder_id)
        subtree_ids = item_store.folder_subtree_ids(user, folder_id)

        deleted_items: list[Item] = []
        for subfolder_id in reversed(subtree_ids):
            deleted_items.extend(item_store.delete_many(user, subfolder_id))
        freed_bytes = sum(item.size_bytes for item in deleted_items)

        item_store.delete_folder_row(user, folder_id)
        _commit_usage(quota, -freed_bytes)

    logger.info(
        'Folder deleted for user %s: ID=%d, %d folders, %d items, '
        'freed %d bytes',
        user.username,
        folder_id,
        len(subtree_ids),
        len(deleted_items),
        freed_bytes,
    )
    return FolderDeletion(
        deleted_item_count=len(deleted_items),
        freed_bytes=freed_bytes,
        deleted_folder_count=len(subtree_ids),
    )


def duplicate_folder(user: _User, folder_id: int) -> FolderDuplication:
    """Duplicate a folder as '<name> (copy)' next to the original.

    Only the text notes directly inside the folder are copied; images,
    PDFs and sub-folders are not. Single item duplication does copy
    files.

    The required bytes are checked before any row is written. If
    copying a note fails, the new folder and every note created so
    far are rolled back and the ledger is unchanged.

    Args:
        user: Owner of the folder.
        folder_id: Folder primary key.

    Returns:
        New folder, number of copied notes and bytes charged.

    Raises:
        NotFoundError: If no such folder belongs to the user.
        QuotaExceededError: If the notes don't fit; nothing is written.
        FolderNameConflictError: If the copy's name is already taken.
    """
    with transaction.atomic():
        quota = _lock_quota(user)
        original = item_store.get_folder(user, folder_id)
        notes = item_store.find_in_folder(
            user,
            original.id,
            kind=Item.Kind.NOTE,
        )
        required_bytes = sum(note.size_bytes for note in notes)
        _require_space(quota, required_bytes)

        new_folder = item_store.create_folder(
            user,
            _with_suffix(
                original.name,
                _FOLDER_COPY_SUFFIX,
                _FOLDER_NAME_MAX_LENGTH,
            ),
            original.parent_id,
        )
        try:
            for note in notes:
                item_store.create_item(
                    user,
                    kind=Item.Kind.NOTE,
                    title=note.title,
                    content=note.content,
                    folder_id=new_folder.id,
                    size_bytes=note.size_bytes,
                )
        except Exception:
            # Leaving the atomic block discards the folder and its notes
            logger.exception(
                'Failed to duplicate notes into folder ID=%d, rolling back',
                new_folder.id,
            )
            raise
        _commit_usage(quota, required_bytes)

    logger.info(
        'Folder duplicated for user %s: ID=%d -> ID=%d (%d notes)',
        user.username,
        folder_id,
        new_folder.id,
        len(notes),
    )
    return FolderDuplication(
        folder=new_folder,
        duplicated_item_count=len(notes),
        required_bytes=required_bytes,
    )


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from live items.

    This is useful for fixing inconsistencies or after bulk operations.

    Args:
        user: User to recalculate usage for.

    Returns:
        New calculated usage in bytes.
    """
    total = item_store.total_size(user)

    with transaction.atomic():
        quota = _lock_quota(user)
        old_usage = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        old_usage,
        total,
    )
    return total

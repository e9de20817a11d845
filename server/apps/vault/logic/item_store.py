"""Owner-scoped persistence of items and folders.

Every function takes the owning user first and only ever sees rows
owned by that user, so a wrong id and somebody else's id both end in
``NotFoundError``. Nothing here touches the quota ledger or the blob
storage; that is ``storage_operations``' job.
"""

import logging
from collections.abc import Mapping
from typing import Any, Final

from django.db.models import Count, Q, QuerySet, Sum  # noqa: WPS347
from django.utils import timezone

from server.apps.vault.exceptions import (
    FolderNameConflictError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.vault.models import Folder, Item

# User type for Django's dynamic user model
_User = Any

_ITEM_PATCH_FIELDS: Final = frozenset((
    'title',
    'content',
    'folder_id',
    'is_favorite',
))
_FOLDER_PATCH_FIELDS: Final = frozenset(('name', 'is_favorite'))

logger = logging.getLogger(__name__)


def _item_resource(kind: str | None) -> str:
    if kind is None:
        return 'Item'
    return str(Item.Kind(kind).label)


def get_item(user: _User, item_id: int, kind: str | None = None) -> Item:
    """Get one item owned by the user.

    Args:
        user: Owner of the item.
        item_id: Item primary key.
        kind: Restrict the lookup to one kind (e.g., 'image').

    Returns:
        Item instance.

    Raises:
        NotFoundError: If no such item belongs to the user.
    """
    queryset = Item.objects.filter(user=user)
    if kind is not None:
        queryset = queryset.filter(kind=kind)
    try:
        return queryset.get(id=item_id)
    except Item.DoesNotExist as error:
        raise NotFoundError(_item_resource(kind)) from error


def list_items(  # noqa: WPS211
    user: _User,
    *,
    kind: str | None = None,
    folder_id: int | None = None,
    root_only: bool = False,
    search: str | None = None,
    is_favorite: bool | None = None,
) -> QuerySet[Item]:
    """List user's items, newest first.

    Args:
        user: Owner of items.
        kind: Only items of this kind.
        folder_id: Only items directly inside this folder.
        root_only: Only items outside any folder.
        search: Case-insensitive match on title or content.
        is_favorite: Only favorites (True) or non-favorites (False).

    Returns:
        QuerySet of Item objects.
    """
    queryset = Item.objects.filter(user=user)

    if kind is not None:
        queryset = queryset.filter(kind=kind)
    if root_only:
        queryset = queryset.filter(folder__isnull=True)
    elif folder_id is not None:
        queryset = queryset.filter(folder_id=folder_id)
    if search:
        queryset = queryset.filter(
            Q(title__icontains=search) | Q(content__icontains=search),
        )
    if is_favorite is not None:
        queryset = queryset.filter(is_favorite=is_favorite)

    return queryset.select_related('folder')


def find_in_folder(
    user: _User,
    folder_id: int,
    kind: str | None = None,
) -> list[Item]:
    """Get items directly inside a folder.

    Args:
        user: Owner of items.
        folder_id: Folder primary key.
        kind: Only items of this kind.

    Returns:
        List of Item objects.
    """
    queryset = Item.objects.filter(user=user, folder_id=folder_id)
    if kind is not None:
        queryset = queryset.filter(kind=kind)
    return list(queryset)


def create_item(  # noqa: WPS211
    user: _User,
    *,
    kind: str,
    title: str,
    size_bytes: int,
    folder_id: int | None = None,
    content: str = '',
    blob_name: str = '',
    mime_type: str = '',
    checksum: str = '',
) -> Item:
    """Create an item row.

    Args:
        user: Owner of the item.
        kind: Item kind.
        title: Item title.
        size_bytes: Quota size, computed by the caller.
        folder_id: Optional folder the item goes into.
        content: Text of a note.
        blob_name: Storage path of an image or PDF.
        mime_type: MIME type of the blob.
        checksum: SHA256 of the blob.

    Returns:
        Created Item instance.

    Raises:
        NotFoundError: If the folder doesn't belong to the user.
    """
    if folder_id is not None:
        get_folder(user, folder_id)

    item = Item.objects.create(
        user=user,
        folder_id=folder_id,
        kind=kind,
        title=title,
        content=content,
        blob=blob_name,
        mime_type=mime_type,
        checksum_sha256=checksum,
        size_bytes=size_bytes,
    )
    logger.info(
        'Item created: %s (ID: %d, size: %d)',
        kind,
        item.id,
        size_bytes,
    )
    return item


def update_item(
    user: _User,
    item_id: int,
    patch: Mapping[str, Any],
    *,
    size_bytes: int | None = None,
) -> Item:
    """Apply a partial update to an item.

    ``size_bytes`` is derived, never client supplied: it can't appear
    in ``patch`` and is only passed by the size-recompute path.

    Args:
        user: Owner of the item.
        item_id: Item primary key.
        patch: Field values to change.
        size_bytes: Recomputed quota size, if it changed.

    Returns:
        Updated Item instance.

    Raises:
        InvalidInputError: If the patch names a field that can't change.
        NotFoundError: If the item or target folder isn't the user's.
    """
    if 'size_bytes' in patch:
        raise InvalidInputError('size_bytes is derived and cannot be set')
    unknown = set(patch) - _ITEM_PATCH_FIELDS
    if unknown:
        raise InvalidInputError(
            'Cannot update fields: {0}'.format(', '.join(sorted(unknown))),
        )

    item = get_item(user, item_id)
    folder_id = patch.get('folder_id')
    if folder_id is not None:
        get_folder(user, folder_id)

    update_fields = ['updated_at']
    for field_name, field_value in patch.items():
        setattr(item, field_name, field_value)
        update_fields.append('folder' if field_name == 'folder_id' else field_name)
    if size_bytes is not None:
        item.size_bytes = size_bytes
        update_fields.append('size_bytes')

    item.save(update_fields=update_fields)
    logger.debug('Item updated: ID=%d, fields=%s', item.id, update_fields)
    return item


def touch_item(item: Item) -> None:
    """Record that an item was just opened."""
    now = timezone.now()
    Item.objects.filter(pk=item.pk).update(last_accessed_at=now)
    item.last_accessed_at = now


def delete_item(user: _User, item_id: int) -> None:
    """Delete one item row.

    Args:
        user: Owner of the item.
        item_id: Item primary key.

    Raises:
        NotFoundError: If no such item belongs to the user.
    """
    deleted, _ = Item.objects.filter(user=user, id=item_id).delete()
    if not deleted:
        raise NotFoundError('Item')
    logger.info('Item record deleted: ID=%d', item_id)


def delete_many(user: _User, folder_id: int) -> list[Item]:
    """Delete every item directly inside a folder.

    Items are read before the delete so the caller can still sum
    their sizes.

    Args:
        user: Owner of items.
        folder_id: Folder primary key.

    Returns:
        The deleted items.
    """
    queryset = Item.objects.filter(user=user, folder_id=folder_id)
    deleted_items = list(queryset)
    queryset.delete()
    logger.info(
        'Deleted %d items from folder ID=%d',
        len(deleted_items),
        folder_id,
    )
    return deleted_items


def get_folder(user: _User, folder_id: int) -> Folder:
    """Get one folder owned by the user.

    Args:
        user: Owner of the folder.
        folder_id: Folder primary key.

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If no such folder belongs to the user.
    """
    try:
        return Folder.objects.get(user=user, id=folder_id)
    except Folder.DoesNotExist as error:
        raise NotFoundError('Folder') from error


def list_folders(
    user: _User,
    *,
    parent_id: int | None = None,
    root_only: bool = False,
    search: str | None = None,
    is_favorite: bool | None = None,
) -> QuerySet[Folder]:
    """List user's folders, newest first.

    Args:
        user: Owner of folders.
        parent_id: Only direct children of this folder.
        root_only: Only top-level folders.
        search: Case-insensitive match on name.
        is_favorite: Only favorites (True) or non-favorites (False).

    Returns:
        QuerySet of Folder objects.
    """
    queryset = Folder.objects.filter(user=user)

    if root_only:
        queryset = queryset.filter(parent__isnull=True)
    elif parent_id is not None:
        queryset = queryset.filter(parent_id=parent_id)
    if search:
        queryset = queryset.filter(name__icontains=search)
    if is_favorite is not None:
        queryset = queryset.filter(is_favorite=is_favorite)

    return queryset


def list_subfolders(user: _User, folder_id: int) -> QuerySet[Folder]:
    """Get folders directly inside a folder."""
    return Folder.objects.filter(user=user, parent_id=folder_id)


def folder_name_taken(
    user: _User,
    name: str,
    parent_id: int | None,
    exclude_id: int | None = None,
) -> bool:
    """Check if a sibling folder already uses the name.

    Args:
        user: Owner of folders.
        name: Candidate name.
        parent_id: Parent folder, None for the root.
        exclude_id: Folder to ignore (the one being renamed).

    Returns:
        True if the name is taken, False otherwise.
    """
    queryset = Folder.objects.filter(user=user, name=name, parent_id=parent_id)
    if exclude_id is not None:
        queryset = queryset.exclude(id=exclude_id)
    return queryset.exists()


def create_folder(
    user: _User,
    name: str,
    parent_id: int | None = None,
) -> Folder:
    """Create a folder row.

    Args:
        user: Owner of the folder.
        name: Folder name.
        parent_id: Optional parent folder.

    Returns:
        Created Folder instance.

    Raises:
        NotFoundError: If the parent doesn't belong to the user.
        FolderNameConflictError: If a sibling has the same name.
    """
    if parent_id is not None:
        get_folder(user, parent_id)
    if folder_name_taken(user, name, parent_id):
        raise FolderNameConflictError(name)

    folder = Folder.objects.create(user=user, name=name, parent_id=parent_id)
    logger.info('Folder created: %s (ID: %d)', name, folder.id)
    return folder


def update_folder(
    user: _User,
    folder_id: int,
    patch: Mapping[str, Any],
) -> Folder:
    """Apply a partial update to a folder.

    Args:
        user: Owner of the folder.
        folder_id: Folder primary key.
        patch: Field values to change ('name', 'is_favorite').

    Returns:
        Updated Folder instance.

    Raises:
        InvalidInputError: If the patch names a field that can't change.
        NotFoundError: If no such folder belongs to the user.
        FolderNameConflictError: If a sibling has the new name.
    """
    unknown = set(patch) - _FOLDER_PATCH_FIELDS
    if unknown:
        raise InvalidInputError(
            'Cannot update fields: {0}'.format(', '.join(sorted(unknown))),
        )

    folder = get_folder(user, folder_id)
    new_name = patch.get('name')
    if new_name is not None and folder_name_taken(
        user,
        new_name,
        folder.parent_id,
        exclude_id=folder.id,
    ):
        raise FolderNameConflictError(new_name)

    for field_name, field_value in patch.items():
        setattr(folder, field_name, field_value)
    folder.save(update_fields=[*patch, 'updated_at'])
    return folder


def folder_subtree_ids(user: _User, folder_id: int) -> list[int]:
    """Collect a folder and all of its descendants.

    Args:
        user: Owner of folders.
        folder_id: Root of the subtree.

    Returns:
        Folder IDs, root first, parents before children.
    """
    subtree = [folder_id]
    frontier = [folder_id]
    while frontier:
        frontier = list(
            Folder.objects.filter(
                user=user,
                parent_id__in=frontier,
            ).values_list('id', flat=True),
        )
        subtree.extend(frontier)
    return subtree


def delete_folder_row(user: _User, folder_id: int) -> None:
    """Delete a folder row (its sub-folder rows cascade).

    Items must already be gone; a folder that still holds items
    can't be deleted.

    Args:
        user: Owner of the folder.
        folder_id: Folder primary key.
    """
    Folder.objects.filter(user=user, id=folder_id).delete()
    logger.info('Folder record deleted: ID=%d', folder_id)


def usage_by_kind(user: _User) -> dict[str, tuple[int, int]]:
    """Count items and sum their sizes per kind.

    Args:
        user: Owner of items.

    Returns:
        Mapping of kind to (item count, total bytes); every kind present.
    """
    usage = {kind: (0, 0) for kind in Item.Kind.values}
    rows = (
        Item.objects.filter(user=user)
        .values('kind')
        .annotate(item_count=Count('id'), total_bytes=Sum('size_bytes'))
        .order_by()
    )
    for row in rows:
        usage[row['kind']] = (row['item_count'], row['total_bytes'] or 0)
    return usage


def total_size(user: _User) -> int:
    """Sum sizes of all live items of the user."""
    return Item.objects.filter(user=user).aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0

"""Plain-dict representations of vault models for JSON responses."""

from typing import Any

from server.apps.vault.logic import quota_ledger
from server.apps.vault.models import Folder, Item


def serialize_item(item: Item) -> dict[str, Any]:
    """Represent an item of any kind.

    Notes carry their content; images and PDFs carry blob metadata
    and a download URL instead.

    Args:
        item: Item instance.

    Returns:
        JSON-serializable dict.
    """
    data: dict[str, Any] = {
        'id': item.id,
        'type': item.kind,
        'title': item.title,
        'folder_id': item.folder_id,
        'is_favorite': item.is_favorite,
        'size_bytes': item.size_bytes,
        'size_formatted': quota_ledger.format_bytes(item.size_bytes),
        'created_at': item.created_at.isoformat(),
        'updated_at': item.updated_at.isoformat(),
        'last_accessed_at': item.last_accessed_at.isoformat(),
    }
    if item.kind == Item.Kind.NOTE:
        data['content'] = item.content
    else:
        data.update({
            'file_url': item.blob.url if item.has_blob else None,
            'extension': item.get_extension(),
            'mime_type': item.mime_type,
            'checksum_sha256': item.checksum_sha256,
        })
    return data


def serialize_folder(folder: Folder) -> dict[str, Any]:
    """Represent a folder."""
    return {
        'id': folder.id,
        'type': 'folder',
        'name': folder.name,
        'parent_id': folder.parent_id,
        'is_favorite': folder.is_favorite,
        'created_at': folder.created_at.isoformat(),
        'updated_at': folder.updated_at.isoformat(),
    }

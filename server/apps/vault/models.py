"""Database models for vault app."""

from pathlib import Path
from typing import Final, final, override

from django.conf import settings
from django.db import models
from django.utils import timezone

from server.apps.vault.logic import quota_ledger

# Constants for field max lengths
_TITLE_MAX_LENGTH: Final = 200
_FOLDER_NAME_MAX_LENGTH: Final = 100
_KIND_MAX_LENGTH: Final = 10
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length

# Default quota: 15 GB in bytes
DEFAULT_QUOTA_BYTES: Final = 15 * 1024 * 1024 * 1024


@final
class Folder(models.Model):
    """User folder grouping items.

    Folders hold no bytes themselves. A folder may sit inside another
    folder; sibling folders of one user never share a name.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    name = models.CharField(max_length=_FOLDER_NAME_MAX_LENGTH)

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    is_favorite = models.BooleanField(default=False, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        indexes = [
            models.Index(
                fields=['user', 'parent'],
                name='folders_user_parent_idx',
            ),
        ]

        constraints = [
            # Prevent duplicate sibling names inside a folder
            models.UniqueConstraint(
                fields=['user', 'name', 'parent'],
                condition=models.Q(parent__isnull=False),
                name='folders_user_sibling_name_unique',
            ),
            # NULL parents are distinct for UNIQUE, so root needs its own
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=models.Q(parent__isnull=True),
                name='folders_user_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}:{self.name}'


@final
class Item(models.Model):
    """Note, image or PDF owned by a user.

    All three kinds share one table, discriminated by ``kind``. Images
    and PDFs keep their bytes in S3-compatible storage under ``blob``;
    notes keep their text in ``content`` and have no blob.

    ``size_bytes`` is what the item costs against the owner's quota.
    It is always derived on the server: UTF-8 length of title and
    content for notes, uploaded byte count for files.
    """

    class Kind(models.TextChoices):
        """Item kinds."""

        NOTE = 'note', 'Note'
        IMAGE = 'image', 'Image'
        PDF = 'pdf', 'PDF'

    # Owner relationship
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='items',
        db_index=True,
    )

    # Only the folder cascade may remove a folder that still has items
    folder = models.ForeignKey(
        Folder,
        on_delete=models.RESTRICT,
        related_name='items',
        null=True,
        blank=True,
    )

    kind = models.CharField(
        max_length=_KIND_MAX_LENGTH,
        choices=Kind.choices,
    )

    title = models.CharField(max_length=_TITLE_MAX_LENGTH)

    content = models.TextField(blank=True, default='')

    # upload_to='' means we control the full path
    blob = models.FileField(
        upload_to='',
        blank=True,
        help_text='Path in storage: {user_id}/{kind}/file.ext',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
    )

    size_bytes = models.BigIntegerField(
        help_text='Bytes charged against the owner quota',
    )

    is_favorite = models.BooleanField(default=False, db_index=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_accessed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        """Model metadata."""

        verbose_name = 'Item'  # type: ignore[mutable-override]
        verbose_name_plural = 'Items'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        indexes = [
            models.Index(
                fields=['user', 'folder'],
                name='items_user_folder_idx',
            ),
            models.Index(
                fields=['user', 'kind'],
                name='items_user_kind_idx',
            ),
            models.Index(
                fields=['user', '-last_accessed_at'],
                name='items_user_recent_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='items_size_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}:{self.kind}:{self.title}'

    @property
    def has_blob(self) -> bool:
        """Whether this item keeps bytes in blob storage."""
        return bool(self.blob and self.blob.name)

    def get_extension(self) -> str:
        """Extract blob extension.

        Example: '7/image/photo.JPG' -> 'jpg'

        Returns:
            Extension without dot (lowercase), empty for notes.
        """
        if not self.has_blob:
            return ''
        return Path(self.blob.name).suffix.lstrip('.').lower()


@final
class UserQuota(models.Model):
    """Storage ledger for a user.

    Tracks the user's storage limit and the bytes charged by live items.
    Only ``storage_operations`` writes ``used_bytes``.

    ``used_bytes`` may exceed ``quota_bytes`` (historical drift or two
    concurrent writes racing for the last bytes). Writes that would grow
    usage past the limit are rejected, reads clamp what is available.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=DEFAULT_QUOTA_BYTES,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='quota_bytes_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return quota_ledger.fits(self.used_bytes, self.quota_bytes, size_bytes)

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        return quota_ledger.available(self.used_bytes, self.quota_bytes)
